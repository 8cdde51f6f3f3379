"""
Column catalog and record loading utilities.

Columns can be described explicitly in a JSON file, or inferred from the
header and contents of a TSV table. Records are read from the same TSV
tables, or from a JSON list of objects.
"""

import csv
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

from ..core.models import Column, ColumnCatalog
from .logging_config import get_logger

logger = get_logger(__name__)

LONG_TEXT_THRESHOLD = 255


class CatalogLoadError(Exception):
    """Raised when a column or record file cannot be read."""


def load_tsv_file(file_path: Path) -> list[dict]:
    """
    Load a TSV file and return list of row dictionaries.

    Each row becomes a dictionary mapping column names to values.

    Args:
        file_path: Path to the TSV file.

    Returns:
        List of dictionaries, one per row (excluding header).

    Raises:
        CatalogLoadError: If the file cannot be read.
    """
    try:
        rows = []
        with open(file_path, 'r', encoding='utf-8', newline='') as f:
            reader = csv.DictReader(f, delimiter='\t')
            for row in reader:
                rows.append({
                    k.strip(): (v or '').strip()
                    for k, v in row.items() if k is not None
                })
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise CatalogLoadError(f"Failed to load TSV file {file_path}: {e}") from e

    logger.debug(f"Loaded {len(rows)} rows from {file_path.name}")
    return rows


def get_tsv_headers(file_path: Path) -> list[str]:
    """
    Get the column headers from a TSV file without loading all data.

    Raises:
        CatalogLoadError: If the file cannot be read.
    """
    try:
        with open(file_path, 'r', encoding='utf-8', newline='') as f:
            reader = csv.reader(f, delimiter='\t')
            header = next(reader, [])
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise CatalogLoadError(f"Failed to read TSV headers from {file_path}: {e}") from e
    return [h.strip() for h in header if h.strip()]


def _is_number(value: str) -> bool:
    try:
        Decimal(value)
    except InvalidOperation:
        return False
    return True


def infer_column_type(values: list[str]) -> str:
    """
    Guess a column type from its cell values.

    A column whose non-empty cells are all numbers is 'number'; one with a
    multi-line or very long cell is 'long_text'; anything else is
    'single_line_text'.
    """
    filled = [v for v in values if v]
    if filled and all(_is_number(v) for v in filled):
        return 'number'
    if any('\n' in v or len(v) > LONG_TEXT_THRESHOLD for v in filled):
        return 'long_text'
    return 'single_line_text'


def columns_from_tsv(file_path: Path) -> ColumnCatalog:
    """Build a catalog from a TSV table; each header becomes a column."""
    headers = get_tsv_headers(file_path)
    rows = load_tsv_file(file_path)
    columns = [
        Column(id=header, name=header, type=infer_column_type([row.get(header, '') for row in rows]))
        for header in headers
    ]
    return ColumnCatalog(columns)


def _read_json(file_path: Path):
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in {file_path}: {e}") from e
    except OSError as e:
        raise CatalogLoadError(f"Failed to read {file_path}: {e}") from e


def columns_from_json(file_path: Path) -> ColumnCatalog:
    """
    Build a catalog from a JSON file.

    The file holds either a list of column objects or an object with a
    'columns' list; each column object has 'id' and optionally 'name'
    and 'type'.

    Raises:
        CatalogLoadError: If the file is unreadable or malformed.
    """
    data = _read_json(file_path)
    if isinstance(data, dict):
        data = data.get('columns')
    if not isinstance(data, list):
        raise CatalogLoadError(f"Expected a list of columns in {file_path}")

    columns = []
    for entry in data:
        if not isinstance(entry, dict) or 'id' not in entry:
            logger.warning(f"Skipping malformed column entry in {file_path.name}: {entry!r}")
            continue
        columns.append(Column.from_dict(entry))
    return ColumnCatalog(columns)


def load_catalog(file_path: Path) -> ColumnCatalog:
    """
    Load a column catalog from a .json description or a .tsv table.

    Raises:
        CatalogLoadError: If the file cannot be loaded.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise CatalogLoadError(f"Column file not found: {file_path}")

    if file_path.suffix.lower() in ('.tsv', '.txt'):
        catalog = columns_from_tsv(file_path)
    else:
        catalog = columns_from_json(file_path)

    logger.info(f"Loaded {len(catalog)} columns from {file_path.name}")
    return catalog


def load_records(file_path: Path) -> list[dict]:
    """
    Load records from a .tsv table or a JSON list of objects.

    Raises:
        CatalogLoadError: If the file cannot be loaded.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise CatalogLoadError(f"Records file not found: {file_path}")

    if file_path.suffix.lower() in ('.tsv', '.txt'):
        return load_tsv_file(file_path)

    data = _read_json(file_path)
    if isinstance(data, dict):
        data = data.get('records')
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise CatalogLoadError(f"Expected a list of records in {file_path}")
    return data
