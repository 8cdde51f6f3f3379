"""
Command-line interface for nestfilter.

This module provides a CLI for inspecting, laying out, validating and
applying saved filter files without starting the GUI.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .. import __version__
from ..infrastructure.logging_config import setup_logging, get_logger
from ..infrastructure.catalog_loader import CatalogLoadError, load_catalog, load_records
from ..core.layout import compute_layout, describe_entries, dropdown_geometry, GROUP_HEADER_TEXT, WHERE_TEXT
from ..core.models import ColumnCatalog, ConditionItem, FilterForest, FilterItem, GroupItem, validate_filter_data
from ..core.operators import OPERATOR_LABELS, operator_requires_value
from ..core.query import build_filter_query, filter_records
from ..core.tree import max_group_nesting


logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="nestfilter",
        description="Inspect and apply nested AND/OR filter files"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"nestfilter {__version__}"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    show_parser = subparsers.add_parser("show", help="Print a filter as an indented tree")
    show_parser.add_argument("filter", type=Path, help="Path to filter JSON file")
    show_parser.add_argument("--columns", type=Path, help="Column catalog (.json or .tsv)")

    layout_parser = subparsers.add_parser("layout", help="Print the layout entries of a filter")
    layout_parser.add_argument("filter", type=Path, help="Path to filter JSON file")

    query_parser = subparsers.add_parser("query", help="Print the normalized query of a filter")
    query_parser.add_argument("filter", type=Path, help="Path to filter JSON file")
    query_parser.add_argument("--columns", type=Path, required=True,
                              help="Column catalog (.json or .tsv)")
    query_parser.add_argument("--hidden", nargs="+", default=[],
                              help="Column ids excluded from filtering")
    query_parser.add_argument("--rows", type=Path,
                              help="Records (.json or .tsv) to filter with the query")

    validate_parser = subparsers.add_parser("validate", help="Check a filter file for problems")
    validate_parser.add_argument("filter", type=Path, help="Path to filter JSON file")
    validate_parser.add_argument("--columns", type=Path, help="Column catalog (.json or .tsv)")

    return parser


def _read_filter(path: Path) -> Optional[object]:
    """Read a filter JSON file, logging and returning None on failure."""
    if not path.exists():
        logger.error(f"Filter file does not exist: {path}")
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {path}: {e}")
    except OSError as e:
        logger.error(f"Failed to read {path}: {e}")
    return None


def _read_catalog(path: Optional[Path]) -> Optional[ColumnCatalog]:
    if path is None:
        return None
    return load_catalog(path)


def format_condition(condition: ConditionItem, catalog: Optional[ColumnCatalog]) -> str:
    if catalog is not None:
        field = catalog.display_name(condition.column_id)
    else:
        field = condition.column_id or "Field"
    text = f"{field} {OPERATOR_LABELS[condition.operator]}"
    if operator_requires_value(condition.operator):
        text += f" {condition.value!r}"
    return text


def format_tree(forest: FilterForest, catalog: Optional[ColumnCatalog] = None) -> list[str]:
    """
    Render a forest as indented lines, one per item.

    The first item of each scope is prefixed with 'Where', later ones with
    the scope's connector.
    """
    lines = []

    def emit(items: tuple[FilterItem, ...], connector: str, depth: int):
        indent = "    " * depth
        for index, item in enumerate(items):
            prefix = WHERE_TEXT if index == 0 else connector
            if isinstance(item, GroupItem):
                lines.append(f"{indent}{prefix} ({GROUP_HEADER_TEXT[item.connector]})")
                emit(item.children, item.connector, depth + 1)
            else:
                lines.append(f"{indent}{prefix} {format_condition(item, catalog)}")

    emit(forest.items, forest.connector, 0)
    return lines


def cmd_show(args: argparse.Namespace) -> int:
    """
    Print a filter as an indented tree.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    data = _read_filter(args.filter)
    if data is None:
        return 1

    try:
        catalog = _read_catalog(args.columns)
    except CatalogLoadError as e:
        logger.error(str(e))
        return 1

    forest = FilterForest.from_dict(data, catalog)
    if forest.is_empty:
        print("No filter conditions are applied")
        return 0

    for line in format_tree(forest, catalog):
        print(line)
    return 0


def cmd_layout(args: argparse.Namespace) -> int:
    """
    Print the layout entries and dropdown size of a filter.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    data = _read_filter(args.filter)
    if data is None:
        return 1

    forest = FilterForest.from_dict(data)
    layout = compute_layout(forest)
    geometry = dropdown_geometry(forest, layout)

    for line in describe_entries(layout.entries):
        print(line)
    print(f"dropdown: {geometry.width:g}x{geometry.height:g} (footer at {geometry.footer_top:g})")
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    """
    Print the normalized query of a filter, or the records it matches.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    data = _read_filter(args.filter)
    if data is None:
        return 1

    try:
        catalog = load_catalog(args.columns)
        records = load_records(args.rows) if args.rows else None
    except CatalogLoadError as e:
        logger.error(str(e))
        return 1

    forest = FilterForest.from_dict(data, catalog, args.hidden)
    query = build_filter_query(forest, catalog, args.hidden)

    if records is None:
        print(json.dumps(query, indent=2, ensure_ascii=False))
        return 0

    matched = filter_records(records, query, catalog)
    logger.info(f"{len(matched)} of {len(records)} records match")
    print(json.dumps(matched, indent=2, ensure_ascii=False))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """
    Check a filter file for structural problems.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for a valid filter).
    """
    data = _read_filter(args.filter)
    if data is None:
        return 1

    try:
        catalog = _read_catalog(args.columns)
    except CatalogLoadError as e:
        logger.error(str(e))
        return 1

    problems = validate_filter_data(data, catalog)
    if problems:
        print(f"✗ {len(problems)} problem(s) found")
        for problem in problems:
            print(f"  - {problem}")
        return 1

    forest = FilterForest.from_dict(data, catalog)
    print(f"✓ Valid filter ({len(forest.items)} root items, {max_group_nesting(forest)} group levels)")
    return 0


COMMANDS = {
    "show": cmd_show,
    "layout": cmd_layout,
    "query": cmd_query,
    "validate": cmd_validate,
}


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=log_level, log_to_file=False)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
