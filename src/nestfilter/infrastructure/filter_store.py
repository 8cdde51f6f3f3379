"""
JSON-file persistence for filter state.

A FilterStore keeps one JSON file per table view. It is used as the
persistence sink of a FilterSession: every committed change is written
through save(), and None (an empty filter) removes the file.
"""

import json
from pathlib import Path
from typing import Callable, Optional

from .logging_config import get_logger
from .paths import ensure_directory, sanitize_filename

logger = get_logger(__name__)


def state_key(base_id: str, table_id: str) -> str:
    """Key under which the filter of one table is stored."""
    return f"table-filters:{base_id}:{table_id}"


class FilterStore:
    """
    Directory of saved filter states, addressed by key.

    Args:
        directory: Directory holding the state files (created on first write).
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{sanitize_filename(key)}.json"

    def load(self, key: str) -> Optional[dict]:
        """
        Load saved state for a key.

        Returns:
            The saved dictionary, or None if nothing usable is stored.
        """
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse filter state {path.name}: {e}. Ignoring it.")
            return None
        except OSError as e:
            logger.error(f"Failed to read filter state {path.name}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring filter state {path.name}: not an object")
            return None
        return data

    def save(self, key: str, payload: Optional[dict]) -> None:
        """
        Store state for a key; None removes any stored state.

        Writes go to a temporary file first and then replace the target.
        """
        path = self.path_for(key)
        try:
            if payload is None:
                if path.exists():
                    path.unlink()
                    logger.debug(f"Removed filter state {path.name}")
                return

            ensure_directory(self.directory)
            temp_file = path.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            temp_file.replace(path)
            logger.debug(f"Saved filter state {path.name}")

        except OSError as e:
            logger.error(f"Failed to save filter state {path.name}: {e}")

    def keys(self) -> list[str]:
        """File stems of every stored state."""
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob('*.json'))

    def sink(self, key: str) -> Callable[[Optional[dict]], None]:
        """Persistence sink bound to one key."""
        def write(payload: Optional[dict]) -> None:
            self.save(key, payload)
        return write
