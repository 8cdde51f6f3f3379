"""
Path utilities and constants.

This module provides helper functions for locating the application's
persistent files: settings, logs and saved filter state.
"""

import platform
import re
from pathlib import Path


APP_NAME = "nestfilter"

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory.

    Returns:
        The path (for chaining).

    Raises:
        IOError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        return path
    except OSError as e:
        raise IOError(f"Failed to create directory {path}: {e}")


def get_persistent_data_directory() -> Path:
    """
    Get the persistent data directory for the application (cross-platform).

    Returns:
        Path to the persistent data directory.

    Platform-specific locations:
        - Windows: %APPDATA%/LocalLow/nestfilter
        - macOS: ~/Library/Application Support/nestfilter
        - Linux: ~/.config/nestfilter
    """
    system = platform.system()

    if system == "Windows":
        base = Path.home() / "AppData" / "LocalLow"
    elif system == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path.home() / ".config"

    data_dir = base / APP_NAME
    data_dir.mkdir(parents=True, exist_ok=True)

    return data_dir


def get_settings_file_path() -> Path:
    """
    Get the path to the settings file.

    Returns:
        Path to the settings.json file.
    """
    return get_persistent_data_directory() / "settings.json"


def get_log_file_path() -> Path:
    return get_persistent_data_directory() / "log.txt"


def get_old_log_file_path() -> Path:
    return get_persistent_data_directory() / "log.old.txt"


def get_filter_state_directory() -> Path:
    """
    Get the default directory holding saved filter state, one file per view.

    Returns:
        Path to the filters/ directory (created if missing).
    """
    return ensure_directory(get_persistent_data_directory() / "filters")


def sanitize_filename(name: str) -> str:
    """
    Turn an arbitrary key into a filename safe on every platform.

    Runs of unsafe characters (including path separators and ':') are
    replaced by a single underscore.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub('_', name).strip('._')
    return cleaned or "_"
