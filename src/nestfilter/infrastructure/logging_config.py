"""
Logging configuration for the application.

This module sets up centralized logging for all modules.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .paths import get_log_file_path, get_old_log_file_path


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def rotate_log_files(log_file: Optional[Path] = None) -> None:
    """
    Rotate log files before starting a new logging session.

    - If the log file exists, move it to log.old.txt next to it
    - If log.old.txt already exists, delete it first
    - This keeps only the last 2 sessions of logging
    """
    if log_file is None:
        log_file = get_log_file_path()
        old_log_file = get_old_log_file_path()
    else:
        old_log_file = log_file.with_name(f"{log_file.stem}.old{log_file.suffix}")

    if not log_file.exists():
        return

    if old_log_file.exists():
        try:
            old_log_file.unlink()
        except OSError as e:
            print(f"Warning: Could not delete old log file: {e}", file=sys.stderr)

    try:
        log_file.rename(old_log_file)
    except OSError as e:
        print(f"Warning: Could not rotate log file: {e}", file=sys.stderr)


def parse_level(level: Union[int, str]) -> int:
    """
    Convert a level name such as 'DEBUG' to its logging constant.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    log_to_file: bool = True
) -> None:
    """
    Configure application-wide logging.

    Logs are written to the persistent data directory by default.
    On each startup the previous log.txt is moved to log.old.txt.

    Args:
        level: Logging level, as a constant or a name ('DEBUG', 'INFO', ...).
        log_file: Optional path to a log file. If None and log_to_file=True, uses default location.
        format_string: Optional custom format string for log messages.
        log_to_file: Whether to log to a file. Default is True.
    """
    level = parse_level(level)
    if format_string is None:
        format_string = DEFAULT_FORMAT

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_string))
    handlers.append(console_handler)

    if log_to_file:
        rotate_log_files(log_file)
        if log_file is None:
            log_file = get_log_file_path()
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8', mode='w')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        format=format_string,
        force=True
    )

    # qt_material logs every theme lookup at INFO
    logging.getLogger("qt_material").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A configured logger instance.
    """
    return logging.getLogger(name)
