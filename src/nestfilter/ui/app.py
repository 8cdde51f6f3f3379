"""
Main application entry point.

This module initializes and runs the PySide6 application.
"""

import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from nestfilter import __version__
from nestfilter.infrastructure.logging_config import setup_logging, get_logger
from nestfilter.config.settings import get_settings
from nestfilter.ui.main_window import MainWindow


logger = get_logger(__name__)


def main():
    """
    Main entry point for the GUI application.

    An optional first argument names a column catalog to open.
    """
    # Setup logging (logs to persistent data directory with rotation)
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file_path,
        log_to_file=settings.log_to_file
    )

    logger.info("Starting nestfilter application")

    app = QApplication(sys.argv)
    app.setApplicationName("nestfilter")
    app.setApplicationVersion(__version__)

    window = MainWindow()
    window.apply_theme(settings.theme)
    window.show()

    arguments = app.arguments()[1:]
    if arguments:
        window.load_columns(Path(arguments[0]))

    logger.info("Main window displayed")

    exit_code = app.exec()

    logger.info(f"Application exiting with code {exit_code}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
