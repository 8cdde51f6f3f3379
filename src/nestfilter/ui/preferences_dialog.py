"""
Preferences dialog for application settings.

This dialog allows users to view and modify application settings.
"""

import logging
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QRadioButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)
from PySide6.QtCore import Slot, Signal

from nestfilter.config.settings import get_settings_manager, get_settings, AppSettings
from nestfilter.infrastructure.logging_config import get_logger

logger = get_logger(__name__)


class PreferencesDialog(QDialog):
    """
    Dialog for editing application preferences.

    Theme changes are previewed live through preview_theme_changed.
    """

    close_preferences_dialog = Signal()
    preview_theme_changed = Signal(str)

    COLOR_DISPLAY_TO_VALUE = {
        "Blue": "blue",
        "Amber": "amber",
        "Cyan": "cyan",
        "Light Green": "lightgreen",
        "Pink": "pink",
        "Purple": "purple",
        "Red": "red",
        "Teal": "teal",
        "Yellow": "yellow",
    }

    COLOR_VALUE_TO_DISPLAY = {v: k for k, v in COLOR_DISPLAY_TO_VALUE.items()}

    LOG_LEVEL_DISPLAY_TO_VALUE = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    LOG_LEVEL_VALUE_TO_DISPLAY = {v: k for k, v in LOG_LEVEL_DISPLAY_TO_VALUE.items()}

    def __init__(self, parent=None):
        """
        Initialize the preferences dialog.

        Args:
            parent: Parent widget.
        """
        super().__init__(parent)

        self._settings_manager = get_settings_manager()
        self._original_settings: Optional[AppSettings] = None

        self._setup_ui()
        self._connect_signals()
        self._load_settings()

        logger.debug("PreferencesDialog initialized")

    def _setup_ui(self):
        """Setup the user interface."""
        self.setWindowTitle("Preferences")
        layout = QVBoxLayout(self)
        form = QFormLayout()
        layout.addLayout(form)

        self.comboLogLevel = QComboBox()
        self.comboLogLevel.addItems(list(self.LOG_LEVEL_DISPLAY_TO_VALUE))
        form.addRow("Log level", self.comboLogLevel)

        self.checkLogToFile = QCheckBox("Write log file")
        form.addRow("", self.checkLogToFile)

        self.editLogFilePath = QLineEdit()
        self.editLogFilePath.setPlaceholderText("Default location")
        self.btnBrowseLogFile = QPushButton("Browse...")
        form.addRow("Log file", self._with_button(self.editLogFilePath, self.btnBrowseLogFile))

        self.radioDark = QRadioButton("Dark")
        self.radioLight = QRadioButton("Light")
        mode_row = QWidget()
        mode_layout = QHBoxLayout(mode_row)
        mode_layout.setContentsMargins(0, 0, 0, 0)
        mode_layout.addWidget(self.radioDark)
        mode_layout.addWidget(self.radioLight)
        form.addRow("Theme", mode_row)

        self.comboPrimaryColor = QComboBox()
        self.comboPrimaryColor.addItems(list(self.COLOR_DISPLAY_TO_VALUE))
        form.addRow("Primary color", self.comboPrimaryColor)

        self.checkAnimate = QCheckBox("Animate layout changes")
        form.addRow("", self.checkAnimate)

        self.editFilterDirectory = QLineEdit()
        self.editFilterDirectory.setPlaceholderText("Default location")
        self.btnBrowseFilterDirectory = QPushButton("Browse...")
        form.addRow(
            "Saved filters",
            self._with_button(self.editFilterDirectory, self.btnBrowseFilterDirectory),
        )

        self.spinMaxRecentItems = QSpinBox()
        self.spinMaxRecentItems.setRange(1, 50)
        form.addRow("Recent items", self.spinMaxRecentItems)

        buttons = QHBoxLayout()
        self.btnResetDefaults = QPushButton("Reset to Defaults")
        self.btnCancel = QPushButton("Cancel")
        self.btnSave = QPushButton("Save")
        self.btnSave.setDefault(True)
        buttons.addWidget(self.btnResetDefaults)
        buttons.addStretch()
        buttons.addWidget(self.btnCancel)
        buttons.addWidget(self.btnSave)
        layout.addLayout(buttons)

    @staticmethod
    def _with_button(edit: QLineEdit, button: QPushButton) -> QWidget:
        row = QWidget()
        row_layout = QHBoxLayout(row)
        row_layout.setContentsMargins(0, 0, 0, 0)
        row_layout.addWidget(edit)
        row_layout.addWidget(button)
        return row

    def _connect_signals(self):
        """Connect UI signals to slots."""
        self.btnSave.clicked.connect(self._on_save)
        self.btnCancel.clicked.connect(self._on_cancel)
        self.btnResetDefaults.clicked.connect(self._on_reset_defaults)
        self.btnBrowseLogFile.clicked.connect(self._on_browse_log_file)
        self.btnBrowseFilterDirectory.clicked.connect(self._on_browse_filter_directory)
        self.checkLogToFile.toggled.connect(self._on_log_to_file_toggled)
        self.radioDark.toggled.connect(self._on_theme_settings_changed)  # One radio is enough
        self.comboPrimaryColor.currentTextChanged.connect(self._on_theme_settings_changed)

    def _load_settings(self):
        """Load current settings into the UI."""
        settings = get_settings()
        self._original_settings = settings

        self.comboLogLevel.setCurrentText(self.LOG_LEVEL_VALUE_TO_DISPLAY.get(settings.log_level, "INFO"))
        self.checkLogToFile.setChecked(settings.log_to_file)
        self.editLogFilePath.setText(str(settings.log_file_path) if settings.log_file_path else "")
        self._on_log_to_file_toggled(settings.log_to_file)

        theme = settings.theme
        if theme.startswith("light_"):
            self.radioLight.setChecked(True)
            color = theme[6:]
        elif theme.startswith("dark_"):
            self.radioDark.setChecked(True)
            color = theme[5:]
        else:
            self.radioLight.setChecked(True)
            color = "blue"
        self.comboPrimaryColor.setCurrentText(self.COLOR_VALUE_TO_DISPLAY.get(color, "Blue"))

        self.checkAnimate.setChecked(settings.animate_layout_changes)
        self.editFilterDirectory.setText(
            str(settings.filter_state_directory) if settings.filter_state_directory else ""
        )
        self.spinMaxRecentItems.setValue(settings.max_recent_items)

        logger.debug("Settings loaded into UI")

    def _current_theme(self) -> str:
        mode = "dark" if self.radioDark.isChecked() else "light"
        color = self.COLOR_DISPLAY_TO_VALUE.get(self.comboPrimaryColor.currentText(), "blue")
        return f"{mode}_{color}"

    def _save_settings(self):
        """Save settings from UI to configuration."""
        log_file_text = self.editLogFilePath.text().strip()
        filter_dir_text = self.editFilterDirectory.text().strip()

        self._settings_manager.update(
            log_level=self.LOG_LEVEL_DISPLAY_TO_VALUE.get(self.comboLogLevel.currentText(), logging.INFO),
            log_to_file=self.checkLogToFile.isChecked(),
            log_file_path=Path(log_file_text) if log_file_text else None,
            theme=self._current_theme(),
            animate_layout_changes=self.checkAnimate.isChecked(),
            filter_state_directory=Path(filter_dir_text) if filter_dir_text else None,
            max_recent_items=self.spinMaxRecentItems.value(),
        )

        logger.info("Settings saved")

    @Slot()
    def _on_save(self):
        """Handle Save button click."""
        self._save_settings()
        self.accept()
        self.close_preferences_dialog.emit()

    @Slot()
    def _on_cancel(self):
        """Handle Cancel button click."""
        self.reject()
        self.close_preferences_dialog.emit()

    @Slot()
    def _on_reset_defaults(self):
        """Handle Reset to Defaults button click."""
        reply = QMessageBox.question(
            self,
            "Reset to Defaults",
            "Are you sure you want to reset all settings to their default values?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No
        )

        if reply == QMessageBox.StandardButton.Yes:
            self._settings_manager.reset_to_defaults()
            self._load_settings()
            logger.info("Settings reset to defaults")

    @Slot()
    def _on_browse_log_file(self):
        """Handle Browse button click for log file path."""
        current_path = self.editLogFilePath.text()
        initial_dir = str(Path(current_path).parent) if current_path else str(Path.home())

        file_path, _ = QFileDialog.getSaveFileName(
            self,
            "Select Log File",
            initial_dir,
            "Log Files (*.txt *.log);;All Files (*.*)"
        )
        if file_path:
            self.editLogFilePath.setText(file_path)

    @Slot()
    def _on_browse_filter_directory(self):
        directory = QFileDialog.getExistingDirectory(
            self,
            "Select Saved Filters Directory",
            self.editFilterDirectory.text() or str(Path.home()),
        )
        if directory:
            self.editFilterDirectory.setText(directory)

    @Slot(bool)
    def _on_log_to_file_toggled(self, checked: bool):
        """Handle log to file checkbox toggle."""
        self.editLogFilePath.setEnabled(checked)
        self.btnBrowseLogFile.setEnabled(checked)

    @Slot()
    def _on_theme_settings_changed(self):
        """Handle theme mode or color change."""
        self.preview_theme_changed.emit(self._current_theme())
