"""
Main window for the nestfilter application.

The window hosts the filter builder above a table of the records the current
filter matches. Column catalogs and records are loaded from .json or .tsv
files; the filter itself is saved per catalog in the filter state directory.
"""

import json
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QMainWindow,
    QMessageBox,
    QScrollArea,
    QSplitter,
    QTableView,
)
from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt, Slot
from PySide6.QtGui import QAction, QKeySequence
from qt_material import apply_stylesheet

from nestfilter import __version__
from nestfilter.config.settings import get_settings, get_settings_manager
from nestfilter.core.models import ColumnCatalog
from nestfilter.core.query import filter_records
from nestfilter.infrastructure.catalog_loader import CatalogLoadError, load_catalog, load_records
from nestfilter.infrastructure.filter_store import FilterStore, state_key
from nestfilter.infrastructure.logging_config import get_logger
from nestfilter.ui.preferences_dialog import PreferencesDialog
from nestfilter.ui.widgets.filter_builder_widget import FilterBuilderWidget


logger = get_logger(__name__)

LOCAL_BASE_ID = "local"


class RecordTableModel(QAbstractTableModel):
    """
    Table model for displaying records, one column per catalog column.
    """

    def __init__(self, catalog: ColumnCatalog, records: list[dict], parent=None):
        """
        Initialize the table model.

        Args:
            catalog: Columns shown, in catalog order.
            records: Records keyed by column id.
            parent: Parent QObject.
        """
        super().__init__(parent)
        self._columns = catalog.columns
        self._records = records

    def rowCount(self, parent=QModelIndex()) -> int:
        """Return the number of rows."""
        return len(self._records)

    def columnCount(self, parent=QModelIndex()) -> int:
        """Return the number of columns."""
        return len(self._columns)

    def data(self, index: QModelIndex, role=Qt.ItemDataRole.DisplayRole):
        """Return data for the given index and role."""
        if not index.isValid():
            return None

        if role == Qt.ItemDataRole.DisplayRole:
            value = self._records[index.row()].get(self._columns[index.column()].id)
            return "" if value is None else str(value)

        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role=Qt.ItemDataRole.DisplayRole):
        """Return header data."""
        if role == Qt.ItemDataRole.DisplayRole:
            if orientation == Qt.Orientation.Horizontal:
                return self._columns[section].name
            else:
                return str(section + 1)

        return None


class MainWindow(QMainWindow):
    """
    Main application window.
    """

    def __init__(self, parent=None):
        super().__init__(parent)

        settings = get_settings()
        self._catalog = ColumnCatalog()
        self._records: list[dict] = []
        self._state_key: Optional[str] = None
        self._store = FilterStore(settings.resolved_filter_state_directory())

        self._setup_ui()
        self._setup_menus()
        self._update_recent_menu()

        self.resize(settings.window_width, settings.window_height)
        logger.info("Main window initialized")

    def _setup_ui(self):
        """Setup the user interface."""
        self.setWindowTitle(f"nestfilter {__version__}")

        self.builder = FilterBuilderWidget(
            sink=self._persist_filter,
            animate=get_settings().animate_layout_changes,
        )
        self.builder.filter_changed.connect(self._on_filter_changed)

        scroll = QScrollArea()
        scroll.setWidget(self.builder)
        scroll.setWidgetResizable(False)

        self.table_view = QTableView()
        self.table_view.setAlternatingRowColors(True)

        splitter = QSplitter(Qt.Orientation.Vertical)
        splitter.addWidget(scroll)
        splitter.addWidget(self.table_view)
        splitter.setStretchFactor(1, 1)
        self.setCentralWidget(splitter)

        self.statusBar().showMessage("Open a column catalog to start filtering")

    def _setup_menus(self):
        """Create the menu bar."""
        file_menu = self.menuBar().addMenu("&File")

        open_columns = QAction("Open &Columns...", self)
        open_columns.setShortcut(QKeySequence.StandardKey.Open)
        open_columns.triggered.connect(self.open_columns)
        file_menu.addAction(open_columns)

        open_records = QAction("Open &Records...", self)
        open_records.triggered.connect(self.open_records)
        file_menu.addAction(open_records)

        self.menuOpenRecent = file_menu.addMenu("Open Recent Columns")

        file_menu.addSeparator()

        open_filter = QAction("&Import Filter...", self)
        open_filter.triggered.connect(self.import_filter)
        file_menu.addAction(open_filter)

        save_filter = QAction("&Export Filter...", self)
        save_filter.setShortcut(QKeySequence.StandardKey.SaveAs)
        save_filter.triggered.connect(self.export_filter)
        file_menu.addAction(save_filter)

        clear_filter = QAction("Clear Filter", self)
        clear_filter.triggered.connect(self.builder.session.clear)
        file_menu.addAction(clear_filter)

        file_menu.addSeparator()

        quit_action = QAction("&Quit", self)
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        edit_menu = self.menuBar().addMenu("&Edit")
        preferences = QAction("&Preferences...", self)
        preferences.triggered.connect(self.show_preferences)
        edit_menu.addAction(preferences)

        help_menu = self.menuBar().addMenu("&Help")
        about = QAction("&About", self)
        about.triggered.connect(self.show_about)
        help_menu.addAction(about)

    def _update_recent_menu(self):
        """Update the recent column catalogs menu with current list."""
        self.menuOpenRecent.clear()

        recent_files = get_settings().recent_column_files
        if not recent_files:
            no_recent_action = QAction("No recent catalogs", self)
            no_recent_action.setEnabled(False)
            self.menuOpenRecent.addAction(no_recent_action)
            return

        for file_path in recent_files:
            action = QAction(file_path, self)
            action.triggered.connect(lambda checked=False, path=file_path: self.load_columns(Path(path)))
            self.menuOpenRecent.addAction(action)

        logger.debug(f"Recent menu updated with {len(recent_files)} items")

    # ==================== Loading ====================

    @Slot()
    def open_columns(self):
        """Ask for a column catalog and load it."""
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Open Column Catalog",
            str(Path.home()),
            "Column catalogs (*.json *.tsv);;All Files (*.*)"
        )
        if file_path:
            self.load_columns(Path(file_path))

    def load_columns(self, file_path: Path):
        """
        Load a column catalog and restore the filter saved for it.

        A .tsv catalog also provides the records shown in the table.

        Args:
            file_path: Path to a .json or .tsv catalog.
        """
        try:
            catalog = load_catalog(file_path)
            records = load_records(file_path) if file_path.suffix.lower() in ('.tsv', '.txt') else []
        except CatalogLoadError as e:
            logger.error(f"Failed to load catalog: {e}")
            QMessageBox.critical(self, "Error Loading Columns", str(e))
            return

        self._catalog = catalog
        self._records = records
        self._state_key = state_key(LOCAL_BASE_ID, file_path.stem)

        session = self.builder.session
        session.set_catalog(catalog)
        session.load(self._store.load(self._state_key))

        get_settings_manager().add_recent_column_file(str(file_path))
        self._update_recent_menu()
        self.setWindowTitle(f"nestfilter {__version__} - {file_path.name}")
        logger.info(f"Loaded {len(catalog)} columns from {file_path}")

    @Slot()
    def open_records(self):
        """Ask for a records file and show it filtered."""
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "Open Records",
            str(Path.home()),
            "Records (*.json *.tsv);;All Files (*.*)"
        )
        if not file_path:
            return

        try:
            self._records = load_records(Path(file_path))
        except CatalogLoadError as e:
            logger.error(f"Failed to load records: {e}")
            QMessageBox.critical(self, "Error Loading Records", str(e))
            return

        logger.info(f"Loaded {len(self._records)} records from {file_path}")
        self._refresh_records()

    @Slot()
    def import_filter(self):
        """Replace the current filter with one read from a JSON file."""
        file_path, _ = QFileDialog.getOpenFileName(
            self, "Import Filter", str(Path.home()), "Filter files (*.json)"
        )
        if not file_path:
            return

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read filter {file_path}: {e}")
            QMessageBox.critical(self, "Error Importing Filter", str(e))
            return

        session = self.builder.session
        session.load(data if isinstance(data, dict) else None)
        # Imported state counts as a user change for the saved copy
        self._persist_filter(session.forest.to_dict() if session.has_filter_items else None)
        get_settings_manager().add_recent_filter_file(file_path)

    @Slot()
    def export_filter(self):
        """Write the current filter to a JSON file."""
        file_path, _ = QFileDialog.getSaveFileName(
            self, "Export Filter", str(Path.home() / "filter.json"), "Filter files (*.json)"
        )
        if not file_path:
            return

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(self.builder.session.forest.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to export filter: {e}")
            QMessageBox.critical(self, "Error Exporting Filter", str(e))
            return

        get_settings_manager().add_recent_filter_file(file_path)
        logger.info(f"Filter exported to {file_path}")

    # ==================== Filtering ====================

    def _persist_filter(self, payload: Optional[dict]):
        if self._state_key is None:
            return
        self._store.save(self._state_key, payload)

    @Slot()
    def _on_filter_changed(self):
        self._refresh_records()

    def _refresh_records(self):
        session = self.builder.session
        matched = filter_records(self._records, session.filter_query, self._catalog)
        self.table_view.setModel(RecordTableModel(self._catalog, matched, self.table_view))

        if session.has_active_filters:
            names = ", ".join(session.filtered_column_names)
            self.statusBar().showMessage(
                f"{len(session.active_conditions)} active condition(s) on {names}; "
                f"{len(matched)} of {len(self._records)} records"
            )
        else:
            self.statusBar().showMessage(f"{len(self._records)} records")

    # ==================== Theme and dialogs ====================

    def apply_theme(self, theme: str):
        """
        Apply the specified theme to the application.

        Args:
            theme: Name of the theme to apply.
        """
        try:
            app = QApplication.instance()
            if not theme.endswith('.xml'):
                theme = f"{theme}.xml"

            invert_secondary = theme.startswith('light_')

            if app:
                apply_stylesheet(app, theme=theme, invert_secondary=invert_secondary)
                logger.info(f"Theme applied: {theme}")
        except Exception as e:
            logger.error(f"Failed to apply theme: {e}")

    @Slot()
    def show_about(self):
        """Show the About dialog."""
        QMessageBox.about(
            self,
            "About nestfilter",
            f"nestfilter {__version__}\n\nBuild nested AND/OR filters over table columns."
        )
        logger.debug("About dialog shown")

    @Slot()
    def show_preferences(self):
        """Show the Preferences dialog."""
        dialog = PreferencesDialog(self)
        dialog.close_preferences_dialog.connect(self._on_preferences_dialog_closed)
        dialog.preview_theme_changed.connect(self.apply_theme)
        result = dialog.exec()

        if result:
            logger.info("Preferences saved")
        else:
            logger.debug("Preferences dialog cancelled")

    @Slot()
    def _on_preferences_dialog_closed(self):
        """Reapply saved settings after the preferences dialog closes."""
        settings = get_settings()
        self.apply_theme(settings.theme)
        self.builder.set_animate(settings.animate_layout_changes)
        self._store = FilterStore(settings.resolved_filter_state_directory())

    def closeEvent(self, event):
        """Handle window close event."""
        self.builder.teardown()

        settings_manager = get_settings_manager()
        settings_manager.update(
            window_width=self.width(),
            window_height=self.height()
        )
        settings_manager.save()

        logger.info(f"Main window closing (size: {self.width()}x{self.height()})")
        event.accept()
