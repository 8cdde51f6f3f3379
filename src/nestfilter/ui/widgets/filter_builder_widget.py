"""
Filter Builder Widget.

Renders the entries produced by the layout pass as absolutely positioned
child widgets: one connector cell and one row per condition, one box per
group. Moved entries are first drawn at their previous position and then
animated into place; conditions are dragged between scopes by their
handle.
"""

from typing import Callable, Optional

from PySide6.QtCore import QEasingCurve, QParallelAnimationGroup, QPoint, QPropertyAnimation, Qt, Signal, Slot
from PySide6.QtGui import QAction, QFont
from PySide6.QtWidgets import (
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMenu,
    QPushButton,
    QScrollBar,
    QToolButton,
    QWidget,
)

from nestfilter.infrastructure.logging_config import get_logger
from nestfilter.core.animation import AnimationReconciler
from nestfilter.core.interaction import CONNECTOR_MENU, FIELD_MENU, GROUP_MENU, OPERATOR_MENU
from nestfilter.core.layout import (
    EMPTY_STATE_TEXT,
    WHERE_TEXT,
    FixedStrideVirtualizer,
    GroupEntry,
    LayoutConfig,
    LayoutEntry,
    RowEntry,
    dropdown_geometry,
    field_menu_height,
    field_menu_rows,
)
from nestfilter.core.models import ColumnCatalog
from nestfilter.core.operators import CONNECTORS, OPERATOR_LABELS, format_operator_label, operator_requires_value
from nestfilter.core.session import FilterSession, PersistenceSink
from nestfilter.core.tree import find_condition
from nestfilter.ui.qt_support import QtPointerCapture, schedule_next_paint


logger = get_logger(__name__)

ANIMATION_DURATION_MS = 160
HEADER_TEXT = "In this view, show records"
ERROR_STYLE = "border: 1px solid #e53935;"


class DragHandle(QLabel):
    """Grip at the right end of a row; pressing it starts a drag."""

    pressed = Signal(object)

    def __init__(self, parent=None):
        super().__init__("⠿", parent)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setCursor(Qt.CursorShape.OpenHandCursor)
        self.setToolTip("Drag to move this condition")

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self.pressed.emit(event.globalPosition())
            event.accept()
            return
        super().mousePressEvent(event)


class ConnectorCell(QWidget):
    """Connector column of a scope item: nothing, 'Where', a dropdown or static text."""

    connector_selected = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.scope: tuple[Optional[str], Optional[str]] = (None, None)
        """(group id, parent group id) of the scope the connector belongs to."""

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.combo = QComboBox()
        self.combo.addItems(list(CONNECTORS))
        self.combo.activated.connect(self._on_activated)
        layout.addWidget(self.combo)

        self.label = QLabel()
        layout.addWidget(self.label)

    def update_from(self, entry: LayoutEntry, highlighted: bool):
        if entry.show_where:
            self.combo.hide()
            self.label.setText(WHERE_TEXT)
            self.label.show()
        elif not entry.show_connector or getattr(entry, 'is_dragging', False):
            self.combo.hide()
            self.label.hide()
        elif entry.show_connector_control:
            self.label.hide()
            self.combo.blockSignals(True)
            self.combo.setCurrentText(entry.connector)
            self.combo.blockSignals(False)
            font = self.combo.font()
            font.setBold(highlighted)
            self.combo.setFont(font)
            self.combo.show()
        else:
            self.combo.hide()
            self.label.setText(entry.connector)
            self.label.show()

    @Slot(int)
    def _on_activated(self, index: int):
        self.connector_selected.emit(self.combo.itemText(index))


class ConditionRow(QFrame):
    """Field, operator and value editors of one condition."""

    field_clicked = Signal()
    operator_clicked = Signal()
    value_edited = Signal(str)
    delete_clicked = Signal()
    drag_pressed = Signal(object)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFrameShape(QFrame.Shape.StyledPanel)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.field_button = QPushButton()
        self.field_button.setFixedWidth(125)
        self.field_button.clicked.connect(self.field_clicked)
        layout.addWidget(self.field_button)

        self.operator_button = QPushButton()
        self.operator_button.setFixedWidth(125)
        self.operator_button.clicked.connect(self.operator_clicked)
        layout.addWidget(self.operator_button)

        self.value_edit = QLineEdit()
        self.value_edit.setPlaceholderText("Enter a value")
        self.value_edit.setFixedWidth(140)
        self.value_edit.textEdited.connect(self.value_edited)
        layout.addWidget(self.value_edit)

        self.delete_button = QToolButton()
        self.delete_button.setText("✕")
        self.delete_button.setToolTip("Remove condition")
        self.delete_button.setFixedWidth(32)
        self.delete_button.clicked.connect(self.delete_clicked)
        layout.addWidget(self.delete_button)

        self.handle = DragHandle()
        self.handle.pressed.connect(self.drag_pressed)
        layout.addWidget(self.handle)

    def update_from(
        self,
        field_name: str,
        operator: str,
        value: str,
        field_highlighted: bool,
        operator_highlighted: bool,
        value_error: bool
    ):
        self.field_button.setText(field_name)
        self.operator_button.setText(format_operator_label(OPERATOR_LABELS[operator]))
        self._set_bold(self.field_button, field_highlighted)
        self._set_bold(self.operator_button, operator_highlighted)

        needs_value = operator_requires_value(operator)
        self.value_edit.setEnabled(needs_value)
        # Keep the cursor where it is while the user types.
        if not self.value_edit.hasFocus() and self.value_edit.text() != value:
            self.value_edit.setText(value)
        self.value_edit.setStyleSheet(ERROR_STYLE if value_error else "")

    @staticmethod
    def _set_bold(widget: QWidget, bold: bool):
        font = widget.font()
        font.setBold(bold)
        widget.setFont(font)


class FieldMenu(QFrame):
    """
    Column-pick popup that only creates buttons for the visible rows.

    Long catalogs are scrolled with the wheel or the scroll bar; the rows in
    view come from field_menu_rows and are re-placed on every scroll.
    """

    column_selected = Signal(str)
    closed = Signal()

    def __init__(
        self,
        catalog: ColumnCatalog,
        current_column_id: Optional[str],
        config: LayoutConfig,
        parent=None
    ):
        super().__init__(parent, Qt.WindowType.Popup)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        self.setFrameShape(QFrame.Shape.StyledPanel)

        self._catalog = catalog
        self._current_column_id = current_column_id
        self._config = config
        self._buttons: dict[int, QPushButton] = {}

        height = field_menu_height(len(catalog), config)
        self.setFixedSize(int(config.field_menu_width), int(height))

        header = QLabel("Find a field", self)
        header.move(int(config.field_menu_item_left), int(config.field_menu_top_padding))

        viewport_height = height - config.field_menu_first_row_top
        self._virtualizer = FixedStrideVirtualizer(
            count=len(catalog),
            stride=config.field_menu_row_stride,
            viewport_height=viewport_height,
        )

        self._viewport = QWidget(self)
        self._viewport.setGeometry(
            0,
            int(config.field_menu_first_row_top),
            int(config.field_menu_width - 14),
            int(viewport_height),
        )

        self.scroll_bar = QScrollBar(Qt.Orientation.Vertical, self)
        content_height = len(catalog) * config.field_menu_row_stride
        self.scroll_bar.setRange(0, int(max(0.0, content_height - viewport_height)))
        self.scroll_bar.setSingleStep(int(config.field_menu_row_stride))
        self.scroll_bar.setPageStep(int(viewport_height))
        self.scroll_bar.setGeometry(
            int(config.field_menu_width - 12),
            int(config.field_menu_first_row_top),
            10,
            int(viewport_height),
        )
        self.scroll_bar.setVisible(self.scroll_bar.maximum() > 0)
        self.scroll_bar.valueChanged.connect(self._on_scrolled)

        self._place_rows()

    def wheelEvent(self, event):
        steps = event.angleDelta().y() / 120
        self.scroll_bar.setValue(int(self.scroll_bar.value() - steps * self.scroll_bar.singleStep()))
        event.accept()

    def hideEvent(self, event):
        super().hideEvent(event)
        self.closed.emit()

    @Slot(int)
    def _on_scrolled(self, value: int):
        self._virtualizer.scroll_to(value)
        self._place_rows()

    def _place_rows(self):
        # The viewport starts at the first row and clips rows scrolled out of view.
        origin = self._config.field_menu_first_row_top + self._virtualizer.scroll_offset
        visible = set()
        for row in field_menu_rows(self._catalog, self._virtualizer, self._config):
            top = row.top - origin
            visible.add(row.index)
            button = self._buttons.get(row.index)
            if button is None:
                button = QPushButton(row.column.name, self._viewport)
                button.setFlat(True)
                button.setCheckable(True)
                button.setChecked(row.column.id == self._current_column_id)
                button.clicked.connect(lambda checked=False, column_id=row.column.id: self._select(column_id))
                self._buttons[row.index] = button
            button.setGeometry(int(row.left), int(top), int(row.width), int(row.height))
            button.show()

        for index in list(self._buttons):
            if index not in visible:
                self._buttons.pop(index).deleteLater()

    def _select(self, column_id: str):
        self.column_selected.emit(column_id)
        self.close()


class GroupBox(QFrame):
    """Box drawn behind the rows of one group."""

    add_condition_requested = Signal()
    add_group_requested = Signal()
    delete_requested = Signal()
    menu_opened = Signal()
    menu_closed = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFrameShape(QFrame.Shape.StyledPanel)

        self.header = QLabel(self)
        self.header.move(16, 12)

        self.placeholder = QLabel(self)
        self.placeholder.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self.menu = QMenu(self)
        self.add_condition_action = QAction("Add condition", self)
        self.add_condition_action.triggered.connect(self.add_condition_requested)
        self.menu.addAction(self.add_condition_action)
        self.add_group_action = QAction("Add condition group", self)
        self.add_group_action.triggered.connect(self.add_group_requested)
        self.menu.addAction(self.add_group_action)
        self.menu.aboutToShow.connect(self.menu_opened)
        self.menu.aboutToHide.connect(self.menu_closed)

        self.plus_button = QToolButton(self)
        self.plus_button.setText("+")
        self.plus_button.setToolTip("Add to this group")
        self.plus_button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        self.plus_button.setMenu(self.menu)

        self.delete_button = QToolButton(self)
        self.delete_button.setText("✕")
        self.delete_button.setToolTip("Delete group")
        self.delete_button.clicked.connect(self.delete_requested)

    def update_from(self, entry: GroupEntry):
        self.resize(int(entry.width), int(entry.height))
        self.plus_button.move(int(entry.width) - 64, 6)
        self.delete_button.move(int(entry.width) - 32, 6)
        self.add_group_action.setEnabled(entry.can_add_group)

        if entry.is_empty:
            self.header.hide()
            self.placeholder.setText(entry.placeholder_text)
            self.placeholder.setGeometry(0, 0, int(entry.width) - 64, int(entry.height))
            self.placeholder.show()
        else:
            self.placeholder.hide()
            self.header.setText(entry.header_text)
            self.header.adjustSize()
            self.header.show()


class FilterBuilderWidget(QWidget):
    """
    Widget editing one nested filter.

    Owns a FilterSession; every change to it re-runs the layout pass and
    repositions the child widgets.

    Args:
        catalog: Columns available to conditions.
        sink: Persistence sink receiving the serialized filter.
        animate: Whether moved entries are animated into place.
        parent: Parent widget.
    """

    filter_changed = Signal()

    def __init__(
        self,
        catalog: Optional[ColumnCatalog] = None,
        sink: Optional[PersistenceSink] = None,
        animate: bool = True,
        parent=None
    ):
        super().__init__(parent)

        self._animate = animate
        self._rows: dict[str, ConditionRow] = {}
        self._groups: dict[str, GroupBox] = {}
        self._connectors: dict[str, ConnectorCell] = {}
        self._targets: dict[QWidget, QPoint] = {}
        self._animation: Optional[QParallelAnimationGroup] = None
        self._rendered_forest = None

        self.session = FilterSession(
            catalog=catalog,
            sink=sink,
            pointer_capture=QtPointerCapture(self),
            on_change=self.refresh_layout,
        )
        self._reconciler = AnimationReconciler(schedule_next_paint, on_settled=self._animate_to_rest)

        self._setup_ui()
        self.refresh_layout()

        logger.debug("FilterBuilderWidget initialized")

    def _setup_ui(self):
        """Setup the static chrome around the rows."""
        self.title_label = QLabel(HEADER_TEXT, self)
        self.title_label.move(16, 14)
        font = QFont(self.title_label.font())
        font.setBold(True)
        self.title_label.setFont(font)

        self.empty_label = QLabel(EMPTY_STATE_TEXT, self)
        self.empty_label.move(16, 98)

        self.add_condition_button = QPushButton("+ Add condition", self)
        self.add_condition_button.clicked.connect(self._on_add_condition)

        self.add_group_button = QPushButton("+ Add condition group", self)
        self.add_group_button.clicked.connect(self._on_add_group)

    # ==================== Public API ====================

    def set_animate(self, animate: bool):
        self._animate = animate
        if not animate:
            self._reconciler.reset()

    def teardown(self):
        """Release global listeners and pending animation callbacks."""
        self.session.drag.teardown()
        self._reconciler.dispose()
        if self._animation is not None:
            self._animation.stop()

    # ==================== Rendering ====================

    @Slot()
    def refresh_layout(self):
        """Lay out the current tree and move child widgets into place."""
        session = self.session
        config = session.config
        layout = session.layout()
        geometry = dropdown_geometry(session.forest, layout, config)

        self.setFixedSize(int(geometry.width), int(geometry.height))
        self.empty_label.setVisible(geometry.show_empty_message)
        self.add_condition_button.move(16, int(geometry.footer_top))
        self.add_condition_button.adjustSize()
        self.add_group_button.move(24 + self.add_condition_button.width(), int(geometry.footer_top))
        self.add_group_button.adjustSize()

        if self._animation is not None:
            self._animation.stop()
            self._animation = None

        if self._animate:
            self._reconciler.reconcile(layout)

        live_rows, live_groups, live_connectors = set(), set(), set()
        self._targets = {}

        for entry in layout.entries:
            offset = self._reconciler.offset(entry.key) if self._animate else 0.0
            if isinstance(entry, GroupEntry):
                live_groups.add(entry.key)
                box = self._group_box(entry.key)
                box.update_from(entry)
                self._place(box, entry.left, entry.top, offset)
                connector_left = entry.left - config.field_left
            else:
                live_rows.add(entry.key)
                row = self._condition_row(entry.key)
                self._update_row(row, entry)
                row.resize(int(config.field_width), int(config.row_height))
                if entry.is_dragging:
                    self._place(row, entry.drag_left + config.field_left, entry.drag_top, 0.0)
                else:
                    self._place(row, entry.left + config.field_left, entry.top, offset)
                connector_left = entry.left

            live_connectors.add(entry.key)
            cell = self._connector_cell(entry)
            highlighted = session.highlights.connector_key == entry.connector_key
            cell.update_from(entry, highlighted)
            cell.resize(int(config.connector_width), int(config.row_height))
            self._place(cell, connector_left, entry.top, offset)

        # Dragged rows float above everything else.
        for entry in layout.entries:
            if isinstance(entry, RowEntry) and entry.is_dragging:
                self._rows[entry.key].raise_()

        self._prune(self._rows, live_rows)
        self._prune(self._groups, live_groups)
        self._prune(self._connectors, live_connectors)

        if session.forest is not self._rendered_forest:
            self._rendered_forest = session.forest
            self.filter_changed.emit()

    def _place(self, widget: QWidget, left: float, top: float, offset: float):
        target = QPoint(int(left), int(top))
        self._targets[widget] = target
        widget.move(target.x(), int(top + offset))
        widget.raise_()
        widget.show()

    @Slot()
    def _animate_to_rest(self):
        """Slide every widget from its offset position to its layout position."""
        group = QParallelAnimationGroup(self)
        for widget, target in self._targets.items():
            if widget.pos() == target:
                continue
            animation = QPropertyAnimation(widget, b"pos", group)
            animation.setDuration(ANIMATION_DURATION_MS)
            animation.setEasingCurve(QEasingCurve.Type.OutCubic)
            animation.setStartValue(widget.pos())
            animation.setEndValue(target)
            group.addAnimation(animation)
        self._animation = group
        group.start()

    def _prune(self, widgets: dict, live: set):
        for key in list(widgets):
            if key not in live:
                widgets.pop(key).deleteLater()

    def _update_row(self, row: ConditionRow, entry: RowEntry):
        session = self.session
        condition = find_condition(session.forest, entry.key)
        if condition is None:
            return
        row.update_from(
            field_name=session.catalog.display_name(condition.column_id),
            operator=condition.operator,
            value=condition.value,
            field_highlighted=session.highlights.field_id == condition.id,
            operator_highlighted=session.highlights.operator_id == condition.id,
            value_error=session.value_error_id == condition.id,
        )

    # ==================== Child widgets ====================

    def _condition_row(self, condition_id: str) -> ConditionRow:
        row = self._rows.get(condition_id)
        if row is not None:
            return row

        row = ConditionRow(self)
        row.field_clicked.connect(lambda: self._show_field_menu(condition_id))
        row.operator_clicked.connect(lambda: self._show_operator_menu(condition_id))
        row.value_edited.connect(lambda text: self.session.change_value(condition_id, text))
        row.delete_clicked.connect(lambda: self._remove_condition(condition_id))
        row.drag_pressed.connect(lambda pos: self._begin_drag(condition_id, pos))
        self._rows[condition_id] = row
        return row

    def _group_box(self, group_id: str) -> GroupBox:
        box = self._groups.get(group_id)
        if box is not None:
            return box

        box = GroupBox(self)
        box.add_condition_requested.connect(lambda: self._add_to_group(group_id, False))
        box.add_group_requested.connect(lambda: self._add_to_group(group_id, True))
        box.delete_requested.connect(lambda: self.session.delete_group(group_id))
        box.menu_opened.connect(lambda: self.session.interaction.open(GROUP_MENU, group_id))
        box.menu_closed.connect(lambda: self.session.interaction.close(GROUP_MENU))
        self._groups[group_id] = box
        return box

    def _connector_cell(self, entry: LayoutEntry) -> ConnectorCell:
        cell = self._connectors.get(entry.key)
        if cell is None:
            cell = ConnectorCell(self)
            cell.connector_selected.connect(
                lambda connector: self._set_connector(connector, *cell.scope)
            )
            self._connectors[entry.key] = cell
        # The scope changes when the item is dragged elsewhere.
        cell.scope = (entry.parent_group_id, entry.grandparent_group_id)
        return cell

    # ==================== Actions ====================

    def mousePressEvent(self, event):
        self.session.highlights.clear()
        super().mousePressEvent(event)

    @Slot()
    def _on_add_condition(self):
        self.session.add_condition()

    @Slot()
    def _on_add_group(self):
        self.session.add_group()

    def _add_to_group(self, group_id: str, as_group: bool):
        group_entry = self.session.layout().entry(group_id)
        parent_id = group_entry.parent_group_id if group_entry is not None else None
        if as_group:
            self.session.add_group_to_group(group_id, parent_id)
        else:
            self.session.add_condition_to_group(group_id, parent_id)

    def _remove_condition(self, condition_id: str):
        entry = self.session.layout().entry(condition_id)
        self.session.remove_condition(condition_id, entry.parent_group_id if entry else None)

    def _set_connector(self, connector: str, group_id: Optional[str], parent_group_id: Optional[str]):
        self.session.interaction.open(CONNECTOR_MENU, group_id)
        self.session.set_connector(connector, group_id, parent_group_id)

    def _begin_drag(self, condition_id: str, global_pos):
        local = self.mapFromGlobal(global_pos)
        self.session.drag.begin(condition_id, local.x(), local.y(), self.session.layout())

    def _exec_menu(
        self,
        kind: str,
        condition_id: str,
        anchor: QWidget,
        options: list[tuple[str, str]],
        current: Optional[str],
        on_selected: Callable[[str], None]
    ):
        """Show a pick menu under anchor, guarded so only one menu is open."""
        self.session.interaction.open(kind, condition_id)
        menu = QMenu(self)
        for value, label in options:
            action = menu.addAction(label)
            action.setData(value)
            action.setCheckable(True)
            action.setChecked(value == current)
        try:
            chosen = menu.exec(anchor.mapToGlobal(QPoint(0, anchor.height())))
        finally:
            self.session.interaction.close(kind)
        if chosen is not None:
            on_selected(chosen.data())

    def _show_field_menu(self, condition_id: str):
        condition = find_condition(self.session.forest, condition_id)
        row = self._rows.get(condition_id)
        if condition is None or row is None:
            return
        self.session.interaction.open(FIELD_MENU, condition_id)
        menu = FieldMenu(self.session.catalog, condition.column_id, self.session.config, self)
        menu.column_selected.connect(lambda column_id: self.session.select_field(condition_id, column_id))
        menu.closed.connect(lambda: self.session.interaction.close(FIELD_MENU))
        anchor = row.field_button
        menu.move(anchor.mapToGlobal(QPoint(0, anchor.height())))
        menu.show()

    def _show_operator_menu(self, condition_id: str):
        condition = find_condition(self.session.forest, condition_id)
        row = self._rows.get(condition_id)
        if condition is None or row is None:
            return
        options = [
            (operator, OPERATOR_LABELS[operator])
            for operator in self.session.catalog.operators_for(condition.column_id)
        ]
        self._exec_menu(
            OPERATOR_MENU, condition_id, row.operator_button, options, condition.operator,
            lambda operator: self.session.select_operator(condition_id, operator),
        )
