"""
Layout pass turning a filter forest into positioned entries.

compute_layout() is a pure function of the forest, an optional drag
preview and the geometry constants. It emits one entry per visible row or
group box, in pre-order, with everything a renderer needs: absolute
position, depth, scope, connector visibility and group chrome. The same
input always produces equal output.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Protocol, Union

from .models import ColumnCatalog, Column, FilterForest, FilterItem, GroupItem
from .mutations import move_condition
from .tree import has_groups, has_nested_groups


EMPTY_STATE_TEXT = "No filter conditions are applied"
WHERE_TEXT = "Where"
GROUP_PLACEHOLDER_TEXT = "Drag conditions here to add them to this group"
GROUP_HEADER_TEXT = {
    'and': "All of the following are true...",
    'or': "Any of the following are true...",
}
ROOT_CONNECTOR_KEY = "root"


def group_connector_key(group_id: str) -> str:
    """Key identifying the connector control of a group's scope."""
    return f"group:{group_id}"


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry constants of the filter dropdown, in pixels."""

    where_top: float = 131
    row_left: float = 32
    row_height: float = 32
    row_gap: float = 8
    connector_width: float = 56
    connector_gap: float = 8
    field_width: float = 456
    field_font_size: float = 13
    field_text_align_offset: float = 2

    group_empty_width: float = 570
    group_nested_width: float = 650
    group_empty_height: float = 39
    group_padding_bottom: float = 8
    group_child_inset: float = 11
    group_where_top: float = 47

    dropdown_width_empty: float = 332
    dropdown_width_conditions: float = 590
    dropdown_width_groups: float = 683
    dropdown_width_nested: float = 762
    dropdown_base_height: float = 166
    empty_footer_top: float = 132
    footer_gap: float = 24
    footer_height: float = 16
    bottom_padding: float = 21

    field_menu_width: float = 204
    field_menu_max_height: float = 277
    field_menu_top_padding: float = 20
    field_menu_header_height: float = 13
    field_menu_text_height: float = 13
    field_menu_text_gap: float = 20
    field_menu_bottom_padding: float = 20
    field_menu_row_height: float = 34
    field_menu_item_left: float = 12
    field_menu_item_width: float = 172

    @property
    def row_stride(self) -> float:
        return self.row_height + self.row_gap

    @property
    def field_left(self) -> float:
        """Offset of the field box (and of nested group boxes) from a row's left."""
        return self.connector_width + self.connector_gap

    @property
    def first_row_top(self) -> float:
        # Rows are aligned so their text baseline matches the "Where" label.
        return self.where_top - (self.row_height - self.field_font_size) / 2 + self.field_text_align_offset

    @property
    def group_child_top_offset(self) -> float:
        return self.group_where_top - (self.row_height - self.field_font_size) / 2 + self.field_text_align_offset

    @property
    def field_menu_row_stride(self) -> float:
        return self.field_menu_text_height + self.field_menu_text_gap

    @property
    def field_menu_first_row_top(self) -> float:
        return self.field_menu_top_padding + self.field_menu_header_height + self.field_menu_text_gap


DEFAULT_LAYOUT = LayoutConfig()


@dataclass(frozen=True)
class DropTarget:
    """Where a dragged condition would land."""

    group_id: Optional[str]
    """Destination group, or None for the root scope."""

    index: int
    """Insertion index among the destination's children once the dragged condition is removed."""


@dataclass(frozen=True)
class DragPreview:
    """In-flight drag state the layout pass takes into account."""

    condition_id: str
    left: float
    top: float
    """Floating position of the dragged row."""

    target: Optional[DropTarget] = None


@dataclass(frozen=True)
class RowEntry:
    """Positioned row for one condition."""

    key: str
    top: float
    left: float
    depth: int
    scope: str
    parent_group_id: Optional[str]
    grandparent_group_id: Optional[str]
    index_in_scope: int
    show_connector: bool
    """False for the first item of a scope."""

    show_connector_control: bool
    """True only for the second item of a scope; later siblings show static text."""

    connector: str
    connector_key: str
    show_where: bool = False
    """First item of a group scope: shows 'Where' instead of a connector."""

    is_dragging: bool = False
    drag_left: Optional[float] = None
    drag_top: Optional[float] = None

    @property
    def kind(self) -> str:
        return 'row'


@dataclass(frozen=True)
class GroupEntry:
    """Positioned box for one group."""

    key: str
    top: float
    left: float
    depth: int
    scope: str
    parent_group_id: Optional[str]
    grandparent_group_id: Optional[str]
    index_in_scope: int
    show_connector: bool
    show_connector_control: bool
    connector: str
    """Connector of the scope this group sits in."""

    connector_key: str
    group_connector: str
    """Connector of the group's own children."""

    width: float
    height: float
    is_empty: bool
    header_text: Optional[str]
    placeholder_text: Optional[str]
    can_add_group: bool
    show_where: bool = False
    """First item of a group scope: shows 'Where' instead of a connector."""

    @property
    def kind(self) -> str:
        return 'group'


LayoutEntry = Union[RowEntry, GroupEntry]


@dataclass(frozen=True)
class GroupMeta:
    start_top: float
    bottom_top: float
    row_count: int


@dataclass(frozen=True)
class FilterLayout:
    """Result of one layout pass."""

    entries: tuple[LayoutEntry, ...]
    content_bottom: float
    group_meta: dict = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def entry(self, key: str) -> Optional[LayoutEntry]:
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None

    def rows(self) -> list[RowEntry]:
        return [e for e in self.entries if isinstance(e, RowEntry)]

    def groups(self) -> list[GroupEntry]:
        return [e for e in self.entries if isinstance(e, GroupEntry)]

    def tops(self) -> dict[str, float]:
        return {entry.key: entry.top for entry in self.entries}


class _LayoutBuilder:
    """Accumulates entries during one layout pass."""

    def __init__(self, config: LayoutConfig, nested: bool):
        self.config = config
        self.nested = nested
        self.entries: list[LayoutEntry] = []
        self.group_meta: dict[str, GroupMeta] = {}

    def place(
        self,
        items: tuple[FilterItem, ...],
        depth: int,
        parent_group_id: Optional[str],
        grandparent_group_id: Optional[str],
        top: float,
        left: float,
        connector: str,
        connector_key: str
    ) -> float:
        """Place items of one scope starting at top; return the next free top."""
        config = self.config
        scope = 'root' if parent_group_id is None else 'group'

        for index, item in enumerate(items):
            common = dict(
                key=item.id,
                top=top,
                depth=depth,
                scope=scope,
                parent_group_id=parent_group_id,
                grandparent_group_id=grandparent_group_id,
                index_in_scope=index,
                show_connector=index > 0,
                show_connector_control=index == 1,
                connector=connector,
                connector_key=connector_key,
                show_where=index == 0 and parent_group_id is not None,
            )

            if not isinstance(item, GroupItem):
                self.entries.append(RowEntry(
                    left=left,
                    **common,
                ))
                top += config.row_stride
                continue

            group_left = left + config.field_left
            width = config.group_nested_width if (self.nested and depth == 0) else config.group_empty_width

            if item.is_empty:
                self.entries.append(GroupEntry(
                    left=group_left,
                    group_connector=item.connector,
                    width=width,
                    height=config.group_empty_height,
                    is_empty=True,
                    header_text=None,
                    placeholder_text=GROUP_PLACEHOLDER_TEXT,
                    can_add_group=depth == 0,
                    **common,
                ))
                self.group_meta[item.id] = GroupMeta(top, top + config.group_empty_height, 0)
                top += config.group_empty_height + config.row_gap
                continue

            # The box precedes its children but its height depends on them.
            slot = len(self.entries)
            children_end = self.place(
                item.children,
                depth + 1,
                item.id,
                parent_group_id,
                top + config.group_child_top_offset,
                group_left + config.group_child_inset,
                item.connector,
                group_connector_key(item.id),
            )
            height = (children_end - config.row_gap - top) + config.group_padding_bottom
            self.entries.insert(slot, GroupEntry(
                left=group_left,
                group_connector=item.connector,
                width=width,
                height=height,
                is_empty=False,
                header_text=GROUP_HEADER_TEXT[item.connector],
                placeholder_text=None,
                can_add_group=depth == 0,
                **common,
            ))
            self.group_meta[item.id] = GroupMeta(top, top + height, len(item.children))
            top += height + config.row_gap

        return top


def compute_layout(
    forest: FilterForest,
    config: LayoutConfig = DEFAULT_LAYOUT,
    preview: Optional[DragPreview] = None
) -> FilterLayout:
    """
    Lay out a forest.

    With a drag preview carrying a resolved target, the forest is laid out
    as if the dragged condition had already been dropped there, so sibling
    rows make room for it; the dragged row itself is flagged and carries
    its floating position.

    Args:
        forest: Forest to lay out.
        config: Geometry constants.
        preview: Optional in-flight drag state.

    Returns:
        FilterLayout with entries in pre-order.
    """
    if preview is not None and preview.target is not None:
        forest = move_condition(
            forest, preview.condition_id, preview.target.group_id, preview.target.index
        )

    builder = _LayoutBuilder(config, has_nested_groups(forest))
    builder.place(
        forest.items, 0, None, None,
        config.first_row_top, config.row_left,
        forest.connector, ROOT_CONNECTOR_KEY,
    )

    entries = builder.entries
    if preview is not None:
        entries = [
            replace(entry, is_dragging=True, show_connector_control=False,
                    drag_left=preview.left, drag_top=preview.top)
            if isinstance(entry, RowEntry) and entry.key == preview.condition_id else entry
            for entry in entries
        ]

    if entries:
        content_bottom = max(
            entry.top + (config.row_height if isinstance(entry, RowEntry) else entry.height)
            for entry in entries
        )
    else:
        content_bottom = config.where_top

    return FilterLayout(
        entries=tuple(entries),
        content_bottom=content_bottom,
        group_meta=builder.group_meta,
    )


# ==================== Hit testing ====================

def _entry_height(entry: LayoutEntry, config: LayoutConfig) -> float:
    return config.row_height if isinstance(entry, RowEntry) else entry.height


def _row_right(config: LayoutConfig) -> float:
    return config.field_left + config.field_width


def resolve_drop_target(
    layout: FilterLayout,
    x: float,
    y: float,
    dragged_id: str,
    config: LayoutConfig = DEFAULT_LAYOUT
) -> Optional[DropTarget]:
    """
    Resolve the scope and insertion index under a pointer position.

    The innermost group box containing the pointer wins; outside every
    group box, the root scope accepts the pointer while it stays within
    the rows' bounding area. The index counts the scope's children (other
    than the dragged row) whose vertical midpoint lies above the pointer.

    Args:
        layout: Layout computed from the tree as it was when the drag began.
        x: Pointer x in layout coordinates.
        y: Pointer y in layout coordinates.
        dragged_id: Id of the dragged condition.
        config: Geometry constants used to compute the layout.

    Returns:
        DropTarget, or None if the pointer is outside every scope.
    """
    if layout.is_empty:
        return None

    target_group: Optional[GroupEntry] = None
    for entry in layout.groups():
        inside = (entry.left <= x <= entry.left + entry.width
                  and entry.top <= y <= entry.top + entry.height)
        if inside and (target_group is None or entry.depth > target_group.depth):
            target_group = entry

    if target_group is None:
        left = config.row_left
        right = max(
            [config.row_left + _row_right(config)]
            + [g.left + g.width for g in layout.groups()]
        )
        top = config.first_row_top - config.row_gap
        bottom = layout.content_bottom + config.row_gap
        if not (left <= x <= right and top <= y <= bottom):
            return None
        group_id = None
    else:
        group_id = target_group.key

    siblings = [
        entry for entry in layout.entries
        if entry.parent_group_id == group_id and entry.key != dragged_id
    ]
    index = sum(
        1 for entry in siblings
        if entry.top + _entry_height(entry, config) / 2 < y
    )
    return DropTarget(group_id=group_id, index=index)


# ==================== Dropdown chrome ====================

@dataclass(frozen=True)
class DropdownGeometry:
    width: float
    height: float
    footer_top: float
    show_empty_message: bool


def dropdown_geometry(
    forest: FilterForest,
    layout: FilterLayout,
    config: LayoutConfig = DEFAULT_LAYOUT
) -> DropdownGeometry:
    """Size the dropdown hosting the filter rows."""
    if forest.is_empty:
        return DropdownGeometry(
            width=config.dropdown_width_empty,
            height=config.dropdown_base_height,
            footer_top=config.empty_footer_top,
            show_empty_message=True,
        )

    if has_nested_groups(forest):
        width = config.dropdown_width_nested
    elif has_groups(forest):
        width = config.dropdown_width_groups
    else:
        width = config.dropdown_width_conditions

    footer_top = layout.content_bottom + config.footer_gap
    return DropdownGeometry(
        width=width,
        height=footer_top + config.footer_height + config.bottom_padding,
        footer_top=footer_top,
        show_empty_message=False,
    )


# ==================== Field menu ====================

class ScrollVirtualizer(Protocol):
    """Maps an item count and scroll offset to the visible items."""

    def visible_items(self) -> list[tuple[int, float]]:
        """Return (index, start offset) pairs of the visible items."""
        ...


@dataclass(frozen=True)
class FieldMenuRow:
    column: Column
    index: int
    top: float
    left: float
    width: float
    height: float


def field_menu_height(column_count: int, config: LayoutConfig = DEFAULT_LAYOUT) -> float:
    """Height of the column-pick menu, capped at its maximum height."""
    content = config.field_menu_first_row_top + config.field_menu_bottom_padding
    if column_count > 0:
        content += (column_count - 1) * config.field_menu_row_stride + config.field_menu_text_height
    return min(config.field_menu_max_height, content)


def field_menu_rows(
    catalog: ColumnCatalog,
    virtualizer: ScrollVirtualizer,
    config: LayoutConfig = DEFAULT_LAYOUT
) -> list[FieldMenuRow]:
    """
    Position the visible rows of the column-pick menu.

    Args:
        catalog: Columns offered in the menu, in display order.
        virtualizer: Source of the visible (index, start) pairs.
        config: Geometry constants.

    Returns:
        One FieldMenuRow per visible index that resolves to a column.
    """
    columns = catalog.columns
    rows = []
    for index, start in virtualizer.visible_items():
        if not 0 <= index < len(columns):
            continue
        rows.append(FieldMenuRow(
            column=columns[index],
            index=index,
            top=config.field_menu_first_row_top + start,
            left=config.field_menu_item_left,
            width=config.field_menu_item_width,
            height=config.field_menu_row_height,
        ))
    return rows


class FixedStrideVirtualizer:
    """
    Virtualizer for rows of constant stride.

    Returns every index intersecting the viewport plus a few rows of
    overscan on each side.
    """

    def __init__(self, count: int, stride: float, viewport_height: float, overscan: int = 4):
        self.count = count
        self.stride = stride
        self.viewport_height = viewport_height
        self.overscan = overscan
        self.scroll_offset = 0.0

    def scroll_to(self, offset: float):
        max_offset = max(0.0, self.count * self.stride - self.viewport_height)
        self.scroll_offset = max(0.0, min(offset, max_offset))

    def visible_items(self) -> list[tuple[int, float]]:
        if self.count <= 0 or self.stride <= 0:
            return []
        first = int(self.scroll_offset // self.stride) - self.overscan
        last = int((self.scroll_offset + self.viewport_height) // self.stride) + self.overscan
        first = max(0, first)
        last = min(self.count - 1, last)
        return [(index, index * self.stride) for index in range(first, last + 1)]


def describe_entries(entries: Iterable[LayoutEntry]) -> list[str]:
    """Render entries as indented text lines (used by the CLI)."""
    lines = []
    for entry in entries:
        indent = "  " * entry.depth
        if isinstance(entry, GroupEntry):
            label = entry.header_text or entry.placeholder_text
            lines.append(
                f"{indent}[group {entry.key}] top={entry.top:g} left={entry.left:g} "
                f"{entry.width:g}x{entry.height:g} {label}"
            )
        else:
            if entry.show_where:
                prefix = WHERE_TEXT
            elif not entry.show_connector:
                prefix = "-"
            elif entry.show_connector_control:
                prefix = f"<{entry.connector}>"
            else:
                prefix = entry.connector
            lines.append(f"{indent}[row {entry.key}] top={entry.top:g} left={entry.left:g} {prefix}")
    return lines
