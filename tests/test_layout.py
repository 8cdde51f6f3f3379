"""
Tests for the layout pass, drop-target resolution and dropdown sizing.
"""

import pytest

from nestfilter.core.layout import (
    DEFAULT_LAYOUT,
    GROUP_HEADER_TEXT,
    GROUP_PLACEHOLDER_TEXT,
    DragPreview,
    DropTarget,
    FixedStrideVirtualizer,
    GroupEntry,
    RowEntry,
    compute_layout,
    describe_entries,
    dropdown_geometry,
    field_menu_height,
    field_menu_rows,
    group_connector_key,
    resolve_drop_target,
)
from nestfilter.core.models import FilterForest

from conftest import condition, group


class TestConfig:
    """Tests for derived geometry."""

    def test_derived_values(self):
        config = DEFAULT_LAYOUT
        assert config.row_stride == 40
        assert config.field_left == 64
        assert config.first_row_top == 123.5
        assert config.group_child_top_offset == 39.5


class TestRootRows:
    """Tests for rows of the root scope."""

    def test_empty_forest_has_no_entries(self):
        layout = compute_layout(FilterForest.empty())
        assert layout.is_empty
        assert layout.content_bottom == DEFAULT_LAYOUT.where_top

    def test_single_condition(self):
        """The first row of a scope shows no connector."""
        layout = compute_layout(FilterForest(items=(condition("a"),)))
        entry = layout.entry("a")
        assert isinstance(entry, RowEntry)
        assert entry.top == 123.5
        assert entry.left == 32
        assert not entry.show_connector
        assert not entry.show_where

    def test_connector_visibility(self, flat_forest):
        """Only the second sibling gets the connector control; later ones show text."""
        layout = compute_layout(flat_forest)
        a, b, c = layout.entries
        assert (a.show_connector, a.show_connector_control) == (False, False)
        assert (b.show_connector, b.show_connector_control) == (True, True)
        assert (c.show_connector, c.show_connector_control) == (True, False)
        assert {e.connector for e in layout.entries} == {"and"}
        assert [e.top for e in layout.entries] == [123.5, 163.5, 203.5]
        assert layout.content_bottom == 235.5

    def test_root_connector_change_propagates(self, flat_forest):
        """Every root row reports the root connector."""
        layout = compute_layout(FilterForest(items=flat_forest.items, connector="or"))
        assert {e.connector for e in layout.entries} == {"or"}
        assert {e.connector_key for e in layout.entries} == {"root"}

    def test_layout_is_deterministic(self, grouped_forest):
        """The same forest always lays out identically."""
        assert compute_layout(grouped_forest) == compute_layout(grouped_forest)


class TestGroups:
    """Tests for group boxes and their children."""

    def test_empty_group_box(self):
        """Empty groups show the placeholder and a fixed height."""
        layout = compute_layout(FilterForest(items=(group("g"),)))
        entry = layout.entry("g")
        assert isinstance(entry, GroupEntry)
        assert entry.is_empty
        assert entry.placeholder_text == GROUP_PLACEHOLDER_TEXT
        assert entry.header_text is None
        assert entry.height == 39
        assert entry.width == 570
        assert entry.left == 96
        assert entry.can_add_group

    def test_nested_layout(self, grouped_forest):
        """Groups precede their children; children are indented and offset."""
        layout = compute_layout(grouped_forest)
        assert [e.key for e in layout.entries] == ["A", "G", "B", "H", "C"]

        g = layout.entry("G")
        assert g.top == 163.5
        assert g.width == 650
        assert g.height == 167
        assert g.header_text == GROUP_HEADER_TEXT["or"]
        assert g.group_connector == "or"
        assert g.connector == "and"
        assert g.can_add_group

        b = layout.entry("B")
        assert b.top == 203
        assert b.left == 107
        assert b.depth == 1
        assert b.show_where
        assert b.connector == "or"
        assert b.connector_key == group_connector_key("G")

        h = layout.entry("H")
        assert h.top == 243
        assert h.left == 171
        assert h.width == 570
        assert h.height == 79.5
        assert h.show_connector_control
        assert not h.can_add_group

        c = layout.entry("C")
        assert c.depth == 2
        assert c.top == 282.5
        assert c.left == 182
        assert c.parent_group_id == "H"
        assert c.grandparent_group_id == "G"

        assert layout.content_bottom == 330.5
        assert layout.group_meta["H"].row_count == 1

    def test_group_without_sub_groups_uses_base_width(self):
        layout = compute_layout(FilterForest(items=(group("g", condition("a")),)))
        assert layout.entry("g").width == 570
        assert layout.entry("g").height == 79.5

    def test_group_leading_its_scope_shows_where(self, grouped_forest):
        """A sub-group that opens its parent scope shows "Where" like a row would."""
        layout = compute_layout(grouped_forest)
        assert layout.entry("G").show_where is False
        assert layout.entry("H").show_where is False

        forest = FilterForest(items=(group("g", group("h", condition("c")), condition("d")),))
        layout = compute_layout(forest)
        assert layout.entry("g").show_where is False
        assert layout.entry("h").show_where is True
        assert layout.entry("c").show_where is True
        assert layout.entry("d").show_where is False


class TestDropdown:
    """Tests for dropdown sizing."""

    def test_empty(self):
        forest = FilterForest.empty()
        geometry = dropdown_geometry(forest, compute_layout(forest))
        assert (geometry.width, geometry.height, geometry.footer_top) == (332, 166, 132)
        assert geometry.show_empty_message

    def test_conditions_only(self, flat_forest):
        geometry = dropdown_geometry(flat_forest, compute_layout(flat_forest))
        assert geometry.width == 590
        assert geometry.footer_top == 259.5
        assert geometry.height == 296.5
        assert not geometry.show_empty_message

    def test_groups(self):
        forest = FilterForest(items=(group("g"),))
        assert dropdown_geometry(forest, compute_layout(forest)).width == 683

    def test_nested_groups(self, grouped_forest):
        geometry = dropdown_geometry(grouped_forest, compute_layout(grouped_forest))
        assert geometry.width == 762
        assert geometry.height == 391.5


class TestDropTarget:
    """Tests for pointer hit testing."""

    def test_root_index_from_midpoints(self, flat_forest):
        """The index counts siblings whose midpoint is above the pointer."""
        layout = compute_layout(flat_forest)
        assert resolve_drop_target(layout, 100, 170, "a") == DropTarget(None, 0)
        assert resolve_drop_target(layout, 100, 230, "a") == DropTarget(None, 2)

    def test_outside_root_area(self, flat_forest):
        layout = compute_layout(flat_forest)
        assert resolve_drop_target(layout, 100, 400, "a") is None
        assert resolve_drop_target(layout, 600, 170, "a") is None
        assert resolve_drop_target(layout, 10, 170, "a") is None

    def test_innermost_group_wins(self, grouped_forest):
        layout = compute_layout(grouped_forest)
        assert resolve_drop_target(layout, 200, 300, "A") == DropTarget("H", 1)
        assert resolve_drop_target(layout, 120, 210, "A") == DropTarget("G", 0)

    def test_empty_layout(self):
        assert resolve_drop_target(compute_layout(FilterForest.empty()), 50, 130, "a") is None


class TestDragPreview:
    """Tests for laying out an in-flight drag."""

    def test_preview_moves_row_and_flags_it(self, flat_forest):
        preview = DragPreview("a", 40, 200, DropTarget(None, 2))
        layout = compute_layout(flat_forest, preview=preview)
        assert [e.key for e in layout.entries] == ["b", "c", "a"]

        dragged = layout.entry("a")
        assert dragged.is_dragging
        assert (dragged.drag_left, dragged.drag_top) == (40, 200)
        assert not dragged.show_connector_control
        assert not layout.entry("b").show_connector

    def test_preview_without_target_keeps_order(self, flat_forest):
        layout = compute_layout(flat_forest, preview=DragPreview("b", 0, 0))
        assert [e.key for e in layout.entries] == ["a", "b", "c"]
        assert layout.entry("b").is_dragging
        assert not layout.entry("b").show_connector_control


class FakeVirtualizer:
    def __init__(self, items):
        self.items = items

    def visible_items(self):
        return self.items


class TestFieldMenu:
    """Tests for the virtualized column-pick menu."""

    @pytest.mark.parametrize("count,height", [(0, 73), (1, 86), (3, 152), (100, 277)])
    def test_height(self, count, height):
        assert field_menu_height(count) == height

    def test_rows_follow_virtualizer(self, catalog):
        """Only visible indices that resolve to a column are positioned."""
        rows = field_menu_rows(catalog, FakeVirtualizer([(0, 0.0), (2, 66.0), (5, 165.0)]))
        assert [row.column.id for row in rows] == ["name", "age"]
        assert [row.top for row in rows] == [53, 119]
        assert rows[0].left == 12
        assert rows[0].width == 172
        assert rows[0].height == 34

    def test_fixed_stride_virtualizer(self):
        virtualizer = FixedStrideVirtualizer(count=100, stride=33, viewport_height=200, overscan=2)
        assert [i for i, _ in virtualizer.visible_items()] == list(range(0, 9))

        virtualizer.scroll_to(330)
        visible = virtualizer.visible_items()
        assert visible[0] == (8, 264)
        assert visible[-1][0] == 18

        virtualizer.scroll_to(-5)
        assert virtualizer.scroll_offset == 0
        virtualizer.scroll_to(99999)
        assert virtualizer.scroll_offset == 3100

    def test_empty_virtualizer(self):
        assert FixedStrideVirtualizer(0, 33, 200).visible_items() == []


def test_describe_entries(flat_forest):
    lines = describe_entries(compute_layout(flat_forest).entries)
    assert lines[0] == "[row a] top=123.5 left=32 -"
    assert lines[1] == "[row b] top=163.5 left=32 <and>"
    assert lines[2] == "[row c] top=203.5 left=32 and"
