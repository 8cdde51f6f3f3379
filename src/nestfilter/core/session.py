"""
Filter session: the single owner of an editable filter tree.

FilterSession holds the current forest together with the column catalog,
the interaction and highlight state and the drag controller. Every user
action goes through one of its methods, which applies a pure mutation,
replaces the forest and forwards the serialized result to the persistence
sink.
"""

import json
from typing import Callable, Iterable, Optional

from . import mutations
from .drag import DragController, PointerCapture
from .interaction import (
    CONNECTOR_MENU,
    FIELD_MENU,
    GROUP_MENU,
    OPERATOR_MENU,
    HighlightState,
    InteractionState,
)
from .layout import (
    DEFAULT_LAYOUT,
    ROOT_CONNECTOR_KEY,
    DropTarget,
    FilterLayout,
    LayoutConfig,
    compute_layout,
    group_connector_key,
)
from .models import ColumnCatalog, FilterForest, create_condition, create_group
from .operators import is_valid_number_draft
from .query import active_conditions, build_filter_query, filtered_column_ids, filtered_column_names
from .tree import find_condition
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

PersistenceSink = Callable[[Optional[dict]], None]
"""Receives {'connector', 'items'} after each committed change, or None when empty."""


def serialize_payload(forest: FilterForest) -> Optional[dict]:
    """Payload sent to the persistence sink for a forest."""
    if forest.is_empty:
        return None
    return forest.to_dict()


class FilterSession:
    """
    Editable filter state for one table view.

    Args:
        catalog: Columns conditions can refer to.
        sink: Persistence sink called after each committed change.
        hidden_column_ids: Columns excluded from filtering.
        forest: Initial tree (empty by default).
        config: Layout geometry.
        pointer_capture: Global pointer capture used by drags.
        on_change: Called after every change of the tree, the drag preview
            or the value error flag.
    """

    def __init__(
        self,
        catalog: Optional[ColumnCatalog] = None,
        sink: Optional[PersistenceSink] = None,
        hidden_column_ids: Iterable[str] = (),
        forest: Optional[FilterForest] = None,
        config: LayoutConfig = DEFAULT_LAYOUT,
        pointer_capture: Optional[PointerCapture] = None,
        on_change: Optional[Callable[[], None]] = None
    ):
        self.catalog = catalog if catalog is not None else ColumnCatalog()
        self.hidden_column_ids = frozenset(hidden_column_ids)
        self.config = config
        self._sink = sink
        self.on_change = on_change
        self._forest = forest if forest is not None else FilterForest.empty()
        self._last_sent = self._serialized(self._forest)

        self.value_error_id: Optional[str] = None
        """Condition whose last typed value was rejected as a number."""

        self.active_add: Optional[str] = None
        """Last add action taken ('condition' or 'group'), for button highlighting."""

        self.interaction = InteractionState()
        self.highlights = HighlightState()
        self.drag = DragController(
            commit=self._drop,
            capture=pointer_capture,
            interaction=self.interaction,
            config=config,
            on_change=self._notify,
        )

    # ==================== State ====================

    @property
    def forest(self) -> FilterForest:
        return self._forest

    @property
    def connector(self) -> str:
        return self._forest.connector

    @property
    def has_filter_items(self) -> bool:
        return not self._forest.is_empty

    @property
    def filter_query(self) -> Optional[dict]:
        return build_filter_query(self._forest, self.catalog, self.hidden_column_ids)

    @property
    def active_conditions(self) -> list[dict]:
        return active_conditions(self.filter_query)

    @property
    def has_active_filters(self) -> bool:
        return bool(self.active_conditions)

    @property
    def filtered_column_ids(self) -> set[str]:
        return filtered_column_ids(self.filter_query)

    @property
    def filtered_column_names(self) -> list[str]:
        return filtered_column_names(self._forest.items, self.catalog)

    def layout(self) -> FilterLayout:
        """Lay out the current tree, honouring an in-flight drag."""
        return compute_layout(self._forest, self.config, self.drag.preview)

    # ==================== Commit ====================

    def _notify(self):
        if self.on_change is not None:
            self.on_change()

    @staticmethod
    def _serialized(forest: FilterForest) -> str:
        return json.dumps(serialize_payload(forest), sort_keys=True)

    def _commit(self, forest: FilterForest, action: str):
        if forest is self._forest:
            return
        self._forest = forest
        logger.debug(f"{action}: {len(forest.items)} root items")
        self._notify()

        serialized = self._serialized(forest)
        if serialized == self._last_sent:
            return
        self._last_sent = serialized
        if self._sink is not None:
            self._sink(serialize_payload(forest))

    def load(self, config: Optional[dict]):
        """
        Replace the tree with saved state, without notifying the sink.

        Invalid conditions and empty groups in the saved state are dropped.
        """
        self.drag.cancel()
        self.interaction.close()
        self.highlights.clear()
        self.value_error_id = None
        self.active_add = None
        self._forest = FilterForest.from_dict(config, self.catalog, self.hidden_column_ids)
        self._last_sent = self._serialized(self._forest)
        logger.info(f"Loaded filter with {len(self._forest.items)} root items")
        self._notify()

    # ==================== Structure ====================

    def _new_condition(self):
        column = self.catalog.first()
        if column is None:
            return create_condition()
        return create_condition(column.id, column.field_type)

    def add_condition(self) -> str:
        """Append a condition on the first column to the root. Returns its id."""
        condition = self._new_condition()
        self.active_add = 'condition'
        self._commit(mutations.add_condition(self._forest, condition=condition), "add condition")
        return condition.id

    def add_group(self) -> str:
        """Append an empty group to the root. Returns its id."""
        group = create_group()
        self.active_add = 'group'
        self._commit(mutations.add_group(self._forest, group=group), "add group")
        return group.id

    def add_condition_to_group(self, group_id: str, parent_group_id: Optional[str] = None) -> str:
        condition = self._new_condition()
        self.interaction.close(GROUP_MENU)
        self._commit(
            mutations.add_condition_to_group(
                self._forest, group_id, parent_group_id, condition=condition
            ),
            "add condition to group",
        )
        return condition.id

    def can_add_group_to_group(self, group_id: str, parent_group_id: Optional[str] = None) -> bool:
        return mutations.can_add_group_to_group(self._forest, group_id, parent_group_id)

    def add_group_to_group(self, group_id: str, parent_group_id: Optional[str] = None) -> Optional[str]:
        """Append a sub-group; returns its id, or None if the target cannot hold one."""
        group = create_group()
        self.interaction.close(GROUP_MENU)
        forest = mutations.add_group_to_group(self._forest, group_id, parent_group_id, group=group)
        if forest is self._forest:
            return None
        self._commit(forest, "add group to group")
        return group.id

    def remove_condition(self, condition_id: str, group_id: Optional[str] = None):
        if self.value_error_id == condition_id:
            self.value_error_id = None
        self._commit(
            mutations.remove_condition(self._forest, condition_id, group_id),
            "remove condition",
        )

    def delete_group(self, group_id: str, parent_group_id: Optional[str] = None):
        self.interaction.close(GROUP_MENU)
        self._commit(mutations.delete_group(self._forest, group_id, parent_group_id), "delete group")

    def clear(self):
        self.value_error_id = None
        self.active_add = None
        self._commit(mutations.clear(self._forest), "clear")

    def move_condition(self, condition_id: str, target: DropTarget):
        self._commit(
            mutations.move_condition(self._forest, condition_id, target.group_id, target.index),
            "move condition",
        )

    def _drop(self, condition_id: str, target: DropTarget):
        self.move_condition(condition_id, target)

    # ==================== Editing ====================

    def set_connector(
        self,
        connector: str,
        group_id: Optional[str] = None,
        parent_group_id: Optional[str] = None
    ):
        """Change the connector of the root scope or of a group."""
        self.interaction.close(CONNECTOR_MENU)
        key = ROOT_CONNECTOR_KEY if group_id is None else group_connector_key(group_id)
        self.highlights.highlight_connector(key)
        self._commit(
            mutations.set_connector(self._forest, connector, group_id, parent_group_id),
            "set connector",
        )

    def select_field(self, condition_id: str, column_id: str):
        self.interaction.close(FIELD_MENU)
        self.interaction.close(OPERATOR_MENU)
        self.highlights.highlight_field(condition_id)
        self._commit(
            mutations.set_condition_field(self._forest, condition_id, column_id, self.catalog),
            "select field",
        )

    def select_operator(self, condition_id: str, operator: str):
        self.interaction.close(OPERATOR_MENU)
        self.interaction.close(FIELD_MENU)
        self.highlights.highlight_operator(condition_id)
        self._commit(
            mutations.set_condition_operator(self._forest, condition_id, operator),
            "select operator",
        )

    def change_value(self, condition_id: str, value: str) -> bool:
        """
        Apply a typed value.

        A draft that is not a valid number for a number column flags the
        condition in value_error_id and is not written; the stored value
        keeps its last valid content.

        Returns:
            True if the value was written.
        """
        condition = find_condition(self._forest, condition_id)
        if condition is None:
            logger.debug(f"change_value: condition {condition_id} not found")
            return False

        if self.catalog.column_type(condition.column_id) == 'number' and not is_valid_number_draft(value):
            self.value_error_id = condition_id
            logger.debug(f"Rejected numeric draft for {condition_id}: {value!r}")
            self._notify()
            return False

        if self.value_error_id == condition_id:
            self.value_error_id = None
        self._commit(
            mutations.set_condition_value(self._forest, condition_id, value),
            "change value",
        )
        return True

    # ==================== Catalog ====================

    def set_catalog(self, catalog: ColumnCatalog, hidden_column_ids: Iterable[str] = ()):
        """Swap the column catalog; the tree keeps any dangling references."""
        self.catalog = catalog
        self.hidden_column_ids = frozenset(hidden_column_ids)

