"""
Pure operations transforming one filter forest into another.

Every function takes the current forest and returns a new one; untouched
subtrees are shared with the input. Addressing an item that no longer
exists is not an error: the UI may hold an id captured before another
structural change, so the operation degrades to a no-op and the input
forest is returned unchanged.
"""

from dataclasses import replace
from typing import Callable, Optional

from .models import (
    MAX_GROUP_DEPTH,
    ColumnCatalog,
    ConditionItem,
    FilterForest,
    FilterItem,
    GroupItem,
    create_condition,
    create_group,
)
from .operators import (
    DEFAULT_CONNECTOR,
    default_operator_for_type,
    operator_requires_value,
    operators_for_type,
    validate_connector,
    validate_operator,
)
from .tree import find_condition, find_group, group_depth, locate, map_group
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)


def _new_condition(
    column_id: Optional[str],
    catalog: Optional[ColumnCatalog]
) -> ConditionItem:
    column_type = catalog.column_type(column_id) if catalog is not None else 'single_line_text'
    return create_condition(column_id, column_type)


# ==================== Adding ====================

def add_condition(
    forest: FilterForest,
    column_id: Optional[str] = None,
    catalog: Optional[ColumnCatalog] = None,
    condition: Optional[ConditionItem] = None
) -> FilterForest:
    """
    Append a new condition to the root scope.

    Args:
        forest: Current forest.
        column_id: Column the condition starts on (may be None).
        catalog: Catalog used to pick the default operator for the column.
        condition: Pre-built condition to append instead of creating one.

    Returns:
        New forest with the condition appended.
    """
    if condition is None:
        condition = _new_condition(column_id, catalog)
    return replace(forest, items=forest.items + (condition,))


def add_group(forest: FilterForest, group: Optional[GroupItem] = None) -> FilterForest:
    """Append a new empty 'and' group to the root scope."""
    if group is None:
        group = create_group()
    return replace(forest, items=forest.items + (group,))


def add_condition_to_group(
    forest: FilterForest,
    group_id: str,
    parent_group_id: Optional[str] = None,
    column_id: Optional[str] = None,
    catalog: Optional[ColumnCatalog] = None,
    condition: Optional[ConditionItem] = None
) -> FilterForest:
    """
    Append a new condition to a group's children.

    Args:
        forest: Current forest.
        group_id: Target group.
        parent_group_id: Optional id of the group containing the target.
        column_id: Column the condition starts on.
        catalog: Catalog used to pick the default operator.
        condition: Pre-built condition to append instead of creating one.

    Returns:
        New forest, or the same forest if the group no longer exists.
    """
    group = find_group(forest.items, group_id, parent_group_id)
    if group is None:
        logger.debug(f"add_condition_to_group: group {group_id} not found")
        return forest

    if condition is None:
        condition = _new_condition(column_id, catalog)
    items, _ = map_group(
        forest.items, group.id,
        lambda g: replace(g, children=g.children + (condition,))
    )
    return replace(forest, items=items)


def can_add_group_to_group(
    forest: FilterForest,
    group_id: str,
    parent_group_id: Optional[str] = None
) -> bool:
    """Check whether a sub-group may be added inside a group."""
    group = find_group(forest.items, group_id, parent_group_id)
    if group is None:
        return False
    depth = group_depth(forest, group.id)
    return depth is not None and depth < MAX_GROUP_DEPTH


def add_group_to_group(
    forest: FilterForest,
    group_id: str,
    parent_group_id: Optional[str] = None,
    group: Optional[GroupItem] = None
) -> FilterForest:
    """
    Append a new empty sub-group inside a group.

    Groups that are themselves nested inside another group cannot contain
    sub-groups; for those the forest is returned unchanged.

    Returns:
        New forest, or the same forest if the group is missing or nested.
    """
    target = find_group(forest.items, group_id, parent_group_id)
    if target is None:
        logger.debug(f"add_group_to_group: group {group_id} not found")
        return forest

    if not can_add_group_to_group(forest, target.id):
        logger.warning(f"Refusing to add a sub-group to nested group {group_id}")
        return forest

    if group is None:
        group = create_group()
    items, _ = map_group(
        forest.items, target.id,
        lambda g: replace(g, children=g.children + (group,))
    )
    return replace(forest, items=items)


# ==================== Removing ====================

def remove_condition_from_group_tree(
    items: tuple[FilterItem, ...],
    target_group_id: str,
    condition_id: str
) -> tuple[FilterItem, ...]:
    """
    Remove a condition from one group, wherever that group sits in the tree.

    Every group is walked; the one matching target_group_id loses the
    condition and is dropped from its parent if it ends up empty. A group
    emptied because its only sub-group was dropped is dropped as well.

    Args:
        items: Items to rebuild (root items or a group's children).
        target_group_id: Group that owns the condition.
        condition_id: Condition to remove.

    Returns:
        Rebuilt items; the input tuple itself if nothing changed.
    """
    result = []
    changed = False
    for item in items:
        if not isinstance(item, GroupItem):
            result.append(item)
            continue

        if item.id == target_group_id:
            remaining = tuple(c for c in item.children if c.id != condition_id)
            if len(remaining) == len(item.children):
                result.append(item)
                continue
            changed = True
            if remaining:
                result.append(replace(item, children=remaining))
            continue

        children = remove_condition_from_group_tree(item.children, target_group_id, condition_id)
        if children is item.children:
            result.append(item)
            continue
        changed = True
        if children:
            result.append(replace(item, children=children))

    return tuple(result) if changed else items


def remove_condition(
    forest: FilterForest,
    condition_id: str,
    group_id: Optional[str] = None
) -> FilterForest:
    """
    Delete a condition.

    Args:
        forest: Current forest.
        condition_id: Condition to delete.
        group_id: Group owning the condition, or None for the root scope.
            If the condition is not found in the addressed scope, its actual
            scope is looked up.

    Returns:
        New forest without the condition (and without any group the
        deletion emptied).
    """
    if find_condition(forest, condition_id) is None:
        logger.debug(f"remove_condition: condition {condition_id} not found")
        return forest

    if group_id is not None:
        items = remove_condition_from_group_tree(forest.items, group_id, condition_id)
        if items is not forest.items:
            return replace(forest, items=items)

    location = locate(forest, condition_id)
    if location.group_id is None:
        remaining = tuple(
            item for item in forest.items
            if isinstance(item, GroupItem) or item.id != condition_id
        )
        return replace(forest, items=remaining)

    items = remove_condition_from_group_tree(forest.items, location.group_id, condition_id)
    return replace(forest, items=items)


def _drop_empty_ancestors(
    items: tuple[FilterItem, ...],
    group_id: str,
    keep_group_id: Optional[str] = None
) -> tuple[FilterItem, ...]:
    """Remove a group, then any ancestor the removal leaves without children."""
    result = []
    for item in items:
        if not isinstance(item, GroupItem):
            result.append(item)
            continue
        if item.id == group_id:
            continue
        children = _drop_empty_ancestors(item.children, group_id, keep_group_id)
        if children is item.children:
            result.append(item)
        elif children or item.id == keep_group_id:
            result.append(replace(item, children=children))
    if len(result) == len(items) and all(a is b for a, b in zip(result, items)):
        return items
    return tuple(result)


def delete_group(
    forest: FilterForest,
    group_id: str,
    parent_group_id: Optional[str] = None
) -> FilterForest:
    """
    Remove a group and its entire subtree.

    A parent group left without children by the removal is removed too.

    Returns:
        New forest, or the same forest if the group no longer exists.
    """
    group = find_group(forest.items, group_id, parent_group_id)
    if group is None:
        logger.debug(f"delete_group: group {group_id} not found")
        return forest
    return replace(forest, items=_drop_empty_ancestors(forest.items, group.id))


def clear(forest: FilterForest) -> FilterForest:
    """Remove every item and reset the root connector."""
    return FilterForest(items=(), connector=DEFAULT_CONNECTOR)


# ==================== Connectors ====================

def set_connector(
    forest: FilterForest,
    connector: str,
    group_id: Optional[str] = None,
    parent_group_id: Optional[str] = None
) -> FilterForest:
    """
    Replace the single connector of a scope.

    Args:
        forest: Current forest.
        connector: 'and' or 'or'.
        group_id: Group whose connector changes, or None for the root.
        parent_group_id: Optional id of the group containing group_id.

    Returns:
        New forest with the scope's connector replaced.

    Raises:
        ValueError: If the connector is unknown.
    """
    validate_connector(connector)

    if group_id is None:
        if forest.connector == connector:
            return forest
        return replace(forest, connector=connector)

    group = find_group(forest.items, group_id, parent_group_id)
    if group is None:
        logger.debug(f"set_connector: group {group_id} not found")
        return forest
    if group.connector == connector:
        return forest

    items, _ = map_group(forest.items, group.id, lambda g: replace(g, connector=connector))
    return replace(forest, items=items)


# ==================== Condition fields ====================

def _update_items(
    items: tuple[FilterItem, ...],
    condition_id: str,
    update: Callable[[ConditionItem], ConditionItem]
) -> tuple[FilterItem, ...]:
    result = []
    changed = False
    for item in items:
        if isinstance(item, GroupItem):
            children = _update_items(item.children, condition_id, update)
            if children is not item.children:
                item = replace(item, children=children)
                changed = True
        elif item.id == condition_id:
            updated = update(item)
            if updated != item:
                item = updated
                changed = True
        result.append(item)
    return tuple(result) if changed else items


def update_condition(
    forest: FilterForest,
    condition_id: str,
    update: Callable[[ConditionItem], ConditionItem]
) -> FilterForest:
    """Replace one condition by update(condition), keeping its id and position."""
    items = _update_items(forest.items, condition_id, update)
    if items is forest.items:
        return forest
    return replace(forest, items=items)


def set_condition_field(
    forest: FilterForest,
    condition_id: str,
    column_id: str,
    catalog: Optional[ColumnCatalog] = None
) -> FilterForest:
    """
    Point a condition at another column.

    The operator is kept when it is valid for the new column type and
    replaced by the type's default otherwise.
    """
    column_type = catalog.column_type(column_id) if catalog is not None else 'single_line_text'
    allowed = operators_for_type(column_type)

    def apply(condition: ConditionItem) -> ConditionItem:
        operator = condition.operator
        if operator not in allowed:
            operator = default_operator_for_type(column_type)
        return replace(condition, column_id=column_id, operator=operator)

    return update_condition(forest, condition_id, apply)


def set_condition_operator(forest: FilterForest, condition_id: str, operator: str) -> FilterForest:
    """
    Change a condition's operator.

    Operators that take no value (is empty, is not empty) clear the value.

    Raises:
        ValueError: If the operator is unknown.
    """
    validate_operator(operator)
    keep_value = operator_requires_value(operator)

    def apply(condition: ConditionItem) -> ConditionItem:
        return replace(
            condition,
            operator=operator,
            value=condition.value if keep_value else '',
        )

    return update_condition(forest, condition_id, apply)


def set_condition_value(forest: FilterForest, condition_id: str, value: str) -> FilterForest:
    return update_condition(forest, condition_id, lambda c: replace(c, value=value))


# ==================== Moving ====================

def _without_condition(
    items: tuple[FilterItem, ...],
    condition_id: str,
    keep_group_id: Optional[str]
) -> tuple[tuple[FilterItem, ...], Optional[ConditionItem]]:
    """
    Detach a condition from wherever it lives.

    Groups emptied by the detachment are dropped, except keep_group_id.
    """
    result = []
    removed = None
    for item in items:
        if removed is not None:
            result.append(item)
        elif isinstance(item, GroupItem):
            children, removed = _without_condition(item.children, condition_id, keep_group_id)
            if removed is None:
                result.append(item)
            elif children or item.id == keep_group_id:
                result.append(replace(item, children=children))
        elif item.id == condition_id:
            removed = item
        else:
            result.append(item)
    if removed is None:
        return items, None
    return tuple(result), removed


def _insert_at(
    children: tuple[FilterItem, ...],
    index: int,
    item: FilterItem
) -> tuple[FilterItem, ...]:
    index = max(0, min(index, len(children)))
    return children[:index] + (item,) + children[index:]


def move_condition(
    forest: FilterForest,
    condition_id: str,
    target_group_id: Optional[str],
    index: int
) -> FilterForest:
    """
    Move a condition into another scope (or another slot of its own scope).

    Removal from the origin scope and insertion at the destination happen
    in a single substitution, so no intermediate tree is ever observable.
    A group emptied by the removal is dropped, unless it is the destination.

    Args:
        forest: Current forest.
        condition_id: Condition to move.
        target_group_id: Destination group, or None for the root scope.
        index: Insertion index among the destination's children, counted
            after the condition has been removed from its origin.

    Returns:
        New forest, or the same forest if the condition or destination no
        longer exists or the position does not change.
    """
    if target_group_id is not None and find_group(forest.items, target_group_id) is None:
        logger.debug(f"move_condition: destination group {target_group_id} not found")
        return forest

    items, condition = _without_condition(forest.items, condition_id, target_group_id)
    if condition is None:
        logger.debug(f"move_condition: condition {condition_id} not found")
        return forest

    if target_group_id is None:
        items = _insert_at(items, index, condition)
    else:
        items, found = map_group(
            items, target_group_id,
            lambda g: replace(g, children=_insert_at(g.children, index, condition))
        )
        if not found:
            return forest

    moved = replace(forest, items=items)
    if moved == forest:
        return forest
    return moved

