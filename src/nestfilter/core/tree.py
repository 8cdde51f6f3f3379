"""
Traversal and lookup helpers for filter trees.

Connectors and drag targets are scope-relative, so every traversal tracks
the depth of each item together with the ids of its parent and grandparent
groups.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from .models import ConditionItem, FilterForest, FilterItem, GroupItem


@dataclass(frozen=True)
class TreeVisit:
    """One item reached by a pre-order walk."""

    item: FilterItem
    depth: int
    """0 for root items, 1 for children of root groups, 2 for children of nested groups."""

    scope: str
    """'root' or 'group'."""

    parent_group_id: Optional[str]
    grandparent_group_id: Optional[str]
    index_in_scope: int


@dataclass(frozen=True)
class Location:
    """Where an item lives: its owning group (None for root) and its index there."""

    group_id: Optional[str]
    index: int
    depth: int


def walk(forest: FilterForest) -> Iterator[TreeVisit]:
    """Walk a forest in pre-order, groups before their children."""
    yield from _walk_items(forest.items, 0, None, None)


def _walk_items(
    items: Iterable[FilterItem],
    depth: int,
    parent_group_id: Optional[str],
    grandparent_group_id: Optional[str]
) -> Iterator[TreeVisit]:
    for index, item in enumerate(items):
        yield TreeVisit(
            item=item,
            depth=depth,
            scope='root' if parent_group_id is None else 'group',
            parent_group_id=parent_group_id,
            grandparent_group_id=grandparent_group_id,
            index_in_scope=index,
        )
        if isinstance(item, GroupItem):
            yield from _walk_items(item.children, depth + 1, item.id, parent_group_id)


def iter_conditions(items: Iterable[FilterItem]) -> Iterator[ConditionItem]:
    """Yield every condition below items, in display order."""
    for item in items:
        if isinstance(item, GroupItem):
            yield from iter_conditions(item.children)
        else:
            yield item


def find_group(
    items: tuple[FilterItem, ...],
    group_id: str,
    parent_group_id: Optional[str] = None
) -> Optional[GroupItem]:
    """
    Resolve a group by id.

    With a parent hint the group is looked up among that parent's children
    (two levels deep); without one, among the root items. If the hinted
    lookup misses, the whole tree is searched before giving up.

    Args:
        items: Root items to search.
        group_id: Id of the group to resolve.
        parent_group_id: Optional id of the group containing the target.

    Returns:
        The group, or None if the id no longer exists.
    """
    if parent_group_id is not None:
        parent = _find_in(items, parent_group_id)
        if isinstance(parent, GroupItem):
            candidate = _find_in(parent.children, group_id)
            if isinstance(candidate, GroupItem):
                return candidate
    else:
        candidate = _find_in(items, group_id)
        if isinstance(candidate, GroupItem):
            return candidate

    for visit in _walk_items(items, 0, None, None):
        if isinstance(visit.item, GroupItem) and visit.item.id == group_id:
            return visit.item
    return None


def _find_in(items: Iterable[FilterItem], item_id: str) -> Optional[FilterItem]:
    for item in items:
        if item.id == item_id:
            return item
    return None


def find_condition(forest: FilterForest, condition_id: str) -> Optional[ConditionItem]:
    for condition in iter_conditions(forest.items):
        if condition.id == condition_id:
            return condition
    return None


def locate(forest: FilterForest, item_id: str) -> Optional[Location]:
    """Find the scope and index of an item, or None if it does not exist."""
    for visit in walk(forest):
        if visit.item.id == item_id:
            return Location(visit.parent_group_id, visit.index_in_scope, visit.depth)
    return None


def group_depth(forest: FilterForest, group_id: str) -> Optional[int]:
    """Depth of a group (0 for root-level groups), or None if it does not exist."""
    for visit in walk(forest):
        if isinstance(visit.item, GroupItem) and visit.item.id == group_id:
            return visit.depth
    return None


def scope_children(
    forest: FilterForest,
    group_id: Optional[str] = None
) -> Optional[tuple[FilterItem, ...]]:
    """Children of a scope: the root items, or a group's children."""
    if group_id is None:
        return forest.items
    group = find_group(forest.items, group_id)
    return group.children if group else None


def scope_connector(forest: FilterForest, group_id: Optional[str] = None) -> Optional[str]:
    if group_id is None:
        return forest.connector
    group = find_group(forest.items, group_id)
    return group.connector if group else None


def has_groups(forest: FilterForest) -> bool:
    return any(isinstance(item, GroupItem) for item in forest.items)


def has_nested_groups(forest: FilterForest) -> bool:
    """Check whether any group, at any level, contains a sub-group."""
    for visit in walk(forest):
        item = visit.item
        if isinstance(item, GroupItem) and any(isinstance(c, GroupItem) for c in item.children):
            return True
    return False


def max_group_nesting(forest: FilterForest) -> int:
    """
    Number of group levels in the tree.

    0 when there are no groups, 1 for root-level groups only, 2 when a
    group contains a sub-group.
    """
    levels = 0
    for visit in walk(forest):
        if isinstance(visit.item, GroupItem):
            levels = max(levels, visit.depth + 1)
    return levels


def map_group(
    items: tuple[FilterItem, ...],
    group_id: str,
    update: Callable[[GroupItem], Optional[GroupItem]]
) -> tuple[tuple[FilterItem, ...], bool]:
    """
    Rebuild items with one group replaced.

    Only the path leading to the group is rebuilt; every other subtree is
    shared with the input. If update returns None the group is removed.

    Args:
        items: Items to rebuild.
        group_id: Group to replace.
        update: Function receiving the group and returning its replacement.

    Returns:
        Tuple of (new items, whether the group was found).
    """
    result = []
    found = False
    for item in items:
        if found or not isinstance(item, GroupItem):
            result.append(item)
            continue
        if item.id == group_id:
            found = True
            replacement = update(item)
            if replacement is not None:
                result.append(replacement)
            continue
        children, found = map_group(item.children, group_id, update)
        if found:
            result.append(GroupItem(id=item.id, connector=item.connector, children=children))
        else:
            result.append(item)
    if not found:
        return items, False
    return tuple(result), True
