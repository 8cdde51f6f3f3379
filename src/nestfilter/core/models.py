"""
Core domain models for nested filter expressions.

This module contains the immutable filter tree (conditions, groups and the
root forest) and the column catalog the tree refers to. These models are
GUI-agnostic and should not import any UI frameworks.

Every mutation of a tree produces a new tree value: items are frozen
dataclasses and children are stored as tuples, so unaffected subtrees can be
shared between successive versions.
"""

import uuid
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Optional, Union

from .operators import (
    DEFAULT_CONNECTOR,
    CONNECTORS,
    OPERATOR_LABELS,
    coerce_column_type,
    default_operator_for_type,
    operators_for_type,
    validate_connector,
    validate_operator,
)
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

MAX_GROUP_DEPTH = 1
"""Deepest depth a group may sit at; groups at this depth cannot hold sub-groups."""

FALLBACK_COLUMN_NAME = "Field"


def new_id() -> str:
    """Generate a process-wide unique item id."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Column:
    """A column that conditions can filter on."""

    id: str
    """Column identifier referenced by ConditionItem.column_id."""

    name: str
    """Display name."""

    type: Optional[str] = None
    """Raw column type ('single_line_text', 'long_text', 'number')."""

    @property
    def field_type(self) -> str:
        return coerce_column_type(self.type)

    @classmethod
    def from_dict(cls, data: dict) -> 'Column':
        return cls(
            id=str(data['id']),
            name=str(data.get('name', data['id'])),
            type=data.get('type'),
        )

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'type': self.type}


class ColumnCatalog:
    """
    Ordered set of columns with lookup by id.

    Columns may be removed or hidden independently of any filter tree, so
    every lookup tolerates ids that no longer resolve.
    """

    def __init__(self, columns: Iterable[Column] = ()):
        self._columns = tuple(columns)
        self._by_id = {column.id: column for column in self._columns}

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> 'ColumnCatalog':
        return cls(Column.from_dict(row) for row in rows)

    def __iter__(self) -> Iterator[Column]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, column_id: object) -> bool:
        return column_id in self._by_id

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns

    def get(self, column_id: Optional[str]) -> Optional[Column]:
        if column_id is None:
            return None
        return self._by_id.get(column_id)

    def first(self) -> Optional[Column]:
        return self._columns[0] if self._columns else None

    def display_name(self, column_id: Optional[str]) -> str:
        """Get a column's name, or a fallback label for a dangling reference."""
        column = self.get(column_id)
        return column.name if column else FALLBACK_COLUMN_NAME

    def column_type(self, column_id: Optional[str]) -> str:
        """Get a column's coerced type; dangling references count as text."""
        column = self.get(column_id)
        return column.field_type if column else coerce_column_type(None)

    def operators_for(self, column_id: Optional[str]) -> tuple[str, ...]:
        return operators_for_type(self.column_type(column_id))


@dataclass(frozen=True)
class ConditionItem:
    """A leaf condition comparing one column against a value."""

    id: str
    """Opaque unique id, stable for the lifetime of the condition."""

    column_id: Optional[str] = None
    """Referenced column, or None when no field has been picked yet."""

    operator: str = 'contains'
    """One of the operators in OPERATOR_LABELS."""

    value: str = ''
    """Raw value text; empty values are kept in the tree."""

    @property
    def is_group(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': 'condition',
            'columnId': self.column_id,
            'operator': self.operator,
            'value': self.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ConditionItem':
        """
        Deserialize a condition from its dictionary form.

        Args:
            data: Dictionary representation (as produced by to_dict()).

        Returns:
            ConditionItem instance.

        Raises:
            ValueError: If the operator is unknown.
        """
        item_id = data.get('id')
        column_id = data.get('columnId')
        value = data.get('value')
        return cls(
            id=item_id if isinstance(item_id, str) and item_id else new_id(),
            column_id=column_id if isinstance(column_id, str) else None,
            operator=validate_operator(data.get('operator', 'contains')),
            value=value if isinstance(value, str) else '',
        )


@dataclass(frozen=True)
class GroupItem:
    """A group of conditions (and, below the depth cap, sub-groups)."""

    id: str
    """Opaque unique id."""

    connector: str = DEFAULT_CONNECTOR
    """Connector applied to every direct child of this group."""

    children: tuple['FilterItem', ...] = field(default_factory=tuple)
    """Exclusively owned children, in display order."""

    def __post_init__(self):
        if not isinstance(self.children, tuple):
            object.__setattr__(self, 'children', tuple(self.children))
        validate_connector(self.connector)

    @property
    def is_group(self) -> bool:
        return True

    @property
    def is_empty(self) -> bool:
        return not self.children

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': 'group',
            'connector': self.connector,
            'conditions': [child.to_dict() for child in self.children],
        }


FilterItem = Union[ConditionItem, GroupItem]


@dataclass(frozen=True)
class FilterForest:
    """
    Root of a filter expression.

    Holds the top-level items and the single connector shared by all of
    them.
    """

    items: tuple[FilterItem, ...] = field(default_factory=tuple)
    """Top-level conditions and groups."""

    connector: str = DEFAULT_CONNECTOR
    """Root connector."""

    def __post_init__(self):
        if not isinstance(self.items, tuple):
            object.__setattr__(self, 'items', tuple(self.items))
        validate_connector(self.connector)

    @classmethod
    def empty(cls) -> 'FilterForest':
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        return {
            'connector': self.connector,
            'items': [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(
        cls,
        data: Optional[dict],
        catalog: Optional[ColumnCatalog] = None,
        hidden_column_ids: Iterable[str] = ()
    ) -> 'FilterForest':
        """
        Hydrate a forest from saved state.

        Saved state may be stale: columns can have been deleted or hidden
        and operators may no longer fit a column's type. Invalid pieces are
        dropped rather than rejected, groups left without children are
        dropped, and groups nested below the depth cap are discarded. An id
        seen earlier in the state is replaced with a fresh one.

        Args:
            data: Dictionary with 'connector' and 'items' keys, or None.
            catalog: Column catalog used to validate conditions. When None,
                conditions are only checked for a known operator.
            hidden_column_ids: Columns whose conditions must be dropped.

        Returns:
            A valid FilterForest (empty if data is unusable).
        """
        if not isinstance(data, dict):
            return cls.empty()

        hidden = set(hidden_column_ids)
        connector = data.get('connector')
        if connector not in CONNECTORS:
            connector = DEFAULT_CONNECTOR

        raw_items = data.get('items')
        if not isinstance(raw_items, list):
            return cls(connector=connector)

        seen_ids = set()
        items = []
        for raw in raw_items:
            parsed = _parse_item(raw, catalog, hidden, seen_ids, depth=0)
            if parsed is not None:
                items.append(parsed)

        return cls(items=tuple(items), connector=connector)


def _claim_id(raw_id: object, seen_ids: set) -> str:
    item_id = raw_id if isinstance(raw_id, str) and raw_id else new_id()
    if item_id in seen_ids:
        logger.debug(f"Replacing duplicate item id {item_id!r}")
        item_id = new_id()
    seen_ids.add(item_id)
    return item_id


def _parse_condition(
    raw: dict,
    catalog: Optional[ColumnCatalog],
    hidden: set,
    seen_ids: set
) -> Optional[ConditionItem]:
    operator = raw.get('operator')
    if not isinstance(operator, str) or operator not in OPERATOR_LABELS:
        logger.debug(f"Dropping condition with unknown operator: {operator!r}")
        return None

    column_id = raw.get('columnId')
    if catalog is not None:
        if not isinstance(column_id, str) or column_id in hidden:
            return None
        column = catalog.get(column_id)
        if column is None:
            logger.debug(f"Dropping condition on missing column: {column_id}")
            return None
        if operator not in operators_for_type(column.field_type):
            return None

    condition = ConditionItem.from_dict(raw)
    item_id = _claim_id(raw.get('id'), seen_ids)
    return condition if condition.id == item_id else replace(condition, id=item_id)


def _parse_item(
    raw: object,
    catalog: Optional[ColumnCatalog],
    hidden: set,
    seen_ids: set,
    depth: int
) -> Optional[FilterItem]:
    if not isinstance(raw, dict):
        return None

    item_type = raw.get('type')
    if item_type == 'condition':
        return _parse_condition(raw, catalog, hidden, seen_ids)

    if item_type != 'group' or not isinstance(raw.get('conditions'), list):
        return None

    if depth > MAX_GROUP_DEPTH:
        logger.warning("Dropping group nested below the maximum group depth")
        return None

    group_id = _claim_id(raw.get('id'), seen_ids)
    children = []
    for child in raw['conditions']:
        parsed = _parse_item(child, catalog, hidden, seen_ids, depth + 1)
        if parsed is not None:
            children.append(parsed)

    if not children:
        return None

    return GroupItem(
        id=group_id,
        connector='or' if raw.get('connector') == 'or' else 'and',
        children=tuple(children),
    )


def create_condition(
    column_id: Optional[str] = None,
    column_type: str = 'single_line_text'
) -> ConditionItem:
    """Create a new condition with the default operator for the column type."""
    return ConditionItem(
        id=new_id(),
        column_id=column_id,
        operator=default_operator_for_type(column_type),
        value='',
    )


def create_group() -> GroupItem:
    """Create a new, empty 'and' group."""
    return GroupItem(id=new_id(), connector=DEFAULT_CONNECTOR, children=())


def validate_filter_data(data: object, catalog: Optional[ColumnCatalog] = None) -> list[str]:
    """
    List the problems that hydration would silently repair in saved state.

    Checks the root shape, connectors, item types, operators, group depth,
    empty groups and duplicate ids; with a catalog, also checks that every
    condition refers to a known column with an operator valid for it.

    Args:
        data: Parsed JSON of a saved filter.
        catalog: Optional column catalog.

    Returns:
        Human-readable problem descriptions (empty if the state is valid).
    """
    if not isinstance(data, dict):
        return ["root is not an object"]

    problems = []
    if data.get('connector') not in CONNECTORS:
        problems.append(f"root connector {data.get('connector')!r} is not 'and' or 'or'")

    items = data.get('items')
    if not isinstance(items, list):
        problems.append("root 'items' is not a list")
        return problems

    seen_ids = set()

    def check(raw: object, depth: int, path: str):
        if not isinstance(raw, dict):
            problems.append(f"{path}: not an object")
            return

        item_id = raw.get('id')
        if not isinstance(item_id, str) or not item_id:
            problems.append(f"{path}: missing id")
        elif item_id in seen_ids:
            problems.append(f"{path}: duplicate id {item_id}")
        else:
            seen_ids.add(item_id)

        item_type = raw.get('type')
        if item_type == 'condition':
            operator = raw.get('operator')
            column_id = raw.get('columnId')
            if column_id is not None and not isinstance(column_id, str):
                problems.append(f"{path}: columnId is not a string")
            if not isinstance(operator, str) or operator not in OPERATOR_LABELS:
                problems.append(f"{path}: unknown operator {operator!r}")
            elif catalog is not None and (column_id is None or isinstance(column_id, str)):
                column = catalog.get(column_id)
                if column is None:
                    problems.append(f"{path}: unknown column {column_id!r}")
                elif operator not in operators_for_type(column.field_type):
                    problems.append(
                        f"{path}: operator {operator!r} not allowed for {column.field_type} column {column.name!r}"
                    )
            return

        if item_type != 'group':
            problems.append(f"{path}: unknown item type {item_type!r}")
            return

        if depth > MAX_GROUP_DEPTH:
            problems.append(f"{path}: group nested deeper than {MAX_GROUP_DEPTH + 1} levels")
        if raw.get('connector') not in CONNECTORS:
            problems.append(f"{path}: connector {raw.get('connector')!r} is not 'and' or 'or'")
        children = raw.get('conditions')
        if not isinstance(children, list):
            problems.append(f"{path}: 'conditions' is not a list")
            return
        if not children:
            problems.append(f"{path}: empty group")
        for index, child in enumerate(children):
            check(child, depth + 1, f"{path}.{index}")

    for index, raw in enumerate(items):
        check(raw, 0, f"items.{index}")

    return problems
