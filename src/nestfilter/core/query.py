"""
Normalization of a filter tree into the query sent to a data source.

The editable tree may hold incomplete conditions (no field picked yet, an
empty value, a column that has since been hidden). The normalized query
keeps only conditions that can actually be evaluated, trims their values
and flattens nested groups into their root-level group. This module also
evaluates a normalized query against plain records.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from .models import ColumnCatalog, ConditionItem, FilterForest, FilterItem, GroupItem
from .operators import operator_requires_value, operators_for_type
from .tree import iter_conditions


def normalize_condition(
    condition: ConditionItem,
    catalog: ColumnCatalog,
    hidden_column_ids: Iterable[str] = ()
) -> Optional[dict]:
    """
    Normalize one condition.

    Args:
        condition: Condition from the tree.
        catalog: Columns the condition may refer to.
        hidden_column_ids: Columns excluded from filtering.

    Returns:
        Dictionary with 'type', 'columnId', 'operator' and trimmed 'value',
        or None if the condition cannot be evaluated.
    """
    if not condition.column_id or condition.column_id in set(hidden_column_ids):
        return None
    column = catalog.get(condition.column_id)
    if column is None:
        return None
    if condition.operator not in operators_for_type(column.field_type):
        return None

    value = condition.value.strip()
    if operator_requires_value(condition.operator) and not value:
        return None

    return {
        'type': 'condition',
        'columnId': condition.column_id,
        'operator': condition.operator,
        'value': value,
    }


def _normalize_group(group: GroupItem, catalog: ColumnCatalog, hidden: set) -> list[dict]:
    result = []
    for child in group.children:
        if isinstance(child, GroupItem):
            result.extend(_normalize_group(child, catalog, hidden))
            continue
        normalized = normalize_condition(child, catalog, hidden)
        if normalized:
            result.append(normalized)
    return result


def build_filter_query(
    forest: FilterForest,
    catalog: ColumnCatalog,
    hidden_column_ids: Iterable[str] = ()
) -> Optional[dict]:
    """
    Build the normalized query for a forest.

    Args:
        forest: Current filter tree.
        catalog: Column catalog.
        hidden_column_ids: Columns excluded from filtering.

    Returns:
        Dictionary with 'connector' and 'items', or None when no condition
        survives normalization.
    """
    hidden = set(hidden_column_ids)
    items = []
    for item in forest.items:
        if isinstance(item, GroupItem):
            conditions = _normalize_group(item, catalog, hidden)
            if conditions:
                items.append({
                    'type': 'group',
                    'connector': item.connector,
                    'conditions': conditions,
                })
            continue
        normalized = normalize_condition(item, catalog, hidden)
        if normalized:
            items.append(normalized)

    if not items:
        return None
    return {'connector': forest.connector, 'items': items}


def active_conditions(query: Optional[dict]) -> list[dict]:
    """Flatten the conditions of a normalized query."""
    if not query:
        return []
    conditions = []
    for item in query['items']:
        if item['type'] == 'condition':
            conditions.append(item)
        else:
            conditions.extend(item['conditions'])
    return conditions


def filtered_column_ids(query: Optional[dict]) -> set[str]:
    return {condition['columnId'] for condition in active_conditions(query)}


def filtered_column_names(items: Iterable[FilterItem], catalog: ColumnCatalog) -> list[str]:
    """
    Names of every column picked anywhere in the tree.

    Follows the raw tree rather than the normalized query, so a column shows
    up as soon as it is selected, before a value is entered. Names are
    returned in first-seen order without duplicates.
    """
    names = []
    seen = set()
    for condition in iter_conditions(items):
        column = catalog.get(condition.column_id)
        if column is None or column.id in seen:
            continue
        seen.add(column.id)
        names.append(column.name)
    return names


# ==================== Evaluation ====================

def _to_number(value: object) -> Optional[Decimal]:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    # NaN and Infinity parse but cannot be ordered
    return number if number.is_finite() else None


def evaluate_condition(condition: dict, record: dict, catalog: ColumnCatalog) -> Optional[bool]:
    """
    Evaluate one normalized condition against a record.

    Text comparisons are case-insensitive for contains/does not contain and
    exact otherwise; a missing cell counts as empty text. Numeric
    comparisons against an empty or non-numeric cell are false.

    Returns:
        True or False, or None if the condition cannot be evaluated
        (its column is unknown or its numeric operand is not a number).
    """
    column = catalog.get(condition['columnId'])
    if column is None:
        return None

    raw = record.get(condition['columnId'])
    text = '' if raw is None else str(raw)
    operator = condition['operator']
    value = condition['value']

    if operator == 'is_empty':
        return text == ''
    if operator == 'is_not_empty':
        return text != ''

    if column.field_type != 'number':
        if operator == 'contains':
            return value.lower() in text.lower()
        if operator == 'does_not_contain':
            return value.lower() not in text.lower()
        if operator == 'is':
            return text == value
        if operator == 'is_not':
            return text != value
        return None

    operand = _to_number(value)
    if operand is None:
        return None
    cell = _to_number(text) if text else None
    if cell is None:
        return False

    if operator == 'eq':
        return cell == operand
    if operator == 'neq':
        return cell != operand
    if operator == 'lt':
        return cell < operand
    if operator == 'gt':
        return cell > operand
    if operator == 'lte':
        return cell <= operand
    if operator == 'gte':
        return cell >= operand
    return None


def _combine(results: list[Optional[bool]], connector: str) -> Optional[bool]:
    valid = [result for result in results if result is not None]
    if not valid:
        return None
    return any(valid) if connector == 'or' else all(valid)


def matches(query: Optional[dict], record: dict, catalog: ColumnCatalog) -> bool:
    """
    Check whether a record satisfies a normalized query.

    Conditions that cannot be evaluated are ignored; a query with nothing
    left to evaluate matches every record.
    """
    if not query:
        return True

    results = []
    for item in query['items']:
        if item['type'] == 'condition':
            results.append(evaluate_condition(item, record, catalog))
        else:
            results.append(_combine(
                [evaluate_condition(c, record, catalog) for c in item['conditions']],
                item['connector'],
            ))

    combined = _combine(results, query['connector'])
    return True if combined is None else combined


def filter_records(
    records: Iterable[dict],
    query: Optional[dict],
    catalog: ColumnCatalog
) -> list[dict]:
    """Keep the records matching a normalized query, preserving order."""
    return [record for record in records if matches(query, record, catalog)]
