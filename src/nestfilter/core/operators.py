"""
Operator and column-type tables for filter conditions.

This module holds the fixed operator enumeration, the operator sets allowed
for each column type, display labels and the numeric draft validation used
when a value is typed into a number column.
"""

import re
from typing import Optional


CONNECTORS = ("and", "or")
"""Connector values joining siblings of one scope."""

DEFAULT_CONNECTOR = "and"

COLUMN_TYPES = ("single_line_text", "long_text", "number")

TEXT_OPERATORS = (
    "contains",
    "does_not_contain",
    "is",
    "is_not",
    "is_empty",
    "is_not_empty",
)

NUMBER_OPERATORS = (
    "eq",
    "neq",
    "lt",
    "gt",
    "lte",
    "gte",
    "is_empty",
    "is_not_empty",
)

OPERATOR_LABELS = {
    "contains": "contains...",
    "does_not_contain": "does not contain...",
    "is": "is...",
    "is_not": "is not...",
    "is_empty": "is empty",
    "is_not_empty": "is not empty",
    "eq": "=",
    "neq": "≠",
    "lt": "<",
    "gt": ">",
    "lte": "≤",
    "gte": "≥",
}

ALL_OPERATORS = tuple(OPERATOR_LABELS)

OPERATORS_REQUIRING_VALUE = frozenset({
    "contains",
    "does_not_contain",
    "is",
    "is_not",
    "eq",
    "neq",
    "lt",
    "gt",
    "lte",
    "gte",
})

MAX_NUMBER_DECIMALS = 8

_NUMBER_DRAFT_PATTERN = re.compile(r"^-?\d*(?:\.(\d*))?$")


def coerce_column_type(value: Optional[str]) -> str:
    """
    Map a raw column type to one of the supported column types.

    Anything other than 'long_text' or 'number' (including None for a
    column that no longer resolves) is treated as single line text.
    """
    if value in ("long_text", "number"):
        return value
    return "single_line_text"


def default_operator_for_type(column_type: str) -> str:
    """Numeric columns default to 'eq', text columns to 'contains'."""
    return "eq" if column_type == "number" else "contains"


def operators_for_type(column_type: str) -> tuple[str, ...]:
    """Get the operators offered for a column type."""
    return NUMBER_OPERATORS if column_type == "number" else TEXT_OPERATORS


def operator_requires_value(operator: str) -> bool:
    return operator in OPERATORS_REQUIRING_VALUE


def validate_connector(connector: str) -> str:
    """
    Check that a connector is one of the known values.

    Raises:
        ValueError: If the connector is unknown.
    """
    if connector not in CONNECTORS:
        raise ValueError(f"Unknown connector: {connector!r}")
    return connector


def validate_operator(operator: str) -> str:
    """
    Check that an operator belongs to the fixed enumeration.

    Raises:
        ValueError: If the operator is unknown.
    """
    if operator not in OPERATOR_LABELS:
        raise ValueError(f"Unknown operator: {operator!r}")
    return operator


def format_operator_label(label: str) -> str:
    """Truncate long operator labels for the narrow operator box."""
    if len(label) > 12:
        return f"{label[:11]}..."
    return label


def is_valid_number_draft(value: str) -> bool:
    """
    Check whether a partially typed value is acceptable for a number column.

    Blank input, a lone minus sign and a trailing decimal point are all
    accepted so the user can keep typing.

    Args:
        value: Raw text from the value box.

    Returns:
        True if the draft is a valid (possibly incomplete) number.
    """
    trimmed = value.strip()
    if not trimmed:
        return True
    match = _NUMBER_DRAFT_PATTERN.match(trimmed)
    if not match:
        return False
    decimals = match.group(1) or ""
    return len(decimals) <= MAX_NUMBER_DECIMALS
