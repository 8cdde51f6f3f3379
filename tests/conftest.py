"""
Pytest configuration and shared fixtures.

This file contains pytest configuration and reusable test fixtures.
"""

import pytest
from pathlib import Path

from nestfilter.core.models import (
    Column,
    ColumnCatalog,
    ConditionItem,
    FilterForest,
    GroupItem,
)


@pytest.fixture(autouse=True)
def isolated_data_directory(tmp_path: Path, monkeypatch):
    """
    Keep settings and saved filters out of the real user profile.

    Yields:
        Path used as the persistent data directory.
    """
    data_dir = tmp_path / "appdata"
    data_dir.mkdir()
    monkeypatch.setattr(
        "nestfilter.infrastructure.paths.get_persistent_data_directory",
        lambda: data_dir,
    )
    monkeypatch.setattr(
        "nestfilter.config.settings.get_persistent_data_directory",
        lambda: data_dir,
    )

    import nestfilter.config.settings as settings_mod
    settings_mod._settings_manager = None
    yield data_dir
    settings_mod._settings_manager = None


@pytest.fixture
def catalog() -> ColumnCatalog:
    """
    Create a small column catalog for testing.

    Returns:
        Catalog with a text, a long text and a number column.
    """
    return ColumnCatalog([
        Column(id="name", name="Name", type="single_line_text"),
        Column(id="notes", name="Notes", type="long_text"),
        Column(id="age", name="Age", type="number"),
    ])


def condition(item_id: str, column_id: str = "name", operator: str = "contains", value: str = "") -> ConditionItem:
    """Build a condition with a fixed id."""
    return ConditionItem(id=item_id, column_id=column_id, operator=operator, value=value)


def group(item_id: str, *children, connector: str = "and") -> GroupItem:
    """Build a group with a fixed id."""
    return GroupItem(id=item_id, connector=connector, children=tuple(children))


@pytest.fixture
def flat_forest() -> FilterForest:
    """Three root conditions joined by 'and'."""
    return FilterForest(items=(
        condition("a", value="ann"),
        condition("b", "age", "gt", "30"),
        condition("c", "notes", "is_empty"),
    ))


@pytest.fixture
def grouped_forest() -> FilterForest:
    """
    Root condition A followed by group G holding B and nested group H holding C.

    Returns:
        Forest: [A, G[B, H[C]]]
    """
    return FilterForest(items=(
        condition("A", value="x"),
        group("G", condition("B", "age", "eq", "1"), group("H", condition("C")), connector="or"),
    ))
