"""
Integration tests: editing a filter through a session, persisting it through
the filter store, and applying it to records loaded from disk.
"""

import logging
from pathlib import Path

import pytest

from nestfilter.core.layout import compute_layout, dropdown_geometry
from nestfilter.core.query import filter_records
from nestfilter.core.session import FilterSession
from nestfilter.core.tree import find_group
from nestfilter.infrastructure.catalog_loader import load_catalog, load_records
from nestfilter.infrastructure.filter_store import FilterStore, state_key
from nestfilter.infrastructure.logging_config import get_logger, parse_level, setup_logging


@pytest.fixture
def table(tmp_path: Path) -> Path:
    path = tmp_path / "orders.tsv"
    path.write_text(
        "customer\tcity\ttotal\n"
        "Ann\tParis\t120\n"
        "Bob\tLyon\t80\n"
        "Cleo\tParis\t40\n"
        "Dan\tNice\t300\n",
        encoding="utf-8",
    )
    return path


class TestEditPersistReload:
    """Tests for the full edit, save and restore cycle."""

    def test_round_trip_through_store(self, table, tmp_path: Path):
        catalog = load_catalog(table)
        records = load_records(table)
        store = FilterStore(tmp_path / "filters")
        key = state_key("local", table.stem)

        session = FilterSession(catalog=catalog, sink=store.sink(key))

        # city is Paris OR (total > 100 AND total < 500)
        city = session.add_condition()
        session.select_field(city, "city")
        session.select_operator(city, "is")
        session.change_value(city, "Paris")

        gid = session.add_group()
        low = session.add_condition_to_group(gid)
        session.select_field(low, "total")
        session.select_operator(low, "gt")
        session.change_value(low, "100")
        high = session.add_condition_to_group(gid)
        session.select_field(high, "total")
        session.select_operator(high, "lt")
        session.change_value(high, "500")
        session.set_connector("or")

        matched = filter_records(records, session.filter_query, catalog)
        assert [r["customer"] for r in matched] == ["Ann", "Cleo", "Dan"]

        restored = FilterSession(catalog=catalog)
        restored.load(store.load(key))
        assert restored.forest == session.forest
        assert compute_layout(restored.forest) == compute_layout(session.forest)

    def test_emptying_removes_saved_state(self, table, tmp_path: Path):
        catalog = load_catalog(table)
        store = FilterStore(tmp_path)
        session = FilterSession(catalog=catalog, sink=store.sink("view"))

        cid = session.add_condition()
        assert store.load("view") is not None
        session.remove_condition(cid)
        assert store.load("view") is None

    def test_drag_between_groups_updates_geometry(self, table):
        catalog = load_catalog(table)
        session = FilterSession(catalog=catalog)
        first = session.add_condition()
        second = session.add_condition()
        gid = session.add_group()

        before = dropdown_geometry(session.forest, session.layout())
        box = session.layout().entry(gid)

        session.drag.begin(first, 40, 130, session.layout())
        session.drag.release(box.left + 20, box.top + 10)

        assert [i.id for i in session.forest.items] == [second, gid]
        assert [c.id for c in find_group(session.forest.items, gid).children] == [first]
        after = dropdown_geometry(session.forest, session.layout())
        assert after.height > before.height


class TestLogging:
    """Tests for logging setup."""

    def test_parse_level(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level(logging.ERROR) == logging.ERROR
        assert parse_level("nonsense") == logging.INFO

    def test_setup_writes_and_rotates_log_file(self, tmp_path: Path):
        log_file = tmp_path / "app.log"
        setup_logging(level=logging.INFO, log_file=log_file)
        get_logger("nestfilter.test").info("first run")
        logging.shutdown()
        assert "first run" in log_file.read_text(encoding="utf-8")

        setup_logging(level=logging.INFO, log_file=log_file)
        assert (tmp_path / "app.old.log").exists()
        setup_logging(level=logging.WARNING, log_to_file=False)
