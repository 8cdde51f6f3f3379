"""
Tests for saved filter state on disk.
"""

import json
from pathlib import Path

from nestfilter.infrastructure.filter_store import FilterStore, state_key
from nestfilter.infrastructure.paths import get_filter_state_directory, sanitize_filename


class TestFilterStore:
    """Tests for FilterStore."""

    def test_state_key_format(self):
        assert state_key("base1", "tbl2") == "table-filters:base1:tbl2"

    def test_save_and_load(self, tmp_path: Path, grouped_forest):
        store = FilterStore(tmp_path / "filters")
        key = state_key("local", "people")
        store.save(key, grouped_forest.to_dict())

        path = store.path_for(key)
        assert path.exists()
        assert path.name == "table-filters_local_people.json"
        assert not path.with_suffix(".tmp").exists()
        assert store.load(key) == grouped_forest.to_dict()
        assert store.keys() == ["table-filters_local_people"]

    def test_none_removes_state(self, tmp_path: Path, grouped_forest):
        store = FilterStore(tmp_path)
        store.save("k", grouped_forest.to_dict())
        store.save("k", None)
        assert store.load("k") is None
        store.save("k", None)

    def test_corrupt_or_wrong_shape_ignored(self, tmp_path: Path):
        store = FilterStore(tmp_path)
        store.path_for("bad").write_text("{not json", encoding="utf-8")
        store.path_for("list").write_text(json.dumps([1, 2]), encoding="utf-8")
        assert store.load("bad") is None
        assert store.load("list") is None
        assert store.load("missing") is None

    def test_sink_writes_under_key(self, tmp_path: Path):
        store = FilterStore(tmp_path)
        sink = store.sink("view")
        sink({"connector": "or", "items": []})
        assert store.load("view") == {"connector": "or", "items": []}

    def test_missing_directory_lists_nothing(self, tmp_path: Path):
        assert FilterStore(tmp_path / "nope").keys() == []


class TestPaths:
    """Tests for path helpers."""

    def test_sanitize_filename(self):
        assert sanitize_filename("a/b\\c:d") == "a_b_c_d"
        assert sanitize_filename("..hidden") == "hidden"
        assert sanitize_filename("///") == "_"

    def test_default_filter_directory(self, isolated_data_directory):
        directory = get_filter_state_directory()
        assert directory == isolated_data_directory / "filters"
        assert directory.is_dir()
