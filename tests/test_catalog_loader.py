"""
Tests for column catalog and record loading.
"""

import json
from pathlib import Path

import pytest

from nestfilter.infrastructure.catalog_loader import (
    CatalogLoadError,
    get_tsv_headers,
    infer_column_type,
    load_catalog,
    load_records,
)


@pytest.fixture
def people_tsv(tmp_path: Path) -> Path:
    """Small TSV table with a text, a number and a sparse number column."""
    path = tmp_path / "people.tsv"
    path.write_text(
        "name\tage\tscore\n"
        "Ann\t34\t\n"
        "Bob\t27\t1.5\n",
        encoding="utf-8",
    )
    return path


class TestInference:
    """Tests for column type inference."""

    def test_numbers(self):
        assert infer_column_type(["1", "-2.5", ""]) == "number"

    def test_long_text(self):
        assert infer_column_type(["short", "x" * 300]) == "long_text"
        assert infer_column_type(["line\nbreak"]) == "long_text"

    def test_text_and_blank(self):
        assert infer_column_type(["a", "1"]) == "single_line_text"
        assert infer_column_type(["", ""]) == "single_line_text"


class TestLoadCatalog:
    """Tests for load_catalog."""

    def test_from_tsv(self, people_tsv):
        catalog = load_catalog(people_tsv)
        assert [c.id for c in catalog] == ["name", "age", "score"]
        assert catalog.column_type("name") == "single_line_text"
        assert catalog.column_type("age") == "number"
        assert catalog.column_type("score") == "number"
        assert get_tsv_headers(people_tsv) == ["name", "age", "score"]

    def test_from_json_list_and_object(self, tmp_path: Path):
        columns = [{"id": "c1", "name": "City"}, {"id": "c2", "type": "number"}, {"name": "no id"}]
        list_file = tmp_path / "columns.json"
        list_file.write_text(json.dumps(columns), encoding="utf-8")
        object_file = tmp_path / "wrapped.json"
        object_file.write_text(json.dumps({"columns": columns}), encoding="utf-8")

        for path in (list_file, object_file):
            catalog = load_catalog(path)
            assert [c.id for c in catalog] == ["c1", "c2"]
            assert catalog.get("c2").name == "c2"
            assert catalog.column_type("c2") == "number"

    def test_errors(self, tmp_path: Path):
        with pytest.raises(CatalogLoadError):
            load_catalog(tmp_path / "missing.json")

        bad = tmp_path / "bad.json"
        bad.write_text("{oops", encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            load_catalog(bad)

        wrong = tmp_path / "wrong.json"
        wrong.write_text(json.dumps({"columns": 3}), encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            load_catalog(wrong)


class TestLoadRecords:
    """Tests for load_records."""

    def test_from_tsv(self, people_tsv):
        records = load_records(people_tsv)
        assert records == [
            {"name": "Ann", "age": "34", "score": ""},
            {"name": "Bob", "age": "27", "score": "1.5"},
        ]

    def test_from_json(self, tmp_path: Path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps({"records": [{"a": 1}]}), encoding="utf-8")
        assert load_records(path) == [{"a": 1}]

    def test_rejects_non_records(self, tmp_path: Path):
        path = tmp_path / "records.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            load_records(path)
        with pytest.raises(CatalogLoadError):
            load_records(tmp_path / "missing.tsv")
