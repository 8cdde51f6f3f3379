"""
Tests for the command-line interface.
"""

import json
from pathlib import Path

import pytest

from nestfilter.cli.main import create_parser, format_tree, main


@pytest.fixture
def columns_file(tmp_path: Path, catalog) -> Path:
    path = tmp_path / "columns.json"
    path.write_text(json.dumps([c.to_dict() for c in catalog]), encoding="utf-8")
    return path


@pytest.fixture
def filter_file(tmp_path: Path, grouped_forest) -> Path:
    path = tmp_path / "filter.json"
    path.write_text(json.dumps(grouped_forest.to_dict()), encoding="utf-8")
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_query_requires_columns(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["query", "f.json"])

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out


class TestShow:
    """Tests for the show command."""

    def test_tree_output(self, filter_file, columns_file, capsys):
        assert main(["show", str(filter_file), "--columns", str(columns_file)]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "Where Name contains... 'x'",
            "and (Any of the following are true...)",
            "    Where Age = '1'",
            "    or (All of the following are true...)",
            "        Where Name contains... ''",
        ]

    def test_without_catalog_uses_column_ids(self, grouped_forest):
        assert format_tree(grouped_forest)[0] == "Where name contains... 'x'"

    def test_empty_filter(self, tmp_path: Path, capsys):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"connector": "and", "items": []}), encoding="utf-8")
        assert main(["show", str(path)]) == 0
        assert capsys.readouterr().out.strip() == "No filter conditions are applied"

    def test_missing_file(self, tmp_path: Path):
        assert main(["show", str(tmp_path / "nope.json")]) == 1

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        assert main(["show", str(path)]) == 1


class TestLayout:
    """Tests for the layout command."""

    def test_layout_output(self, filter_file, capsys):
        assert main(["layout", str(filter_file)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "[row A] top=123.5 left=32 -"
        assert lines[1].startswith("[group G] top=163.5 left=96 650x167")
        assert lines[-1] == "dropdown: 762x391.5 (footer at 354.5)"


class TestQuery:
    """Tests for the query command."""

    def test_prints_normalized_query(self, filter_file, columns_file, capsys):
        assert main(["query", str(filter_file), "--columns", str(columns_file)]) == 0
        query = json.loads(capsys.readouterr().out)
        assert query["connector"] == "and"
        assert query["items"][1]["conditions"] == [
            {"type": "condition", "columnId": "age", "operator": "eq", "value": "1"},
        ]

    def test_hidden_columns(self, filter_file, columns_file, capsys):
        assert main(["query", str(filter_file), "--columns", str(columns_file), "--hidden", "age"]) == 0
        query = json.loads(capsys.readouterr().out)
        assert len(query["items"]) == 1

    def test_filters_records(self, filter_file, columns_file, tmp_path: Path, capsys):
        rows = tmp_path / "rows.json"
        rows.write_text(json.dumps([
            {"name": "Max", "age": "1"},
            {"name": "Max", "age": "2"},
            {"name": "Ann", "age": "1"},
        ]), encoding="utf-8")
        assert main(["query", str(filter_file), "--columns", str(columns_file), "--rows", str(rows)]) == 0
        assert json.loads(capsys.readouterr().out) == [{"name": "Max", "age": "1"}]

    def test_bad_catalog(self, filter_file, tmp_path: Path):
        assert main(["query", str(filter_file), "--columns", str(tmp_path / "none.json")]) == 1


class TestValidate:
    """Tests for the validate command."""

    def test_valid(self, filter_file, columns_file, capsys):
        assert main(["validate", str(filter_file), "--columns", str(columns_file)]) == 0
        assert capsys.readouterr().out.strip() == "✓ Valid filter (2 root items, 2 group levels)"

    def test_problems(self, tmp_path: Path, capsys):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"connector": "and", "items": [
            {"id": "g", "type": "group", "connector": "and", "conditions": []},
        ]}), encoding="utf-8")
        assert main(["validate", str(path)]) == 1
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "✗ 1 problem(s) found"
        assert out[1] == "  - items.0: empty group"
