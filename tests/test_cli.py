"""Tests for the schema-core command line."""

import json

import pytest

from schema_core.cli import main


BASIC_SQL = """
CREATE TABLE a (id INTEGER PRIMARY KEY);
CREATE TABLE b (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES a(id));
"""


@pytest.fixture
def sql_file(tmp_path):
    path = tmp_path / "schema.sql"
    path.write_text(BASIC_SQL)
    return path


def run_json(capsys, argv):
    """Run a JSON-printing command, returning (exit code, parsed output)."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code, json.loads(capsys.readouterr().out)


def test_detect(capsys, sql_file):
    """Test format detection from a file."""
    code, data = run_json(capsys, ["detect", str(sql_file)])
    assert code == 0
    assert data["format"] == "sql"


def test_parse(capsys, sql_file):
    """Test parsing prints the schema and warnings."""
    code, data = run_json(capsys, ["parse", str(sql_file), "--layout"])
    assert code == 0
    assert [t["name"] for t in data["schema"]["tables"]] == ["a", "b"]
    assert all(t["position"] for t in data["schema"]["tables"])


def test_parse_error(capsys, tmp_path):
    """Test a syntax error exits 1 with the fragment."""
    path = tmp_path / "bad.sql"
    path.write_text("CREATE TABLE t (id INTEGER PRIMARY KEY, name VARCHAR(20) BOGUS);")
    code, data = run_json(capsys, ["parse", str(path)])
    assert code == 1
    assert data["status"] == "error"
    assert data["fragment"] == "name VARCHAR(20) BOGUS"


def test_missing_file(capsys, tmp_path):
    """Test an unreadable input exits 1."""
    code, data = run_json(capsys, ["edges", str(tmp_path / "missing.sql")])
    assert code == 1
    assert "Cannot read" in data["error"]


def test_edges(capsys, sql_file):
    """Test edges are derived from the references."""
    _, data = run_json(capsys, ["edges", str(sql_file)])
    assert data["count"] == 1
    assert data["edges"][0]["source_column_name"] == "a_id"


def test_layout(capsys, sql_file):
    """Test the layout command reports layers."""
    code, data = run_json(capsys, ["layout", str(sql_file), "--export"])
    assert code == 0
    assert sorted(data["layout"]["layers"].values()) == [0, 1]


def test_validate_and_summarize(capsys, sql_file):
    """Test the report commands."""
    _, data = run_json(capsys, ["validate", str(sql_file)])
    assert data["summary"]["valid"] is True
    _, data = run_json(capsys, ["summarize", str(sql_file)])
    assert data["summary"]["total_edges"] == 1


def test_fk_indexes(capsys, sql_file):
    """Test missing foreign-key indexes are reported."""
    _, data = run_json(capsys, ["fk-indexes", str(sql_file)])
    assert [i["name"] for i in data["created"]] == ["fk_b_a_id"]


def test_export_sql(capsys, sql_file):
    """Test export writes plain DDL."""
    main(["export", str(sql_file), "--to", "sql", "--dialect", "mysql"])
    out = capsys.readouterr().out
    assert "CREATE TABLE b" in out
    assert "ALTER TABLE b ADD CONSTRAINT" in out


def test_json_document_input(capsys, sql_file, tmp_path):
    """Test commands accept the JSON document written by export."""
    main(["export", str(sql_file), "--to", "json"])
    path = tmp_path / "schema.json"
    path.write_text(capsys.readouterr().out)

    _, data = run_json(capsys, ["edges", str(path)])
    assert data["count"] == 1


def test_non_utf8_file(capsys, tmp_path):
    """Test a file that is not UTF-8 exits 1 with an error."""
    path = tmp_path / "latin1.sql"
    path.write_bytes("CREATE TABLE caf\xe9 (id INTEGER);".encode("latin-1"))
    code, data = run_json(capsys, ["parse", str(path)])
    assert code == 1
    assert "not valid UTF-8" in data["error"]


def test_preset_list(capsys):
    """Test listing presets."""
    code, data = run_json(capsys, ["preset"])
    assert code == 0
    assert "blog" in [p["id"] for p in data["presets"]]


def test_preset_sql(capsys):
    """Test printing a preset as DDL."""
    main(["preset", "blog", "--dialect", "mysql"])
    out = capsys.readouterr().out
    assert "CREATE TABLE posts (" in out
    assert "ALTER TABLE posts ADD CONSTRAINT fk_posts_user_id" in out


def test_preset_unknown(capsys):
    """Test an unknown preset fails with a JSON error."""
    code, data = run_json(capsys, ["preset", "spaceship"])
    assert code == 1
    assert "Unknown preset" in data["error"]


def test_compare_and_migrate(capsys, sql_file, tmp_path):
    """Test comparing two files and printing both migration scripts."""
    new_file = tmp_path / "new.sql"
    new_file.write_text(BASIC_SQL + "CREATE TABLE c (id INTEGER PRIMARY KEY);\n")

    code, data = run_json(capsys, ["compare", str(sql_file), str(new_file)])
    assert code == 0
    assert data["diff"]["tables_added"] == ["c"]

    main(["migrate", str(sql_file), str(new_file)])
    assert "CREATE TABLE c (" in capsys.readouterr().out

    main(["migrate", str(sql_file), str(new_file), "--down"])
    assert "DROP TABLE c;" in capsys.readouterr().out
