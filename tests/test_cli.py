import json
import textwrap

import pytest

from jsonmirror import __main__ as cli

SCHEMA = textwrap.dedent(
    """
    records:
      Group:
        table: groups
        fields:
          id: {id: int64}
          name: string
    """
)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    monkeypatch.setenv("MIRROR_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.delenv("MIRROR_APPLY_SCHEMA", raising=False)
    schema = tmp_path / "schema.yaml"
    schema.write_text(SCHEMA, encoding="utf-8")
    return tmp_path, schema


def write_document(directory, payload):
    path = directory / "document.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_writes_array_at_path(workspace, capsys):
    directory, schema = workspace
    document = write_document(directory, {"data": {"groups": [{"id": 1, "name": "a"}, {"id": 2}]}})

    cli.main(["Group", str(document), "--schema", str(schema), "--path", "data.groups", "--apply-schema"])

    assert "Wrote 2 Group record(s): [1, 2]" in capsys.readouterr().out


def test_writes_single_object(workspace, capsys):
    directory, schema = workspace
    document = write_document(directory, {"id": 3, "name": "c"})

    cli.main(["Group", str(document), "--schema", str(schema), "--apply-schema"])

    assert "Wrote 1 Group record(s): [3]" in capsys.readouterr().out


def test_unknown_record_exits_with_configuration_error(workspace):
    directory, schema = workspace
    document = write_document(directory, {"id": 1})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Nope", str(document), "--schema", str(schema)])

    assert excinfo.value.code == 1


def test_malformed_schema_exits_with_configuration_error(workspace):
    directory, schema = workspace
    schema.write_text("records: [unclosed", encoding="utf-8")
    document = write_document(directory, {"id": 1})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Group", str(document), "--schema", str(schema)])

    assert excinfo.value.code == 1


def test_missing_source_exits_with_source_error(workspace):
    directory, schema = workspace

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Group", str(directory / "missing.json"), "--schema", str(schema)])

    assert excinfo.value.code == 2


def test_bad_path_exits_with_source_error(workspace):
    directory, schema = workspace
    document = write_document(directory, {"data": 1})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Group", str(document), "--schema", str(schema), "--path", "data.groups"])

    assert excinfo.value.code == 2


def test_invalid_data_exits_with_write_error(workspace):
    directory, schema = workspace
    document = write_document(directory, {"id": "abc"})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Group", str(document), "--schema", str(schema), "--apply-schema"])

    assert excinfo.value.code == 3


def test_select_payload_prefers_arrays():
    document = {"a": {"b": [1]}, "c": {"d": {}}}

    assert cli.select_payload(document, "a.b") == [1]
    assert cli.select_payload(document, "c.d") == {}
    assert cli.select_payload(document, "") is document
