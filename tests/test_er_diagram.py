import importlib.util
from pathlib import Path

from jsonmirror.schema_builder import build_metadata

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "generate_er_diagram.py"


def load_script():
    spec = importlib.util.spec_from_file_location("generate_er_diagram", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_mermaid_lists_tables_and_relations(registry):
    script = load_script()
    tables, foreign_keys = script.collect(build_metadata(registry))

    diagram = script.build_mermaid(tables, foreign_keys)

    assert diagram.startswith("erDiagram")
    assert "    pets {" in diagram
    assert "        BIGINT id PK" in diagram
    assert '    users ||--o{ pets : "owner_id"' in diagram
    assert '    groups ||--o{ user_groups : "group_id"' in diagram
