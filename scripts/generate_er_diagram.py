#!/usr/bin/env python3
"""
Generate a lightweight ER diagram (Mermaid) from record declarations.

The record types come from a Python module or a YAML schema file. Their
tables are built the same way the mirror builds them, so the diagram shows
the identity columns, typed columns and foreign-key relationships that
writes will touch.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from sqlalchemy import MetaData

from jsonmirror.__main__ import load_registry
from jsonmirror.schema_builder import build_metadata


def column_type(column) -> str:
    return str(column.type.compile()).split("(")[0].upper()


def collect(metadata: MetaData):
    """Return table metadata and foreign keys as plain tuples."""
    tables = {}
    foreign_keys = []
    for table in metadata.sorted_tables:
        columns = {}
        for column in table.columns:
            columns[column.name] = {
                "name": column.name,
                "type": column_type(column),
                "not_null": not column.nullable,
                "primary_key": column.primary_key,
            }
            for fk in column.foreign_keys:
                foreign_keys.append((table.name, column.name, fk.column.table.name))
        tables[table.name] = {"name": table.name, "columns": columns}
    return tables, foreign_keys


def build_mermaid(tables, foreign_keys) -> str:
    lines = ["erDiagram"]

    for table_name in sorted(tables):
        table = tables[table_name]
        lines.append(f"    {table_name} {{")
        for column in table["columns"].values():
            suffix = " PK" if column["primary_key"] else ""
            lines.append(f"        {column['type']} {column['name']}{suffix}")
        lines.append("    }")

    seen_edges = set()
    for table_name, column_name, ref_table in foreign_keys:
        if ref_table not in tables or table_name not in tables:
            continue
        not_null = tables[table_name]["columns"][column_name]["not_null"]
        child_symbol = "|{" if not_null else "o{"
        edge_key = (ref_table, table_name, column_name, child_symbol)
        if edge_key in seen_edges:
            continue
        seen_edges.add(edge_key)
        lines.append(f'    {ref_table} ||--{child_symbol} {table_name} : "{column_name}"')

    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--models", help="Python module declaring the record classes.")
    source.add_argument("--schema", help="YAML file declaring the record types.")
    parser.add_argument(
        "--output",
        default=Path("docs/ERD.mmd"),
        type=Path,
        help="Path of the generated Mermaid diagram.",
    )
    args = parser.parse_args()

    tables, foreign_keys = collect(build_metadata(load_registry(args)))
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(build_mermaid(tables, foreign_keys), encoding="utf-8")


if __name__ == "__main__":
    main()
