"""SQLAlchemy tables derived from registered record declarations."""

from __future__ import annotations

from hashlib import blake2b
from typing import Dict, Iterable, List, Optional

from sqlalchemy import (BigInteger, Boolean, Column, Double, Float, ForeignKey,
                        Index, Integer, MetaData, String, Table, Text)
from sqlalchemy.types import TypeEngine

from .registry import ModelRegistry
from .schema import INTEGER_KINDS, IdentityField, RecordType, ScalarKind

MAX_IDENTIFIER_LENGTH = 63
SCHEMA_VERSION_TABLE = "jsonmirror_schema_version"

_COLUMN_TYPES: Dict[ScalarKind, TypeEngine] = {
    ScalarKind.INT32: Integer(),
    ScalarKind.INT64: BigInteger(),
    ScalarKind.BOOLEAN: Boolean(),
    ScalarKind.STRING: Text(),
    ScalarKind.FLOAT32: Float(),
    ScalarKind.FLOAT64: Double(),
}


def map_type(kind: Optional[ScalarKind]) -> TypeEngine:
    if kind is None:
        return Text()
    return _COLUMN_TYPES[kind]


def identity_type(identity: IdentityField) -> TypeEngine:
    """Column type for an identity, usable as an autoincrementing key."""
    if identity.kind is ScalarKind.INT64:
        # SQLite only autoincrements INTEGER PRIMARY KEY columns.
        return BigInteger().with_variant(Integer(), "sqlite")
    if identity.kind is ScalarKind.STRING:
        return String(255)
    return map_type(identity.kind)


def shorten_identifier(base: str) -> str:
    if len(base) <= MAX_IDENTIFIER_LENGTH:
        return base
    digest = blake2b(base.encode("utf-8"), digest_size=4).hexdigest()
    prefix_limit = MAX_IDENTIFIER_LENGTH - len(digest) - 1
    prefix = base[:prefix_limit].rstrip("_") or base[:prefix_limit]
    return f"{prefix}_{digest}"


class SchemaBuilder:
    """Build one table per record type of a registry."""

    def __init__(self, registry: ModelRegistry, metadata: Optional[MetaData] = None) -> None:
        self.registry = registry
        self.metadata = metadata if metadata is not None else MetaData()

    def build(self) -> MetaData:
        for model in self.registry:
            record = self.registry.resolve(model)
            if record.table_name not in self.metadata.tables:
                self.build_table(record)
        return self.metadata

    def build_table(self, record: RecordType) -> Table:
        identity = record.identity
        # Any integer identity the JSON omits is generated; never reuse deleted keys.
        generatable = identity.kind in INTEGER_KINDS
        columns: List[Column] = [
            Column(
                identity.column_name,
                identity_type(identity),
                primary_key=True,
                autoincrement=generatable,
            )
        ]
        indexed: List[str] = []

        for scalar in record.scalars:
            columns.append(
                Column(scalar.column_name, map_type(scalar.kind), nullable=scalar.nullable)
            )

        for relation in record.relations:
            target = self.registry.resolve(relation.target)
            columns.append(
                Column(
                    relation.column_name,
                    identity_type(target.identity),
                    ForeignKey(
                        f"{target.table_name}.{target.identity.column_name}",
                        ondelete="CASCADE",
                    ),
                    nullable=relation.nullable,
                )
            )
            indexed.append(relation.column_name)

        table = Table(
            record.table_name,
            self.metadata,
            *columns,
            sqlite_autoincrement=generatable,
        )
        for column_name in indexed:
            Index(shorten_identifier(f"ix_{record.table_name}_{column_name}"), table.c[column_name])
        return table


def build_metadata(registry: ModelRegistry, models: Iterable[type] = ()) -> MetaData:
    """Return metadata holding a table for every record of ``registry``."""
    registry.register(*models)
    return SchemaBuilder(registry).build()


def version_table(metadata: MetaData) -> Table:
    existing = metadata.tables.get(SCHEMA_VERSION_TABLE)
    if existing is not None:
        return existing
    return Table(
        SCHEMA_VERSION_TABLE,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=False),
        Column("version", Integer, nullable=False),
    )
