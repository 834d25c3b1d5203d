"""Record classes declared in YAML instead of Python.

Example document::

    records:
      Person:
        table: people
        fields:
          id: {id: int64}
          name: {column: string, map_from: fullName}
          tags: {one_to_many: PersonTag, single_target: value}
      PersonTag:
        fields:
          id: {id: int64}
          value: string
          person: {foreign_key: Person}

A field given as a bare string is a typed column.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .declarations import (Column, Declaration, ForeignKey, Id, ManyToMany,
                           OneToMany, record)
from .errors import SchemaError
from .registry import ModelRegistry

LOGGER = logging.getLogger("jsonmirror.schema_loader")

_KINDS = ("id", "column", "foreign_key", "one_to_many", "many_to_many")


class FieldSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    column: Optional[str] = None
    foreign_key: Optional[str] = None
    one_to_many: Optional[str] = None
    many_to_many: Optional[str] = None

    column_name: Optional[str] = None
    map_from: Optional[str] = None
    nullable: bool = True
    generated: bool = False
    single_target: Optional[str] = None
    back_reference: Optional[str] = None
    target: Optional[str] = None
    link: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"column": data}
        return data

    @model_validator(mode="after")
    def _one_kind(self) -> "FieldSpec":
        given = [kind for kind in _KINDS if kind in self.model_fields_set]
        if len(given) != 1:
            raise ValueError(f"exactly one of {', '.join(_KINDS)} is required, got {given or 'none'}")
        if self.many_to_many is not None and not self.target:
            raise ValueError("many_to_many fields need a target")
        return self

    def declaration(self) -> Declaration:
        if "id" in self.model_fields_set:
            return Id(
                self.id or "int64",
                column=self.column_name,
                generated=self.generated,
                map_from=self.map_from,
            )
        if "column" in self.model_fields_set:
            return Column(
                self.column,
                column=self.column_name,
                nullable=self.nullable,
                map_from=self.map_from,
            )
        if self.foreign_key is not None:
            return ForeignKey(
                self.foreign_key,
                column=self.column_name,
                nullable=self.nullable,
                map_from=self.map_from,
            )
        if self.one_to_many is not None:
            return OneToMany(
                self.one_to_many,
                single_target=self.single_target,
                back_reference=self.back_reference,
                map_from=self.map_from,
            )
        return ManyToMany(
            self.many_to_many,
            self.target,
            link=self.link,
            back_reference=self.back_reference,
            map_from=self.map_from,
        )


class RecordSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    table: Optional[str] = None
    extends: Optional[str] = None
    fields: Dict[str, FieldSpec] = {}


class SchemaDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    records: Dict[str, RecordSpec]


def build_records(document: SchemaDocument) -> List[type]:
    """Create one record class per entry, bases before subclasses."""
    built: Dict[str, type] = {}
    in_progress = set()

    def build(name: str) -> type:
        if name in built:
            return built[name]
        entry = document.records.get(name)
        if entry is None:
            raise SchemaError(f"Unknown record {name!r}")
        if name in in_progress:
            raise SchemaError(f"Record {name!r} has a cyclic extends chain")
        in_progress.add(name)
        bases = (build(entry.extends),) if entry.extends else ()
        namespace: Dict[str, Any] = {
            field_name: field.declaration() for field_name, field in entry.fields.items()
        }
        namespace["__module__"] = __name__
        cls = record(type(name, bases, namespace), table=entry.table)
        built[name] = cls
        in_progress.discard(name)
        return cls

    for name in document.records:
        build(name)
    return list(built.values())


def load_schema(
    source: Union[str, Path, IO[str]], registry: Optional[ModelRegistry] = None
) -> ModelRegistry:
    """Read a YAML schema document and register its records."""
    try:
        if isinstance(source, (str, Path)):
            with open(source, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        else:
            data = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise SchemaError(f"Invalid schema document: {exc}") from exc

    try:
        document = SchemaDocument.model_validate(data or {})
    except ValidationError as exc:
        raise SchemaError(f"Invalid schema document: {exc}") from exc

    models = build_records(document)
    registry = registry if registry is not None else ModelRegistry()
    registry.register(*models)
    LOGGER.info("Loaded %s record types from schema", len(models))
    return registry
