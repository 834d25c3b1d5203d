from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


class ScalarKind(str, enum.Enum):
    """Column value kinds a JSON scalar can be narrowed to."""

    INT32 = "int32"
    INT64 = "int64"
    BOOLEAN = "boolean"
    STRING = "string"
    FLOAT32 = "float32"
    FLOAT64 = "float64"


PYTHON_KINDS: Dict[type, ScalarKind] = {
    int: ScalarKind.INT64,
    bool: ScalarKind.BOOLEAN,
    str: ScalarKind.STRING,
    float: ScalarKind.FLOAT64,
}


def as_kind(value: Any) -> ScalarKind:
    """Accept a ``ScalarKind``, its string value or a Python shorthand type."""
    if isinstance(value, ScalarKind):
        return value
    if isinstance(value, type) and value in PYTHON_KINDS:
        return PYTHON_KINDS[value]
    if isinstance(value, str):
        return ScalarKind(value.lower())
    raise ValueError(f"Unsupported scalar kind: {value!r}")


INTEGER_KINDS = frozenset({ScalarKind.INT32, ScalarKind.INT64})


class CollectionKind(str, enum.Enum):
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


@dataclass(frozen=True)
class IdentityField:
    """The primary key column of a record type."""

    name: str
    json_key: Optional[str]
    column_name: str
    kind: ScalarKind
    generated: bool = False


@dataclass(frozen=True)
class ScalarFieldBinding:
    """A plain column; ``kind`` is None for untyped columns."""

    name: str
    json_key: Optional[str]
    column_name: str
    kind: Optional[ScalarKind]
    nullable: bool = True


@dataclass(frozen=True)
class RelationFieldBinding:
    """A to-one relation stored as the target identity in a foreign column."""

    name: str
    json_key: Optional[str]
    column_name: str
    target: type
    nullable: bool = True


@dataclass(frozen=True)
class CollectionFieldBinding:
    """One-to-many or many-to-many collection of related rows.

    ``element`` is the class whose rows carry the back reference to the
    parent: the child class for one-to-many and the junction class for
    many-to-many. ``target`` is the class the JSON array elements are
    written as.
    """

    name: str
    json_key: Optional[str]
    kind: CollectionKind
    element: type
    target: type
    back_reference_column: str
    element_identity_column: str
    link_column: Optional[str] = None
    single_target_column: Optional[str] = None
    single_target_kind: Optional[ScalarKind] = None


FieldBinding = Union[
    IdentityField, ScalarFieldBinding, RelationFieldBinding, CollectionFieldBinding
]


@dataclass(frozen=True)
class RecordType:
    """Resolved persistent shape of a record class."""

    model: type
    table_name: str
    identity: IdentityField
    scalars: Tuple[ScalarFieldBinding, ...] = ()
    relations: Tuple[RelationFieldBinding, ...] = ()
    collections: Tuple[CollectionFieldBinding, ...] = ()
    fields: Dict[str, FieldBinding] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> str:
        return self.model.__name__

    def binding(self, field_name: Optional[str]) -> Optional[FieldBinding]:
        """Return the binding of a declared field, or None when it is not persisted."""
        if field_name is None:
            return None
        return self.fields.get(field_name)
