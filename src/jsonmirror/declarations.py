"""Declarative field markers used to describe record classes.

A record class is a plain Python class carrying the ``@record`` marker and
class attributes built from the declarations below::

    @record(table="users")
    class User:
        id = Id(int)
        name = Column(str, map_from="fullName")
        tags = OneToMany("UserTag", single_target="value")

Target classes may be given directly or by name; names are resolved through
the :class:`~jsonmirror.registry.ModelRegistry` the class is registered in.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional, Tuple, Union

from .schema import ScalarKind, as_kind

TABLE_ATTRIBUTE = "__mirror_table__"

TypeRef = Union[type, str]


def record(cls: Optional[type] = None, *, table: Optional[str] = None):
    """Mark a class as a record type, optionally overriding its table name."""

    def wrap(klass: type) -> type:
        setattr(klass, TABLE_ATTRIBUTE, table or klass.__name__)
        return klass

    if cls is None:
        return wrap
    return wrap(cls)


def is_record(cls: type) -> bool:
    # The marker is not inherited: every persisted class carries its own.
    return TABLE_ATTRIBUTE in vars(cls)


def table_name_of(cls: type) -> str:
    return vars(cls)[TABLE_ATTRIBUTE]


class Declaration:
    """Base class for field declarations."""

    def __init__(self, map_from: Optional[str] = None) -> None:
        self.name: Optional[str] = None
        self.owner: Optional[type] = None
        self.map_from = map_from

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner

    def matches(self, json_key: str) -> bool:
        return self.name == json_key or self.map_from == json_key

    def __repr__(self) -> str:
        owner = self.owner.__name__ if self.owner else "?"
        return f"<{type(self).__name__} {owner}.{self.name}>"


class Id(Declaration):
    def __init__(
        self,
        kind: Any = int,
        column: Optional[str] = None,
        generated: bool = False,
        map_from: Optional[str] = None,
    ) -> None:
        super().__init__(map_from)
        self.kind: ScalarKind = as_kind(kind)
        self.column = column
        self.generated = generated


class Column(Declaration):
    def __init__(
        self,
        kind: Any = None,
        column: Optional[str] = None,
        nullable: bool = True,
        map_from: Optional[str] = None,
    ) -> None:
        super().__init__(map_from)
        self.kind: Optional[ScalarKind] = None if kind is None else as_kind(kind)
        self.column = column
        self.nullable = nullable


class ForeignKey(Declaration):
    """A to-one relation; the column defaults to ``<field>_id``."""

    def __init__(
        self,
        target: TypeRef,
        column: Optional[str] = None,
        nullable: bool = True,
        map_from: Optional[str] = None,
    ) -> None:
        super().__init__(map_from)
        self.target = target
        self.column = column
        self.nullable = nullable


class OneToMany(Declaration):
    """Children whose rows point back at the parent.

    ``single_target`` names the child column that receives bare scalar
    array elements (e.g. a list of tag strings).
    """

    def __init__(
        self,
        element: TypeRef,
        single_target: Optional[str] = None,
        back_reference: Optional[str] = None,
        map_from: Optional[str] = None,
    ) -> None:
        super().__init__(map_from)
        self.element = element
        self.single_target = single_target
        self.back_reference = back_reference


class ManyToMany(Declaration):
    """Targets linked to the parent through rows of a junction class."""

    def __init__(
        self,
        junction: TypeRef,
        target: TypeRef,
        link: Optional[str] = None,
        back_reference: Optional[str] = None,
        map_from: Optional[str] = None,
    ) -> None:
        super().__init__(map_from)
        self.junction = junction
        self.target = target
        self.link = link
        self.back_reference = back_reference


def declared_fields(cls: type) -> Iterator[Tuple[str, Declaration]]:
    """Yield the declarations made directly on ``cls`` in definition order."""
    for name, value in vars(cls).items():
        if isinstance(value, Declaration):
            yield name, value


def walk_declarations(cls: type) -> Iterator[Tuple[type, str, Declaration]]:
    """Yield declarations of ``cls`` and its bases, most derived first."""
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, value in declared_fields(klass):
            yield klass, name, value
