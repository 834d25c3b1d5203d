"""Error types raised while mirroring JSON into the relational store."""

from __future__ import annotations

from typing import Any, Optional


class MirrorError(Exception):
    """Base exception for jsonmirror errors."""


class SchemaError(MirrorError):
    """Raised when a record class lacks required mapping metadata."""


class TypeMismatchError(MirrorError):
    """Raised when a JSON value cannot be narrowed to the required kind."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        value: Any = None,
        kind: Any = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.value = value
        self.kind = kind


class RelationResolutionError(MirrorError):
    """Raised when a relation cannot be resolved or an identity is set twice."""


class UnsupportedValueTypeError(MirrorError):
    """Raised when a value has a runtime type no column can hold."""


class StoreError(MirrorError):
    """Raised when the underlying relational store fails."""


class JsonPathError(MirrorError):
    """Raised when a dotted JSON path cannot be resolved."""
