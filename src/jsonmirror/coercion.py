"""Conversion between untyped JSON scalars and typed column values."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Mapping, MutableMapping

from pydantic import ConfigDict, Field, TypeAdapter, ValidationError

from .errors import TypeMismatchError, UnsupportedValueTypeError
from .schema import ScalarKind

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1
FLOAT32_MAX = 3.4028234663852886e38

_ADAPTERS: Dict[ScalarKind, TypeAdapter] = {
    ScalarKind.INT32: TypeAdapter(Annotated[int, Field(ge=INT32_MIN, le=INT32_MAX)]),
    ScalarKind.INT64: TypeAdapter(Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]),
    ScalarKind.BOOLEAN: TypeAdapter(bool),
    ScalarKind.STRING: TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True)),
    ScalarKind.FLOAT32: TypeAdapter(
        Annotated[float, Field(allow_inf_nan=False, ge=-FLOAT32_MAX, le=FLOAT32_MAX)]
    ),
    ScalarKind.FLOAT64: TypeAdapter(Annotated[float, Field(allow_inf_nan=False)]),
}

_NUMERIC_KINDS = {
    ScalarKind.INT32,
    ScalarKind.INT64,
    ScalarKind.FLOAT32,
    ScalarKind.FLOAT64,
}

COLUMN_VALUE_TYPES = (bool, int, float, str)


def narrow(value: Any, kind: ScalarKind, key: str = "?") -> Any:
    """Narrow a JSON scalar to ``kind`` or raise :class:`TypeMismatchError`."""
    # JSON booleans are never numbers, even though bool subclasses int.
    if isinstance(value, bool) and kind in _NUMERIC_KINDS:
        raise _mismatch(value, key, kind)
    if isinstance(value, (Mapping, list)):
        raise _mismatch(value, key, kind)
    try:
        return _ADAPTERS[kind].validate_python(value)
    except ValidationError as exc:
        raise _mismatch(value, key, kind) from exc


def get_value(json_object: Mapping[str, Any], key: str, kind: ScalarKind) -> Any:
    """Read ``key`` from ``json_object`` narrowed to ``kind``."""
    if key not in json_object:
        raise TypeMismatchError(
            f"Failed to get a value from JSON with key {key} and type {kind.value} (key not found)",
            key=key,
            kind=kind,
        )
    return narrow(json_object[key], kind, key)


def copy_value(value: Any, column: str, row: MutableMapping[str, Any]) -> bool:
    """Copy a runtime-typed scalar (or None) into ``row``.

    Returns False without touching ``row`` when no column can hold the value.
    """
    if value is None or isinstance(value, COLUMN_VALUE_TYPES):
        row[column] = value
        return True
    return False


def copy_value_or_raise(value: Any, column: str, row: MutableMapping[str, Any]) -> None:
    if not copy_value(value, column, row):
        raise UnsupportedValueTypeError(
            f'Failed to copy value "{value!r}" into column "{column}" because the type '
            f"{type(value).__name__} is not supported"
        )


def _mismatch(value: Any, key: str, kind: ScalarKind) -> TypeMismatchError:
    return TypeMismatchError(
        f"Value {value!r} at {key} of type {type(value).__name__} cannot be converted to {kind.value}",
        key=key,
        value=value,
        kind=kind,
    )
