"""Dotted path lookups into decoded JSON documents.

Given ``{"root": {"users": [...]}}``, ``resolve_array(doc, "root.users")``
returns the list.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from .errors import JsonPathError


def _keys(path: str) -> List[str]:
    keys = path.split(".")
    while keys and not keys[-1]:
        keys.pop()
    return keys


def _child(current: Mapping[str, Any], key: str, path: str) -> Any:
    try:
        child = current[key]
    except KeyError:
        raise JsonPathError(f'failed to fetch element "{key}" on path {path}') from None
    if child is None:
        raise JsonPathError(f'element "{key}" on path {path} is null')
    return child


def resolve_object(document: Mapping[str, Any], path: str) -> Mapping[str, Any]:
    """Return the object at ``path``; an empty path returns ``document`` itself."""
    keys = _keys(path)
    current = document
    for index, key in enumerate(keys):
        child = _child(current, key, path)
        last = index == len(keys) - 1
        if isinstance(child, list):
            if last:
                raise JsonPathError(f'last element "{key}" is an array and not an object')
            raise JsonPathError(f'array element for "{key}" cannot be traversed at {path}')
        if not isinstance(child, Mapping):
            raise JsonPathError(
                f"can't resolve element for {key} on path {path} because the type "
                f"{type(child).__name__} is not supported"
            )
        current = child
    return current


def resolve_array(document: Mapping[str, Any], path: str) -> List[Any]:
    """Return the array at ``path``, which must be the last element of the path."""
    keys = _keys(path)
    if not keys:
        raise JsonPathError("the root of a JSON object can never be an array")
    current = document
    for index, key in enumerate(keys):
        child = _child(current, key, path)
        if isinstance(child, list):
            if index == len(keys) - 1:
                return child
            raise JsonPathError(f'array element for "{key}" is not the last element on the path {path}')
        if not isinstance(child, Mapping):
            raise JsonPathError(
                f"can't resolve element for {key} on path {path} because the type "
                f"{type(child).__name__} is not supported"
            )
        current = child
    raise JsonPathError(f'last element on the path {path} is an object and not an array')
