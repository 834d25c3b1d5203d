from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Tuple

from .declarations import declared_fields

LOGGER = logging.getLogger("jsonmirror.locator")


class FieldLocator:
    """Map JSON keys onto declared record fields.

    Lookups walk the class hierarchy, so they are cached per
    ``(class, json key)``. Misses are cached too: a payload usually repeats
    the same unmapped keys for every element of an array.
    """

    def __init__(self) -> None:
        self._cache: Dict[Tuple[type, str], Optional[str]] = {}
        self._lock = threading.Lock()

    def locate(self, model: type, json_key: str) -> Optional[str]:
        """Return the name of the field ``json_key`` maps to, or None."""
        cache_key = (model, json_key)
        try:
            return self._cache[cache_key]
        except KeyError:
            pass

        field_name = self._find(model, json_key)
        with self._lock:
            self._cache.setdefault(cache_key, field_name)
        LOGGER.debug("Located %s.%s -> %s", model.__name__, json_key, field_name)
        return field_name

    def _find(self, model: type, json_key: str) -> Optional[str]:
        for klass in model.__mro__:
            if klass is object:
                continue
            for name, declaration in declared_fields(klass):
                if declaration.matches(json_key):
                    return name
        return None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
