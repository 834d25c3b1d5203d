from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from .declarations import is_record
from .descriptors import ModelDescriptorResolver
from .errors import SchemaError
from .locator import FieldLocator
from .schema import RecordType


class ModelRegistry:
    """Record classes of one schema plus their metadata caches.

    Build one registry per schema and share it between persisters. Classes
    referenced by name (``ForeignKey("User")``) must be registered here.
    """

    def __init__(self, models: Iterable[type] = ()) -> None:
        self._models: Dict[str, type] = {}
        self._lock = threading.Lock()
        self.resolver = ModelDescriptorResolver(self.lookup)
        self.locator = FieldLocator()
        self.register(*models)

    def register(self, *models: type) -> None:
        with self._lock:
            for model in models:
                if not isinstance(model, type) or not is_record(model):
                    raise SchemaError(f"{model!r} is not marked as a @record")
                existing = self._models.get(model.__name__)
                if existing is not None and existing is not model:
                    raise SchemaError(f"A different record named {model.__name__} is already registered")
                self._models[model.__name__] = model

    def lookup(self, name: str) -> type:
        try:
            return self._models[name]
        except KeyError:
            raise SchemaError(f"Record {name!r} is not registered") from None

    def get(self, name: str) -> Optional[type]:
        return self._models.get(name)

    @property
    def models(self) -> List[type]:
        return list(self._models.values())

    def resolve(self, model: type) -> RecordType:
        return self.resolver.resolve(model)

    def locate(self, model: type, json_key: str) -> Optional[str]:
        return self.locator.locate(model, json_key)

    def __contains__(self, model: object) -> bool:
        return isinstance(model, type) and self._models.get(model.__name__) is model

    def __iter__(self):
        return iter(self.models)

    def __len__(self) -> int:
        return len(self._models)
