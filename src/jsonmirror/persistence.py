from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .coercion import copy_value_or_raise, get_value, narrow
from .errors import RelationResolutionError, TypeMismatchError
from .models import WriteOptions
from .registry import ModelRegistry
from .schema import (CollectionFieldBinding, CollectionKind, IdentityField,
                     RecordType, RelationFieldBinding, ScalarFieldBinding)
from .store import RelationalStore, transaction

LOGGER = logging.getLogger("jsonmirror.persistence")


def warn_if_event_loop_running(method_name: str) -> None:
    """Warn when a blocking write is issued from an event loop thread."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return
    LOGGER.warning(
        "Don't call %s from a thread running an event loop: it blocks until the "
        "transaction completes",
        method_name,
    )


class JsonPersister:
    """Write JSON objects and arrays into the store following record declarations.

    Every public call runs in a single store transaction: nested relations and
    collections are written recursively and any error rolls back the whole
    call.
    """

    def __init__(
        self,
        store: RelationalStore,
        registry: ModelRegistry,
        options: WriteOptions = WriteOptions.DEFAULT,
    ) -> None:
        self._store = store
        self._registry = registry
        self._options = WriteOptions(options)
        self._cleanup = not self._options.enabled(WriteOptions.DISABLE_STALE_CHILD_CLEANUP)
        self._warn_unmapped = not self._options.enabled(
            WriteOptions.DISABLE_UNMAPPED_KEY_WARNINGS
        )

    @property
    def options(self) -> WriteOptions:
        return self._options

    def write_object(self, model: type, json_object: Mapping[str, Any]) -> Any:
        """Persist ``json_object`` and everything it references; return its identity."""
        warn_if_event_loop_running("JsonPersister.write_object()")
        if not isinstance(json_object, Mapping):
            raise TypeMismatchError(
                f"Expected a JSON object for {model.__name__}, got {type(json_object).__name__}",
                value=json_object,
            )
        with transaction(self._store):
            return self._write_object(model, json_object)

    def write_array(self, model: type, json_array: Sequence[Any]) -> List[Any]:
        """Persist every object of ``json_array``; return their identities in order."""
        warn_if_event_loop_running("JsonPersister.write_array()")
        if not isinstance(json_array, list):
            raise TypeMismatchError(
                f"Expected a JSON array of {model.__name__}, got {type(json_array).__name__}",
                value=json_array,
            )
        with transaction(self._store):
            return self._write_array(model, json_array, model.__name__)

    def _write_array(
        self,
        model: type,
        elements: Sequence[Any],
        context: str,
        seed: Optional[Mapping[str, Any]] = None,
    ) -> List[Any]:
        identities = []
        for index, element in enumerate(elements):
            if not isinstance(element, Mapping):
                raise TypeMismatchError(
                    f"Element {index} of {context} is a {type(element).__name__}, "
                    "expected a JSON object",
                    key=context,
                    value=element,
                )
            identities.append(self._write_object(model, element, seed))
        return identities

    def _write_object(
        self,
        model: type,
        json_object: Mapping[str, Any],
        seed: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Write one object and its collections.

        ``seed`` holds column values a newly inserted row starts with, such as
        the back reference of a one-to-many child.
        """
        record = self._registry.resolve(model)
        identity_column = record.identity.column_name

        identity_key = None
        natural_key: Any = None
        values: Dict[str, Any] = {}
        pending: List[Tuple[CollectionFieldBinding, list]] = []

        for key, value in json_object.items():
            binding = record.binding(self._registry.locate(model, key))
            if binding is None:
                if self._warn_unmapped:
                    LOGGER.warning(
                        "Ignored attribute %s because it wasn't found in %s", key, record.name
                    )
                continue

            if isinstance(binding, IdentityField):
                if identity_key is not None:
                    raise RelationResolutionError(
                        f"Trying to set the identity of {record.name} twice "
                        f"(from {identity_key!r} and {key!r})"
                    )
                identity_key = key
                natural_key = get_value(json_object, key, record.identity.kind)
            elif isinstance(binding, CollectionFieldBinding):
                if value is None:
                    LOGGER.warning(
                        "Mapping %s for %s was null, collection left untouched",
                        key,
                        record.name,
                    )
                    continue
                if not isinstance(value, list):
                    raise TypeMismatchError(
                        f"Collection {key} of {record.name} must be a JSON array, "
                        f"got {type(value).__name__}",
                        key=key,
                        value=value,
                    )
                pending.append((binding, value))
            elif isinstance(binding, RelationFieldBinding):
                self._copy_relation(binding, json_object, key, values)
            else:
                self._copy_scalar(binding, json_object, key, values)

        if identity_key is None:
            identity = self._store.insert(record.table_name, {**(seed or {}), **values})
        else:
            identity = self._write_row(record, natural_key, values, seed)

        LOGGER.info("Imported %s (%s=%s)", record.name, identity_column, identity)

        for binding, elements in pending:
            if binding.kind is CollectionKind.MANY_TO_MANY:
                self._write_many_to_many(record, binding, elements, identity)
            else:
                self._write_one_to_many(record, binding, elements, identity)

        return identity

    def _write_row(
        self,
        record: RecordType,
        natural_key: Any,
        values: Dict[str, Any],
        seed: Optional[Mapping[str, Any]],
    ) -> Any:
        """Update the row carrying the JSON natural key, or insert it with ``values``."""
        column = record.identity.column_name
        existing = self._store.query_identity(record.table_name, column, natural_key)
        if existing is None:
            row: Dict[str, Any] = {**(seed or {}), **values}
            copy_value_or_raise(natural_key, column, row)
            self._store.insert(record.table_name, row)
            LOGGER.debug("Inserted %s row (%s=%s)", record.table_name, column, natural_key)
            return natural_key

        if values:
            id_column = self._store.column(record.table_name, column)
            self._store.update(record.table_name, values, id_column == existing)
        return existing

    def _copy_relation(
        self,
        binding: RelationFieldBinding,
        json_object: Mapping[str, Any],
        key: str,
        values: Dict[str, Any],
    ) -> None:
        value = json_object[key]
        if value is None:
            foreign_identity = None
        elif isinstance(value, Mapping):
            foreign_identity = self._write_object(binding.target, value)
        else:
            # A bare value is taken as the key of an existing target row.
            target_identity = self._registry.resolve(binding.target).identity
            foreign_identity = get_value(json_object, key, target_identity.kind)
        copy_value_or_raise(foreign_identity, binding.column_name, values)

    def _copy_scalar(
        self,
        binding: ScalarFieldBinding,
        json_object: Mapping[str, Any],
        key: str,
        values: Dict[str, Any],
    ) -> None:
        value = json_object[key]
        if value is not None and binding.kind is not None:
            value = get_value(json_object, key, binding.kind)
        copy_value_or_raise(value, binding.column_name, values)

    def _write_many_to_many(
        self,
        parent: RecordType,
        binding: CollectionFieldBinding,
        elements: list,
        parent_identity: Any,
    ) -> None:
        context = f"{parent.name}.{binding.name}"
        target_identities = self._write_array(binding.target, elements, context)

        junction = self._registry.resolve(binding.element).table_name
        back_reference = self._store.column(junction, binding.back_reference_column)
        removed = self._store.delete(junction, back_reference == parent_identity)

        for target_identity in target_identities:
            row: Dict[str, Any] = {}
            copy_value_or_raise(parent_identity, binding.back_reference_column, row)
            copy_value_or_raise(target_identity, binding.link_column, row)
            self._store.insert(junction, row)

        LOGGER.debug(
            "Replaced %s %s links of %s=%s with %s",
            removed,
            junction,
            parent.name,
            parent_identity,
            len(target_identities),
        )

    def _write_one_to_many(
        self,
        parent: RecordType,
        binding: CollectionFieldBinding,
        elements: list,
        parent_identity: Any,
    ) -> None:
        context = f"{parent.name}.{binding.name}"
        table = self._registry.resolve(binding.element).table_name
        reference: Dict[str, Any] = {}
        copy_value_or_raise(parent_identity, binding.back_reference_column, reference)

        if binding.single_target_column:
            child_identities = [
                self._insert_single_target(binding, table, element, reference, context)
                for element in elements
            ]
        else:
            # New children are inserted already pointing at the parent.
            child_identities = self._write_array(
                binding.element, elements, context, seed=reference
            )

        back_reference = self._store.column(table, binding.back_reference_column)
        child_id = self._store.column(table, binding.element_identity_column)

        if child_identities:
            self._store.update(table, reference, child_id.in_(child_identities))

        if self._cleanup:
            removed = self._store.delete(
                table,
                back_reference == parent_identity,
                child_id.not_in(child_identities),
            )
            if removed:
                LOGGER.debug(
                    "Removed %s stale %s rows of %s=%s",
                    removed,
                    table,
                    parent.name,
                    parent_identity,
                )

    def _insert_single_target(
        self,
        binding: CollectionFieldBinding,
        table: str,
        element: Any,
        reference: Mapping[str, Any],
        context: str,
    ) -> Any:
        if isinstance(element, (Mapping, list)):
            raise TypeMismatchError(
                f"{context} holds plain values, got a {type(element).__name__}",
                key=context,
                value=element,
            )
        value = element
        if value is not None and binding.single_target_kind is not None:
            value = narrow(value, binding.single_target_kind, context)

        row: Dict[str, Any] = dict(reference)
        copy_value_or_raise(value, binding.single_target_column, row)
        return self._store.insert(table, row)
