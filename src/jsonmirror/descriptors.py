"""Resolve record classes into their persistent shape."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from .declarations import (Column, Declaration, ForeignKey, Id, ManyToMany,
                           OneToMany, TypeRef, is_record, table_name_of,
                           walk_declarations)
from .errors import RelationResolutionError, SchemaError
from .schema import (INTEGER_KINDS, CollectionFieldBinding, CollectionKind,
                     FieldBinding, IdentityField, RecordType,
                     RelationFieldBinding, ScalarFieldBinding, ScalarKind)

LOGGER = logging.getLogger("jsonmirror.descriptors")

FOREIGN_COLUMN_SUFFIX = "_id"


def relation_column(name: str, declaration: ForeignKey) -> str:
    return declaration.column or f"{name}{FOREIGN_COLUMN_SUFFIX}"


class ModelDescriptorResolver:
    """Derive and memoize :class:`RecordType` descriptors for record classes.

    Resolution happens once per class; afterwards ``resolve`` is a dictionary
    lookup. Entries are never evicted.
    """

    def __init__(self, lookup: Callable[[str], type]) -> None:
        self._lookup = lookup
        self._cache: Dict[type, RecordType] = {}
        self._lock = threading.Lock()

    def resolve(self, model: type) -> RecordType:
        try:
            return self._cache[model]
        except (KeyError, TypeError):
            pass

        record_type = self._build(model)
        with self._lock:
            record_type = self._cache.setdefault(model, record_type)
        LOGGER.debug("Resolved %s -> table %s", model.__name__, record_type.table_name)
        return record_type

    def target_type(self, ref: TypeRef) -> type:
        if isinstance(ref, type):
            return ref
        if isinstance(ref, str):
            return self._lookup(ref)
        raise SchemaError(f"Invalid record reference: {ref!r}")

    def identity_of(self, model: type) -> IdentityField:
        """Find the identity field of ``model`` without resolving relations."""
        identities = [
            (name, declaration)
            for name, declaration in self._effective_declarations(model)
            if isinstance(declaration, Id)
        ]
        if not identities:
            raise SchemaError(
                f"{model.__name__} doesn't declare an identity field (directly or inherited)"
            )
        if len(identities) > 1:
            names = ", ".join(name for name, _ in identities)
            raise SchemaError(f"{model.__name__} declares more than one identity field: {names}")
        name, declaration = identities[0]
        if declaration.generated and declaration.kind not in INTEGER_KINDS:
            raise SchemaError(
                f"{model.__name__}.{name} is {declaration.kind.value}; only integer identities "
                "can be generated"
            )
        return IdentityField(
            name=name,
            json_key=declaration.map_from,
            column_name=declaration.column or name,
            kind=declaration.kind,
            generated=declaration.generated,
        )

    def _build(self, model: type) -> RecordType:
        if not isinstance(model, type) or not is_record(model):
            raise SchemaError(f"{model!r} is not marked as a @record")

        identity = self.identity_of(model)
        fields: Dict[str, FieldBinding] = {identity.name: identity}
        scalars: List[ScalarFieldBinding] = []
        relations: List[RelationFieldBinding] = []
        collections: List[CollectionFieldBinding] = []

        for name, declaration in self._effective_declarations(model):
            if isinstance(declaration, Id):
                continue
            if isinstance(declaration, Column):
                binding = ScalarFieldBinding(
                    name=name,
                    json_key=declaration.map_from,
                    column_name=declaration.column or name,
                    kind=declaration.kind,
                    nullable=declaration.nullable,
                )
                scalars.append(binding)
            elif isinstance(declaration, ForeignKey):
                binding = RelationFieldBinding(
                    name=name,
                    json_key=declaration.map_from,
                    column_name=relation_column(name, declaration),
                    target=self.target_type(declaration.target),
                    nullable=declaration.nullable,
                )
                relations.append(binding)
            elif isinstance(declaration, OneToMany):
                binding = self._one_to_many(model, name, declaration)
                collections.append(binding)
            elif isinstance(declaration, ManyToMany):
                binding = self._many_to_many(model, name, declaration)
                collections.append(binding)
            else:
                raise SchemaError(f"Unsupported declaration {declaration!r}")
            fields[name] = binding

        return RecordType(
            model=model,
            table_name=table_name_of(model),
            identity=identity,
            scalars=tuple(scalars),
            relations=tuple(relations),
            collections=tuple(collections),
            fields=fields,
        )

    def _effective_declarations(self, model: type) -> List[Tuple[str, Declaration]]:
        # Base classes first so that redeclared names keep their base position
        # but take the subclass declaration.
        effective: Dict[str, Declaration] = {}
        for klass in reversed(model.__mro__):
            if klass is object:
                continue
            for name, value in vars(klass).items():
                if isinstance(value, Declaration):
                    effective[name] = value
                elif name in effective:
                    del effective[name]
        return list(effective.items())

    def _one_to_many(
        self, parent: type, name: str, declaration: OneToMany
    ) -> CollectionFieldBinding:
        element = self._record_target(declaration.element, parent, name)
        _, back_column = self._back_reference(
            element, parent, declaration.back_reference
        )
        element_identity = self.identity_of(element)

        single_kind: Optional[ScalarKind] = None
        if declaration.single_target:
            single_kind = self._single_target_kind(element, declaration.single_target)

        return CollectionFieldBinding(
            name=name,
            json_key=declaration.map_from,
            kind=CollectionKind.ONE_TO_MANY,
            element=element,
            target=element,
            back_reference_column=back_column,
            element_identity_column=element_identity.column_name,
            single_target_column=declaration.single_target,
            single_target_kind=single_kind,
        )

    def _many_to_many(
        self, parent: type, name: str, declaration: ManyToMany
    ) -> CollectionFieldBinding:
        junction = self._record_target(declaration.junction, parent, name)
        wanted = self.target_type(declaration.target)
        back_name, back_column = self._back_reference(
            junction, parent, declaration.back_reference
        )

        if declaration.link:
            link = self._foreign_key_named(junction, declaration.link)
            if link is None:
                raise RelationResolutionError(
                    f"{junction.__name__} has no foreign key named {declaration.link!r}"
                )
            candidates = [link]
        else:
            candidates = [
                (field_name, fk)
                for _, field_name, fk in self._foreign_keys(junction)
                if field_name != back_name
                and issubclass(wanted, self.target_type(fk.target))
            ]
            if not candidates:
                raise RelationResolutionError(
                    f"{junction.__name__} has no foreign key to {wanted.__name__} "
                    f"for the many-to-many field {parent.__name__}.{name}"
                )
            if len(candidates) > 1:
                names = ", ".join(field_name for field_name, _ in candidates)
                raise SchemaError(
                    f"Ambiguous link for {parent.__name__}.{name}: {junction.__name__} "
                    f"has several foreign keys to {wanted.__name__} ({names}); declare link="
                )

        link_name, link_fk = candidates[0]
        target = self.target_type(link_fk.target)
        if not is_record(target):
            raise SchemaError(f"{target.__name__} is not marked as a @record")

        return CollectionFieldBinding(
            name=name,
            json_key=declaration.map_from,
            kind=CollectionKind.MANY_TO_MANY,
            element=junction,
            target=target,
            back_reference_column=back_column,
            element_identity_column=self.identity_of(junction).column_name,
            link_column=relation_column(link_name, link_fk),
        )

    def _record_target(self, ref: TypeRef, parent: type, name: str) -> type:
        element = self.target_type(ref)
        if not is_record(element):
            raise SchemaError(
                f"{parent.__name__}.{name} refers to {element.__name__}, "
                "which is not marked as a @record"
            )
        return element

    def _foreign_keys(self, model: type):
        seen = set()
        for klass, field_name, declaration in walk_declarations(model):
            if field_name in seen:
                continue
            seen.add(field_name)
            if isinstance(declaration, ForeignKey):
                yield klass, field_name, declaration

    def _foreign_key_named(
        self, model: type, field_name: str
    ) -> Optional[Tuple[str, ForeignKey]]:
        for _, name, declaration in self._foreign_keys(model):
            if name == field_name:
                return name, declaration
        return None

    def _back_reference(
        self, element: type, parent: type, explicit: Optional[str]
    ) -> Tuple[str, str]:
        if explicit:
            found = self._foreign_key_named(element, explicit)
            if found is None:
                raise RelationResolutionError(
                    f"{element.__name__} has no foreign key named {explicit!r}"
                )
            return found[0], relation_column(*found)

        for _, field_name, declaration in self._foreign_keys(element):
            if issubclass(parent, self.target_type(declaration.target)):
                return field_name, relation_column(field_name, declaration)

        raise RelationResolutionError(
            f"No foreign key on {element.__name__} refers back to {parent.__name__}"
        )

    def _single_target_kind(self, element: type, column: str) -> Optional[ScalarKind]:
        for name, declaration in self._effective_declarations(element):
            if isinstance(declaration, Column) and (declaration.column or name) == column:
                return declaration.kind
        return None
