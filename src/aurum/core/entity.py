"""
Entity base class and the metaclass that builds mapping metadata.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional

from ..exceptions import EntityConfigurationError
from ..metadata.mapping import (
    AssociationMapping,
    EntityMetadata,
    FieldMapping,
    InheritanceMapping,
    JoinTableMapping,
)
from ..metadata.registry import metadata_registry
from ..utils import camel_to_snake
from .fields import AutoField, Field
from .relations import Association, ManyToMany, ToOneAssociation
from .types import TypeRegistry, type_registry


class EntityMeta(type):
    """
    Metaclass collecting field and association descriptors into ``cls._meta``.

    Supported ``Meta`` options: ``table``, ``abstract``, ``discriminator_column``,
    ``discriminator_value``, ``registry`` and ``type_registry``.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "EntityMeta":
        if not any(isinstance(base, EntityMeta) for base in bases):
            return super().__new__(mcls, name, bases, attrs)

        declared = [
            (attr_name, value)
            for attr_name, value in attrs.items()
            if isinstance(value, (Field, Association))
        ]
        cls = super().__new__(mcls, name, bases, attrs)
        options = attrs.get("Meta")
        parent = _concrete_parent(cls)
        abstract = bool(getattr(options, "abstract", False))

        if parent is not None:
            parent_meta: EntityMetadata = parent._meta
            registry = getattr(options, "registry", None) or parent_meta.registry
            types = getattr(options, "type_registry", None) or parent_meta.type_registry
            table = getattr(options, "table", None) or parent_meta.table_name
            if table != parent_meta.table_name:
                raise EntityConfigurationError(
                    f"Entity '{name}' inherits from '{parent.__name__}' and must share table "
                    f"'{parent_meta.table_name}'"
                )
            inheritance = parent_meta.inheritance
            if inheritance is None:
                raise EntityConfigurationError(
                    f"Entity '{name}' extends '{parent.__name__}', which declares no discriminator_column"
                )
        else:
            registry = getattr(options, "registry", None) or metadata_registry
            types = getattr(options, "type_registry", None) or type_registry
            table = getattr(options, "table", None) or camel_to_snake(name)
            inheritance = None
            discriminator_column = getattr(options, "discriminator_column", None)
            if discriminator_column:
                inheritance = InheritanceMapping(root=cls, discriminator_column=discriminator_column)

        metadata = EntityMetadata(
            cls,
            table,
            registry=registry,
            type_registry=types,
            inheritance=inheritance,
            abstract=abstract,
        )
        cls._meta = metadata

        if parent is not None:
            for mapping in parent._meta.field_mappings.values():
                metadata.add_field(mapping)
            for association in parent._meta.association_mappings.values():
                metadata.add_association(association)
        else:
            for ancestor in _abstract_ancestors(cls):
                for attr_name, descriptor in ancestor._meta.declared:
                    _contribute(metadata, cls, attr_name, descriptor)

        for attr_name, descriptor in sorted(declared, key=lambda item: item[1].creation_counter):
            descriptor.bind(cls, attr_name)
            metadata.declared.append((attr_name, descriptor))
            _contribute(metadata, cls, attr_name, descriptor)

        _add_foreign_keys(metadata, cls)

        if abstract:
            return cls

        if metadata._identifier is None:
            if metadata.has_field("id") or metadata.has_association("id"):
                raise EntityConfigurationError(
                    f"Entity '{name}' defines an attribute named 'id' but no identifier. "
                    "Set identifier=True on a field or use a different name."
                )
            auto_field = AutoField()
            auto_field.bind(cls, "id")
            setattr(cls, "id", auto_field)
            metadata.add_field(_field_mapping(auto_field, types))
        metadata.move_identifier_first()

        if inheritance is not None:
            value = getattr(options, "discriminator_value", None) or camel_to_snake(name)
            inheritance.register(str(value), cls)

        metadata.build_accessors()
        registry.register(cls)
        return cls


def _concrete_parent(cls: type) -> Optional[type]:
    for base in cls.__mro__[1:]:
        meta = base.__dict__.get("_meta")
        if isinstance(meta, EntityMetadata) and not meta.abstract:
            return base
    return None


def _abstract_ancestors(cls: type) -> List[type]:
    ancestors = []
    for base in reversed(cls.__mro__[1:]):
        meta = base.__dict__.get("_meta")
        if isinstance(meta, EntityMetadata) and meta.abstract:
            ancestors.append(base)
    return ancestors


def _field_mapping(descriptor: Field, types: TypeRegistry) -> FieldMapping:
    name = descriptor.require_name()
    return FieldMapping(
        name=name,
        column=descriptor.column_name(),
        type_name=descriptor.type_name,
        nullable=descriptor.nullable,
        identifier=descriptor.identifier,
        strategy=descriptor.strategy,
        descriptor=descriptor,
        _converter=types.get(descriptor.type_name) if descriptor.type_name else None,
    )


def _contribute(metadata: EntityMetadata, cls: type, attr_name: str, descriptor: Any) -> None:
    if isinstance(descriptor, Field):
        metadata.add_field(_field_mapping(descriptor, metadata.type_registry))
        return

    join_table = None
    if isinstance(descriptor, ManyToMany) and descriptor.owning:
        declared = descriptor.join_table
        join_table = JoinTableMapping(
            name=(declared.name if declared and declared.name else f"{metadata.table_name}_{attr_name}"),
            join_column=declared.join_column if declared else "entity_id",
            inverse_join_column=declared.inverse_join_column if declared else "related_id",
        )
    mapping = AssociationMapping(
        name=attr_name,
        kind=descriptor.kind,
        source=cls,
        target=descriptor.target,
        registry=metadata.registry,
        owning=descriptor.owning,
        nullable=descriptor.nullable,
        mapped_by=descriptor.mapped_by,
        inversed_by=descriptor.inversed_by,
        join_column=getattr(descriptor, "join_column", None),
        referenced_column=getattr(descriptor, "referenced_column", None),
        foreign_key=getattr(descriptor, "foreign_key", None),
        join_table=join_table,
        descriptor=descriptor,
    )
    metadata.add_association(mapping)


def _add_foreign_keys(metadata: EntityMetadata, cls: type) -> None:
    """
    Give every owning to-one association a scalar foreign key field.
    """

    for association in metadata.owning_to_one():
        fk_name = association.foreign_key
        if fk_name is None:
            continue
        if metadata.has_field(fk_name):
            mapping = metadata.get_field_mapping(fk_name)
            if mapping.association is None:
                mapping.association = association.name
            continue
        descriptor: ToOneAssociation = association.descriptor
        fk_field = descriptor.foreign_key_field()
        fk_field.bind(cls, fk_name)
        setattr(cls, fk_name, fk_field)
        metadata.add_field(
            FieldMapping(
                name=fk_name,
                column=fk_field.column_name(),
                type_name="",
                nullable=fk_field.nullable,
                association=association.name,
                descriptor=fk_field,
                _resolve_converter=_referenced_converter(association),
            )
        )


def _referenced_converter(association: AssociationMapping):
    def resolve():
        target = association.target_metadata
        column = association.referenced_column
        if column is None or column == target.identifier_column:
            return target.identifier.converter
        mapping = target.field_for_column(column)
        if mapping is None:
            raise EntityConfigurationError(
                f"Referenced column '{column}' is not mapped on '{target.entity_class.__name__}'"
            )
        return mapping.converter

    return resolve


class Entity(metaclass=EntityMeta):
    """
    Base class for mapped domain objects.

    Persistence is handled by an :class:`~aurum.persistence.EntityManager`; an
    entity carries only its field values and related objects.
    """

    _meta: ClassVar[EntityMetadata]

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        self._related: Dict[str, Any] = {}
        meta = self._meta
        if meta.abstract:
            raise EntityConfigurationError(f"Cannot instantiate abstract entity '{type(self).__name__}'")

        for mapping in meta.field_mappings.values():
            if mapping.name in kwargs or mapping.identifier:
                continue
            descriptor = mapping.descriptor
            if descriptor.has_default:
                descriptor.store(self, descriptor.get_default())

        for key, value in kwargs.items():
            if not meta.has_field(key) and not meta.has_association(key):
                raise TypeError(f"{type(self).__name__}() got an unexpected keyword argument '{key}'")
            setattr(self, key, value)

    def __repr__(self) -> str:
        values = self.__dict__.get("_field_values", {})
        field_parts = ", ".join(
            f"{name}={values[name]!r}" for name in self._meta.field_mappings if name in values
        )
        return f"<{self.__class__.__name__} {field_parts}>"


def metadata_for(entity_or_class: Any) -> EntityMetadata:
    entity_class = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
    metadata = getattr(entity_class, "_meta", None)
    if not isinstance(metadata, EntityMetadata) or metadata.abstract:
        raise EntityConfigurationError(f"'{entity_class.__name__}' is not a mapped entity")
    return metadata
