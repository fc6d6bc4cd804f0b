"""
Mapping metadata describing how entity classes map onto tables.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, NamedTuple, Optional, Type

from ..core.relations import MANY_TO_MANY, MANY_TO_ONE, ONE_TO_MANY, ONE_TO_ONE
from ..core.types import TypeConverter
from ..exceptions import EntityConfigurationError

if TYPE_CHECKING:
    from .registry import MetadataRegistry


@dataclass
class FieldMapping:
    """
    Scalar column mapping. ``association`` names the owning to-one association
    when the field carries a foreign key.
    """

    name: str
    column: str
    type_name: str
    nullable: bool = True
    identifier: bool = False
    strategy: Optional[str] = None
    association: Optional[str] = None
    descriptor: Any = field(default=None, repr=False, compare=False)
    _converter: Optional[TypeConverter] = field(default=None, repr=False, compare=False)
    _resolve_converter: Optional[Callable[[], TypeConverter]] = field(
        default=None, repr=False, compare=False
    )

    @property
    def converter(self) -> TypeConverter:
        if self._converter is None:
            if self._resolve_converter is None:
                raise EntityConfigurationError(f"No type converter available for field '{self.name}'")
            self._converter = self._resolve_converter()
        return self._converter

    @property
    def is_generated(self) -> bool:
        return self.identifier and self.strategy == "auto"


@dataclass(frozen=True)
class JoinTableMapping:
    name: str
    join_column: str
    inverse_join_column: str


@dataclass
class AssociationMapping:
    """
    Relationship between the source entity and a target entity class.
    """

    name: str
    kind: str
    source: Type
    target: Type | str
    registry: "MetadataRegistry" = field(repr=False, compare=False)
    owning: bool = True
    nullable: bool = True
    mapped_by: Optional[str] = None
    inversed_by: Optional[str] = None
    join_column: Optional[str] = None
    referenced_column: Optional[str] = None
    foreign_key: Optional[str] = None
    join_table: Optional[JoinTableMapping] = None
    descriptor: Any = field(default=None, repr=False, compare=False)
    _target_class: Optional[Type] = field(default=None, repr=False, compare=False)

    @property
    def target_class(self) -> Type:
        if self._target_class is None:
            resolved = self.registry.resolve(self.target, context=self.source)
            if resolved is None:
                raise EntityConfigurationError(
                    f"Association '{self.source.__name__}.{self.name}' targets unknown entity "
                    f"'{self.target}'"
                )
            self._target_class = resolved
        return self._target_class

    @property
    def target_metadata(self) -> "EntityMetadata":
        return self.registry.get_metadata_for(self.target_class)

    @property
    def is_to_one(self) -> bool:
        return self.kind in (MANY_TO_ONE, ONE_TO_ONE)

    @property
    def is_to_many(self) -> bool:
        return self.kind in (ONE_TO_MANY, MANY_TO_MANY)

    @property
    def is_owning_to_one(self) -> bool:
        return self.is_to_one and self.owning

    @property
    def is_owning_many_to_many(self) -> bool:
        return self.kind == MANY_TO_MANY and self.owning


@dataclass
class InheritanceMapping:
    """
    Single-table inheritance: one discriminator column selects the concrete class.
    """

    root: Type
    discriminator_column: str
    discriminator_map: Dict[str, Type] = field(default_factory=dict)

    def register(self, value: str, entity_class: Type) -> None:
        existing = self.discriminator_map.get(value)
        if existing is not None and existing is not entity_class:
            raise EntityConfigurationError(
                f"Discriminator value '{value}' is already mapped to '{existing.__name__}'"
            )
        self.discriminator_map[value] = entity_class

    def resolve(self, value: Any) -> Optional[Type]:
        if value is None:
            return None
        return self.discriminator_map.get(str(value))

    def value_for(self, entity_class: Type) -> Optional[str]:
        for value, mapped in self.discriminator_map.items():
            if mapped is entity_class:
                return value
        return None


class Accessor(NamedTuple):
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]


class EntityMetadata:
    """
    Per-class mapping information plus the accessor table used to read and
    write mapped attributes.
    """

    def __init__(
        self,
        entity_class: Type,
        table_name: str,
        *,
        registry: "MetadataRegistry",
        type_registry: Any,
        inheritance: Optional[InheritanceMapping] = None,
        abstract: bool = False,
    ) -> None:
        self.entity_class = entity_class
        self.table_name = table_name
        self.registry = registry
        self.type_registry = type_registry
        self.inheritance = inheritance
        self.abstract = abstract
        self.field_mappings: "OrderedDict[str, FieldMapping]" = OrderedDict()
        self.association_mappings: "OrderedDict[str, AssociationMapping]" = OrderedDict()
        self.declared: list[Any] = []
        self._columns: Dict[str, FieldMapping] = {}
        self._identifier: Optional[FieldMapping] = None
        self._accessors: Dict[str, Accessor] = {}

    # Construction --------------------------------------------------------
    def add_field(self, mapping: FieldMapping) -> None:
        if mapping.name in self.field_mappings or mapping.name in self.association_mappings:
            raise EntityConfigurationError(
                f"Duplicate field name '{mapping.name}' on entity '{self.entity_class.__name__}'"
            )
        if mapping.column in self._columns:
            raise EntityConfigurationError(
                f"Column '{mapping.column}' is mapped twice on entity '{self.entity_class.__name__}'"
            )
        if mapping.identifier:
            if self._identifier is not None:
                raise EntityConfigurationError(
                    f"Multiple identifier fields defined on entity '{self.entity_class.__name__}'"
                )
            self._identifier = mapping
        self.field_mappings[mapping.name] = mapping
        self._columns[mapping.column] = mapping

    def add_association(self, mapping: AssociationMapping) -> None:
        if mapping.name in self.association_mappings or mapping.name in self.field_mappings:
            raise EntityConfigurationError(
                f"Duplicate association name '{mapping.name}' on entity '{self.entity_class.__name__}'"
            )
        self.association_mappings[mapping.name] = mapping

    def move_identifier_first(self) -> None:
        identifier = self.identifier
        ordered = OrderedDict([(identifier.name, identifier)])
        ordered.update((name, mapping) for name, mapping in self.field_mappings.items() if mapping is not identifier)
        self.field_mappings = ordered

    def build_accessors(self) -> None:
        """
        Build the accessor table from the descriptors on the entity class.
        """

        owner = self.entity_class
        accessors: Dict[str, Accessor] = {}
        for mapping in self.field_mappings.values():
            descriptor = mapping.descriptor
            accessors[mapping.name] = Accessor(
                get=_descriptor_getter(descriptor, owner),
                set=descriptor.store,
            )
        for association in self.association_mappings.values():
            descriptor = association.descriptor
            if association.is_owning_to_one:
                setter = _foreign_key_setter(descriptor)
            else:
                setter = descriptor.store
            accessors[association.name] = Accessor(
                get=_descriptor_getter(descriptor, owner),
                set=setter,
            )
        self._accessors = accessors

    # Lookups -------------------------------------------------------------
    @property
    def identifier(self) -> FieldMapping:
        if self._identifier is None:
            raise EntityConfigurationError(
                f"Entity '{self.entity_class.__name__}' does not define an identifier"
            )
        return self._identifier

    @property
    def identifier_column(self) -> str:
        return self.identifier.column

    @property
    def has_generated_identifier(self) -> bool:
        return self.identifier.is_generated

    def get_field_mapping(self, name: str) -> FieldMapping:
        try:
            return self.field_mappings[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on entity '{self.entity_class.__name__}'") from exc

    def has_field(self, name: str) -> bool:
        return name in self.field_mappings

    def field_for_column(self, column: str) -> Optional[FieldMapping]:
        return self._columns.get(column)

    def get_association(self, name: str) -> AssociationMapping:
        try:
            return self.association_mappings[name]
        except KeyError as exc:
            raise KeyError(
                f"Unknown association '{name}' on entity '{self.entity_class.__name__}'"
            ) from exc

    def has_association(self, name: str) -> bool:
        return name in self.association_mappings

    def owning_to_one(self) -> list[AssociationMapping]:
        return [assoc for assoc in self.association_mappings.values() if assoc.is_owning_to_one]

    def to_many(self) -> list[AssociationMapping]:
        return [assoc for assoc in self.association_mappings.values() if assoc.is_to_many]

    def columns(self) -> list[str]:
        return [mapping.column for mapping in self.field_mappings.values()]

    @property
    def discriminator_value(self) -> Optional[str]:
        if self.inheritance is None:
            return None
        return self.inheritance.value_for(self.entity_class)

    # Accessors -----------------------------------------------------------
    def _accessor(self, name: str) -> Accessor:
        try:
            return self._accessors[name]
        except KeyError as exc:
            raise KeyError(
                f"Unknown attribute '{name}' on entity '{self.entity_class.__name__}'"
            ) from exc

    def get_value(self, entity: Any, name: str) -> Any:
        return self._accessor(name).get(entity)

    def set_value(self, entity: Any, name: str, value: Any) -> None:
        self._accessor(name).set(entity, value)

    def get_identifier(self, entity: Any) -> Any:
        return self._accessor(self.identifier.name).get(entity)

    def set_identifier(self, entity: Any, value: Any) -> None:
        self._accessor(self.identifier.name).set(entity, value)

    def referenced_value(self, entity: Any, column: Optional[str] = None) -> Any:
        """
        Value a foreign key pointing at ``entity`` should carry.
        """

        if column is None or column == self.identifier_column:
            return self.get_identifier(entity)
        mapping = self.field_for_column(column)
        if mapping is None:
            raise EntityConfigurationError(
                f"Referenced column '{column}' is not mapped on entity '{self.entity_class.__name__}'"
            )
        return self.get_value(entity, mapping.name)

    def foreign_key_value(self, entity: Any, association: AssociationMapping) -> Any:
        """
        Resolve the join column value of an owning to-one association.

        The related object wins when one has been assigned; otherwise the scalar
        foreign key field is used.
        """

        if association.name in entity.__dict__.get("_related", {}):
            target = entity._related[association.name]
            if target is None:
                return None
            target_meta = association.target_metadata
            if not isinstance(target, target_meta.entity_class):
                target_meta = target._meta
            reference = target_meta.referenced_value(target, association.referenced_column)
            if reference is not None:
                return reference
        if association.foreign_key is None:
            return None
        return entity.__dict__.get("_field_values", {}).get(association.foreign_key)

    def new_instance(self) -> Any:
        """
        Create an instance without running ``__init__``.
        """

        instance = self.entity_class.__new__(self.entity_class)
        instance.__dict__["_field_values"] = {}
        instance.__dict__["_related"] = {}
        return instance

    def normalize_identifier(self, value: Any) -> Any:
        if value is None:
            return None
        converter = self.identifier.converter
        return converter.from_storage(converter.to_storage(value))

    def extract(self, entity: Any, names: Iterable[str] | None = None) -> Dict[str, Any]:
        selected = names if names is not None else self.field_mappings.keys()
        return {name: self.get_value(entity, name) for name in selected}

    def __repr__(self) -> str:
        return f"<EntityMetadata {self.entity_class.__name__} table={self.table_name!r}>"


def _descriptor_getter(descriptor: Any, owner: Type) -> Callable[[Any], Any]:
    def getter(entity: Any) -> Any:
        return descriptor.__get__(entity, owner)

    return getter


def _foreign_key_setter(descriptor: Any) -> Callable[[Any, Any], None]:
    def setter(entity: Any, value: Any) -> None:
        descriptor.store(entity, value)
        descriptor.sync_foreign_key(entity, value)

    return setter
