"""
Turn result rows into entities.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Type

from ..core.entity import metadata_for
from ..metadata.mapping import EntityMetadata
from .proxy import LazyCollection, ProxyFactory, is_initialized, is_proxy

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


class HydrationMode(Enum):
    MANAGED = "managed"
    DETACHED = "detached"


class EntityHydrator:
    """
    Builds entities from rows keyed by field name or column name.

    In managed mode the entity joins the unit of work (identity map, snapshot,
    lazy associations) and an instance already tracked for the same identity is
    returned instead of a new one. Detached mode only populates fields.
    """

    def __init__(self, proxy_factory: Optional[ProxyFactory] = None) -> None:
        self.proxies = proxy_factory or ProxyFactory()

    def hydrate(
        self,
        row: Mapping[str, Any],
        entity_class: Type[Any],
        mode: HydrationMode = HydrationMode.MANAGED,
        unit_of_work: Optional["UnitOfWork"] = None,
    ) -> Any:
        metadata = self.resolve_metadata(row, entity_class)
        managed = mode is HydrationMode.MANAGED and unit_of_work is not None

        if managed:
            identifier = self._identifier_from_row(row, metadata)
            existing = unit_of_work.identity_map.get(metadata.entity_class, identifier)
            if existing is not None:
                if is_proxy(existing) and not is_initialized(existing):
                    self.populate(existing, row)
                    existing.__dict__["_ghost"].initialized = True
                    unit_of_work.register_managed(existing)
                return existing

        entity = metadata.new_instance()
        self.populate(entity, row)
        if managed:
            unit_of_work.register_managed(entity)
        return entity

    def hydrate_all(
        self,
        rows: Iterable[Mapping[str, Any]],
        entity_class: Type[Any],
        mode: HydrationMode = HydrationMode.MANAGED,
        unit_of_work: Optional["UnitOfWork"] = None,
    ) -> List[Any]:
        return [self.hydrate(row, entity_class, mode, unit_of_work) for row in rows]

    def resolve_metadata(self, row: Mapping[str, Any], entity_class: Type[Any]) -> EntityMetadata:
        """
        Pick the concrete class from the discriminator column, falling back to the
        requested class.
        """

        metadata = metadata_for(entity_class)
        inheritance = metadata.inheritance
        if inheritance is None or inheritance.discriminator_column not in row:
            return metadata
        resolved = inheritance.resolve(row[inheritance.discriminator_column])
        if resolved is None or not issubclass(resolved, entity_class):
            return metadata
        return metadata_for(resolved)

    @staticmethod
    def _identifier_from_row(row: Mapping[str, Any], metadata: EntityMetadata) -> Any:
        identifier = metadata.identifier
        if identifier.name in row:
            raw = row[identifier.name]
        else:
            raw = row.get(identifier.column)
        return identifier.converter.from_storage(raw)

    def populate(self, entity: Any, row: Mapping[str, Any]) -> Any:
        metadata = metadata_for(entity)
        for mapping in metadata.field_mappings.values():
            if mapping.name in row:
                raw = row[mapping.name]
            elif mapping.column in row:
                raw = row[mapping.column]
            else:
                continue
            value = mapping.converter.from_storage(raw)
            if value is None and not mapping.nullable:
                continue
            metadata.set_value(entity, mapping.name, value)
        return entity

    def extract(self, entity: Any) -> Dict[str, Any]:
        return metadata_for(entity).extract(entity)

    def merge(self, source: Any, target: Any, skip_identifier: bool = True) -> Any:
        """
        Copy field values and assigned associations from ``source`` onto ``target``.
        """

        metadata = metadata_for(target)
        source_values = source.__dict__.get("_field_values", {})
        for mapping in metadata.field_mappings.values():
            if skip_identifier and mapping.identifier:
                continue
            if mapping.name in source_values:
                metadata.set_value(target, mapping.name, source_values[mapping.name])
        source_related = source.__dict__.get("_related", {})
        for association in metadata.association_mappings.values():
            if association.name not in source_related:
                continue
            value = source_related[association.name]
            if isinstance(value, LazyCollection) and not value.is_initialized():
                continue
            if association.is_to_many:
                value = list(value)
            metadata.set_value(target, association.name, value)
        return target

    def wire_associations(self, entity: Any, unit_of_work: "UnitOfWork") -> None:
        """
        Attach lazy references and collections to a managed entity.

        Owning to-one associations become ghost references resolved through the
        identity map; to-many associations become :class:`LazyCollection` objects.
        Associations already present on the entity are left alone.
        """

        metadata = metadata_for(entity)
        related = entity.__dict__["_related"]
        values = entity.__dict__["_field_values"]
        for association in metadata.association_mappings.values():
            if association.name in related:
                continue
            if association.is_owning_to_one:
                referenced = association.referenced_column
                target_meta = association.target_metadata
                if referenced is not None and referenced != target_meta.identifier_column:
                    continue
                foreign_key = values.get(association.foreign_key) if association.foreign_key else None
                if foreign_key is None:
                    related[association.name] = None
                    continue
                related[association.name] = unit_of_work.get_reference(
                    association.target_class, foreign_key
                )
            elif association.is_to_many:
                related[association.name] = LazyCollection(
                    _collection_loader(unit_of_work, entity, association.name)
                )


def _collection_loader(unit_of_work: "UnitOfWork", owner: Any, name: str):
    def load() -> List[Any]:
        return unit_of_work.load_collection(owner, name)

    return load
