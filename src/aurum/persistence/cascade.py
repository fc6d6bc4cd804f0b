"""
Persist cascading across associations and the many-to-many change set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Tuple

from ..core.entity import metadata_for
from ..core.relations import ONE_TO_MANY
from ..metadata.mapping import AssociationMapping
from .proxy import LazyCollection

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@dataclass
class JunctionChange:
    """
    Desired contents of one owning many-to-many collection.
    """

    owner: Any
    association: AssociationMapping
    targets: List[Any] = field(default_factory=list)

    @property
    def table(self) -> str:
        join_table = self.association.join_table
        return join_table.name if join_table else ""


class JunctionChangeSet:
    """
    Pending junction rows keyed by (junction table, owning entity, owning field).

    Owners are keyed by object identity because generated identifiers are only
    known after insertion.
    """

    def __init__(self) -> None:
        self._changes: Dict[Tuple[str, int, str], JunctionChange] = {}

    def record(self, owner: Any, association: AssociationMapping, targets: List[Any]) -> None:
        change = JunctionChange(owner=owner, association=association, targets=list(targets))
        self._changes[(change.table, id(owner), association.name)] = change

    def discard_owner(self, owner: Any) -> None:
        for key in [key for key, change in self._changes.items() if change.owner is owner]:
            del self._changes[key]

    def clear(self) -> None:
        self._changes.clear()

    def __iter__(self) -> Iterator[JunctionChange]:
        return iter(list(self._changes.values()))

    def __len__(self) -> int:
        return len(self._changes)


class CascadeResolver:
    """
    Persist reachable transient entities and keep foreign keys in step.

    Entities already tracked by the unit of work are never revisited, which keeps
    cyclic graphs finite.
    """

    def __init__(self, unit_of_work: "UnitOfWork") -> None:
        self.unit_of_work = unit_of_work

    def cascade_persist(self, entity: Any) -> None:
        metadata = metadata_for(entity)
        related = entity.__dict__.get("_related", {})
        for association in metadata.association_mappings.values():
            if association.name not in related:
                continue
            value = related[association.name]
            if value is None:
                continue
            if association.is_to_one:
                self._cascade_to_one(entity, association, value)
            else:
                self._cascade_to_many(entity, association, value)

    def _cascade_to_one(self, entity: Any, association: AssociationMapping, target: Any) -> None:
        self._persist_if_new(target)
        if association.owning:
            if association.foreign_key is None:
                return
            reference = metadata_for(entity).foreign_key_value(entity, association)
            if reference is not None:
                entity._field_values[association.foreign_key] = reference
        elif association.mapped_by:
            target_related = target.__dict__.get("_related", {})
            if target_related.get(association.mapped_by) is not entity:
                metadata_for(target).set_value(target, association.mapped_by, entity)

    def _cascade_to_many(self, entity: Any, association: AssociationMapping, collection: Any) -> None:
        if isinstance(collection, LazyCollection) and not collection.is_initialized():
            return
        elements = list(collection)
        for element in elements:
            self._persist_if_new(element)
            if association.kind == ONE_TO_MANY and association.mapped_by:
                element_related = element.__dict__.get("_related", {})
                if element_related.get(association.mapped_by) is not entity:
                    metadata_for(element).set_value(element, association.mapped_by, entity)
        if association.is_owning_many_to_many:
            self.unit_of_work.junctions.record(entity, association, elements)

    def _persist_if_new(self, target: Any) -> None:
        if not self.unit_of_work.is_tracked(target):
            self.unit_of_work.persist(target)
