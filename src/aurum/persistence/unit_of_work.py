"""
Unit of Work: change tracking and the flush algorithm.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Type

from ..adapters.connection import Connection, Row
from ..core.entity import metadata_for
from ..core.relations import MANY_TO_MANY, ONE_TO_MANY
from ..exceptions import (
    EntityNotFoundError,
    EntityNotManagedError,
    NoActiveTransactionError,
    ORMError,
    QueryFailedError,
    WriteFailureError,
)
from ..metadata.mapping import AssociationMapping, EntityMetadata
from ..utils import get_logger, parameter_name, uuid7
from .cascade import CascadeResolver, JunctionChange, JunctionChangeSet
from .hydration import EntityHydrator, HydrationMode
from .identity_map import IdentityMap
from .ordering import sort_insertions
from .proxy import LazyCollection, ProxyFactory, initialize, is_initialized
from .savepoint import SavepointManager
from .snapshots import Snapshot, SnapshotStore

_savepoint_counter = itertools.count(1)


class EntitySet:
    """
    Insertion-ordered set of entities keyed by object identity.
    """

    def __init__(self) -> None:
        self._items: Dict[int, Any] = {}

    def add(self, entity: Any) -> None:
        self._items.setdefault(id(entity), entity)

    def discard(self, entity: Any) -> None:
        if self._items.get(id(entity)) is entity:
            del self._items[id(entity)]

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, entity: object) -> bool:
        return self._items.get(id(entity)) is entity

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


class FlushJournal:
    """
    In-memory bookkeeping done by one flush, kept so a failed flush can be undone.

    ``inserted`` pairs each entity with whether the database generated its
    identifier; ``updated`` and ``deleted`` keep the snapshot the entity had
    before the flush touched it.
    """

    def __init__(self, junction_state: Dict[Tuple[int, str], Tuple[Any, FrozenSet[Any]]]) -> None:
        self.junction_state = dict(junction_state)
        self.inserted: List[Tuple[Any, bool]] = []
        self.updated: List[Tuple[Any, Optional[Snapshot]]] = []
        self.deleted: List[Tuple[Any, Optional[Snapshot]]] = []


class UnitOfWork:
    """
    Tracks new, dirty and removed entities for one isolated unit of work.

    Several units of work may share a connection; each flushes inside its own
    savepoint so a failure only rolls back its own statements.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        savepoint_name: Optional[str] = None,
        proxy_factory: Optional[ProxyFactory] = None,
        hydrator: Optional[EntityHydrator] = None,
    ) -> None:
        self.connection = connection
        self.identity_map = IdentityMap()
        self.snapshots = SnapshotStore()
        self.proxies = proxy_factory or ProxyFactory()
        self.hydrator = hydrator or EntityHydrator(self.proxies)
        self.cascade = CascadeResolver(self)
        self.junctions = JunctionChangeSet()
        self.savepoint = SavepointManager(
            connection, savepoint_name or f"uow_{next(_savepoint_counter)}"
        )
        self.insertions = EntitySet()
        self.updates = EntitySet()
        self.deletions = EntitySet()
        self._junction_state: Dict[Tuple[int, str], Tuple[Any, FrozenSet[Any]]] = {}
        self._journal: Optional[FlushJournal] = None
        self.logger = get_logger("persistence.unit_of_work")

    @property
    def name(self) -> str:
        return self.savepoint.name

    # ------------------------------------------------------------------ #
    # State queries
    # ------------------------------------------------------------------ #
    def is_tracked(self, entity: Any) -> bool:
        """
        Whether the entity is known to this unit of work in any state.
        """

        return (
            entity in self.insertions
            or entity in self.deletions
            or self.snapshots.has(entity)
            or self.identity_map.contains_object(entity)
        )

    def contains(self, entity: Any) -> bool:
        if entity in self.deletions:
            return False
        return self.is_tracked(entity)

    def is_scheduled_for_insert(self, entity: Any) -> bool:
        return entity in self.insertions

    def is_scheduled_for_update(self, entity: Any) -> bool:
        return entity in self.updates

    def is_scheduled_for_delete(self, entity: Any) -> bool:
        return entity in self.deletions

    def managed_entities(self) -> List[Any]:
        seen: Dict[int, Any] = {}
        for entity in itertools.chain(self.snapshots.entities(), self.identity_map.values()):
            seen.setdefault(id(entity), entity)
        return list(seen.values())

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #
    def persist(self, entity: Any) -> None:
        metadata = metadata_for(entity)
        if entity in self.deletions:
            self.deletions.discard(entity)
        elif not self.is_tracked(entity):
            identifier = metadata.get_identifier(entity)
            if identifier is None and metadata.identifier.strategy == "uuid":
                identifier = uuid7()
                metadata.set_identifier(entity, identifier)
            if identifier is not None:
                self.identity_map.register(entity, identifier)
            self.insertions.add(entity)
        self.cascade.cascade_persist(entity)

    def remove(self, entity: Any) -> None:
        if entity in self.insertions:
            self.insertions.discard(entity)
            self.identity_map.remove(entity)
            self.junctions.discard_owner(entity)
            return
        if not self.is_tracked(entity):
            raise EntityNotManagedError(
                f"Cannot remove {type(entity).__name__}: it is not managed by this unit of work"
            )
        self.updates.discard(entity)
        self.deletions.add(entity)

    def detach(self, entity: Any) -> None:
        self.insertions.discard(entity)
        self.updates.discard(entity)
        self.deletions.discard(entity)
        self.identity_map.remove(entity)
        self.snapshots.discard(entity)
        self.junctions.discard_owner(entity)
        self._forget_junction_state(entity)

    def _forget_junction_state(self, entity: Any) -> None:
        for key in [key for key, (owner, _) in self._junction_state.items() if owner is entity]:
            del self._junction_state[key]

    def register_managed(self, entity: Any) -> Any:
        """
        Track an entity loaded from the database.
        """

        self.identity_map.register(entity)
        self.hydrator.wire_associations(entity, self)
        self.snapshots.take(entity)
        return entity

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def find(self, entity_class: Type[Any], identifier: Any) -> Optional[Any]:
        if identifier is None:
            return None
        existing = self.identity_map.get(entity_class, identifier)
        if existing is not None:
            if not is_initialized(existing):
                try:
                    initialize(existing)
                except EntityNotFoundError:
                    self.identity_map.remove(existing)
                    return None
            return existing
        row = self.select_row(metadata_for(entity_class), identifier)
        if row is None:
            return None
        return self.hydrator.hydrate(row, entity_class, HydrationMode.MANAGED, self)

    def get_reference(self, entity_class: Type[Any], identifier: Any) -> Any:
        existing = self.identity_map.get(entity_class, identifier)
        if existing is not None:
            return existing
        metadata = metadata_for(entity_class)
        normalized = metadata.normalize_identifier(identifier)

        def load() -> Optional[Any]:
            row = self.select_row(metadata, normalized)
            if row is None:
                return None
            return self.hydrator.hydrate(row, entity_class, HydrationMode.DETACHED)

        ghost = self.proxies.create_proxy(
            entity_class, normalized, load, on_initialized=self._proxy_initialized
        )
        self.identity_map.register(ghost, normalized)
        return ghost

    def _proxy_initialized(self, ghost: Any) -> None:
        self.hydrator.wire_associations(ghost, self)
        self.snapshots.take(ghost)

    def refresh(self, entity: Any) -> Any:
        if not self.contains(entity) or entity in self.insertions:
            raise EntityNotManagedError(
                f"Cannot refresh {type(entity).__name__}: it is not a persisted, managed entity"
            )
        metadata = metadata_for(entity)
        identifier = metadata.get_identifier(entity)
        row = self.select_row(metadata, identifier)
        if row is None:
            raise EntityNotFoundError(type(entity), identifier)
        self.hydrator.populate(entity, row)
        ghost = entity.__dict__.get("_ghost")
        if ghost is not None:
            ghost.initialized = True
        entity.__dict__["_related"].clear()
        for key in [key for key, (owner, _) in self._junction_state.items() if owner is entity]:
            del self._junction_state[key]
        self.updates.discard(entity)
        self.register_managed(entity)
        return entity

    def merge(self, entity: Any) -> Any:
        """
        Copy the state of a detached entity onto its managed counterpart.

        Unknown identities are treated as new entities and scheduled for insertion.
        """

        if self.contains(entity):
            return entity
        metadata = metadata_for(entity)
        identifier = metadata.get_identifier(entity)
        managed = self.find(type(entity), identifier) if identifier is not None else None
        if managed is None:
            managed = metadata.new_instance()
            self.hydrator.merge(entity, managed, skip_identifier=False)
            self.persist(managed)
            return managed
        self.hydrator.merge(entity, managed)
        return managed

    def select_row(self, metadata: EntityMetadata, identifier: Any) -> Optional[Row]:
        identifier_mapping = metadata.identifier
        conn = self.connection
        where = [f"{conn.quote_identifier(identifier_mapping.column)} = {conn.placeholder('id')}"]
        params: Dict[str, Any] = {"id": identifier_mapping.converter.to_storage(identifier)}
        where.extend(self.discriminator_filter(metadata, params))
        sql = (
            f"SELECT * FROM {conn.format_table(metadata.table_name)} "
            f"WHERE {' AND '.join(where)}"
        )
        return conn.fetch_one(sql, params)

    def discriminator_filter(self, metadata: EntityMetadata, params: Dict[str, Any]) -> List[str]:
        """
        Restrict a query on a single-table subclass to its own discriminator values.
        """

        inheritance = metadata.inheritance
        if inheritance is None or metadata.entity_class is inheritance.root:
            return []
        values = [
            value
            for value, mapped in inheritance.discriminator_map.items()
            if issubclass(mapped, metadata.entity_class)
        ]
        conn = self.connection
        names = []
        for index, value in enumerate(values):
            name = f"disc_{index}"
            params[name] = value
            names.append(conn.placeholder(name))
        column = conn.quote_identifier(inheritance.discriminator_column)
        return [f"{column} IN ({', '.join(names)})"]

    def load_collection(self, owner: Any, name: str) -> List[Any]:
        association = metadata_for(owner).get_association(name)
        if association.kind == ONE_TO_MANY:
            return self._load_one_to_many(owner, association)
        if association.kind == MANY_TO_MANY:
            return self._load_many_to_many(owner, association)
        raise EntityNotManagedError(f"Association '{name}' is not a collection")

    def _load_one_to_many(self, owner: Any, association: AssociationMapping) -> List[Any]:
        target_meta = association.target_metadata
        inverse = target_meta.get_association(association.mapped_by or "")
        owner_value = metadata_for(owner).referenced_value(owner, inverse.referenced_column)
        if owner_value is None:
            return []
        conn = self.connection
        params: Dict[str, Any] = {"owner": owner_value}
        where = [f"{conn.quote_identifier(inverse.join_column or '')} = {conn.placeholder('owner')}"]
        where.extend(self.discriminator_filter(target_meta, params))
        sql = (
            f"SELECT * FROM {conn.format_table(target_meta.table_name)} "
            f"WHERE {' AND '.join(where)}"
        )
        rows = conn.fetch_all(sql, params)
        return self.hydrator.hydrate_all(rows, target_meta.entity_class, HydrationMode.MANAGED, self)

    def _load_many_to_many(self, owner: Any, association: AssociationMapping) -> List[Any]:
        owner_meta = metadata_for(owner)
        target_meta = association.target_metadata
        if association.owning:
            join_table = association.join_table
            owner_column = join_table.join_column
            target_column = join_table.inverse_join_column
        else:
            owning = target_meta.get_association(association.mapped_by or "")
            join_table = owning.join_table
            owner_column = join_table.inverse_join_column
            target_column = join_table.join_column
        owner_id = owner_meta.get_identifier(owner)
        if owner_id is None:
            return []
        conn = self.connection
        q = conn.quote_identifier
        sql = (
            f"SELECT t.* FROM {conn.format_table(target_meta.table_name)} t "
            f"INNER JOIN {conn.format_table(join_table.name)} j "
            f"ON j.{q(target_column)} = t.{q(target_meta.identifier_column)} "
            f"WHERE j.{q(owner_column)} = {conn.placeholder('owner')}"
        )
        params = {"owner": owner_meta.identifier.converter.to_storage(owner_id)}
        rows = conn.fetch_all(sql, params)
        targets = self.hydrator.hydrate_all(rows, target_meta.entity_class, HydrationMode.MANAGED, self)
        if association.owning:
            self._junction_state[(id(owner), association.name)] = (
                owner,
                self._target_keys(target_meta, targets),
            )
        return targets

    @staticmethod
    def _target_keys(target_meta: EntityMetadata, targets: Iterable[Any]) -> FrozenSet[Any]:
        keys = set()
        for target in targets:
            identifier = metadata_for(target).get_identifier(target)
            if identifier is not None:
                keys.add(target_meta.normalize_identifier(identifier))
        return frozenset(keys)

    # ------------------------------------------------------------------ #
    # Flush
    # ------------------------------------------------------------------ #
    def compute_change_sets(self) -> None:
        """
        Dirty-check managed entities and schedule the changed ones for update.
        """

        for entity in self.snapshots.entities():
            if entity in self.insertions or entity in self.deletions:
                continue
            if self.snapshots.is_dirty(entity):
                self.updates.add(entity)

    def flush(self) -> None:
        if not self.connection.in_transaction:
            raise NoActiveTransactionError("flush() requires an active transaction.")
        flush_name = self.savepoint.begin_flush()
        self._journal = FlushJournal(self._junction_state)
        try:
            self._collect_pending()
            self._execute_deletions()
            self._execute_insertions()
            self.compute_change_sets()
            self._execute_updates()
            self._execute_junction_changes()
        except Exception:
            self._rollback_after_failure(flush_name)
            raise
        self._journal = None
        self.savepoint.end_flush(flush_name)
        self.insertions.clear()
        self.updates.clear()
        self.deletions.clear()
        self.junctions.clear()

    def _rollback_after_failure(self, flush_name: Optional[str]) -> None:
        """
        Roll back the failed flush's statements and reschedule what they wrote.
        """

        try:
            self.savepoint.abort_flush(flush_name)
        except ORMError:
            self.logger.exception("Rolling back flush savepoint %s failed", flush_name)
        journal, self._journal = self._journal, None
        if journal is None:
            return
        for entity, snapshot in journal.updated:
            self.snapshots.restore(entity, snapshot)
        for entity, generated in journal.inserted:
            self.snapshots.discard(entity)
            if generated:
                self.identity_map.remove(entity)
                metadata_for(entity).set_identifier(entity, None)
            self.insertions.add(entity)
        for entity, snapshot in journal.deleted:
            self.identity_map.register(entity)
            self.snapshots.restore(entity, snapshot)
            self.deletions.add(entity)
        self._junction_state.clear()
        self._junction_state.update(journal.junction_state)
        self.logger.debug(
            "Rescheduled %d insert(s), %d update(s) and %d delete(s) after a failed flush of %s",
            len(journal.inserted),
            len(journal.updated),
            len(journal.deleted),
            self.name,
        )

    def _collect_pending(self) -> None:
        """
        Cascade over managed entities and record owning many-to-many collections.
        """

        for entity in list(self.insertions) + self.managed_entities():
            if entity in self.deletions or not is_initialized(entity):
                continue
            self.cascade.cascade_persist(entity)
        for entity in list(self.insertions) + self.managed_entities():
            if entity in self.deletions or not is_initialized(entity):
                continue
            related = entity.__dict__.get("_related", {})
            for association in metadata_for(entity).association_mappings.values():
                if not association.is_owning_many_to_many:
                    continue
                collection = related.get(association.name)
                if collection is None:
                    continue
                if isinstance(collection, LazyCollection) and not collection.is_initialized():
                    continue
                self.junctions.record(entity, association, list(collection))

    def _execute_deletions(self) -> None:
        conn = self.connection
        for entity in self.deletions:
            metadata = metadata_for(entity)
            identifier = metadata.get_identifier(entity)
            sql = (
                f"DELETE FROM {conn.format_table(metadata.table_name)} "
                f"WHERE {conn.quote_identifier(metadata.identifier_column)} = {conn.placeholder('id')}"
            )
            params = {"id": metadata.identifier.converter.to_storage(identifier)}
            self._write(sql, params, entity, "delete")
            self._journal.deleted.append((entity, self.snapshots.get(entity)))
            self.identity_map.forget(type(entity), identifier)
            self.identity_map.remove(entity)
            self.snapshots.discard(entity)
            self.junctions.discard_owner(entity)
            self._forget_junction_state(entity)
            self.deletions.discard(entity)

    def _execute_insertions(self) -> None:
        conn = self.connection
        for entity in sort_insertions(self.insertions):
            metadata = metadata_for(entity)
            self._resolve_foreign_keys(entity, metadata)
            columns: List[str] = []
            params: Dict[str, Any] = {}
            for mapping in metadata.field_mappings.values():
                value = metadata.get_value(entity, mapping.name)
                if mapping.is_generated and value is None:
                    continue
                key = parameter_name(mapping.column)
                columns.append(mapping.column)
                params[key] = mapping.converter.to_storage(value)
            if metadata.inheritance is not None:
                column = metadata.inheritance.discriminator_column
                if metadata.field_for_column(column) is None:
                    columns.append(column)
                    params[parameter_name(column)] = metadata.discriminator_value
            column_sql = ", ".join(conn.quote_identifier(column) for column in columns)
            value_sql = ", ".join(conn.placeholder(parameter_name(column)) for column in columns)
            sql = f"INSERT INTO {conn.format_table(metadata.table_name)} ({column_sql}) VALUES ({value_sql})"
            self._write(sql, params, entity, "insert")

            generated = metadata.get_identifier(entity) is None and metadata.has_generated_identifier
            if generated:
                key = conn.last_insert_id(metadata.table_name, metadata.identifier_column)
                metadata.set_identifier(entity, metadata.identifier.converter.from_storage(key))
            self._journal.inserted.append((entity, generated))
            self.identity_map.register(entity)
            self.snapshots.take(entity)
            for association in metadata.association_mappings.values():
                if association.is_owning_many_to_many:
                    self._junction_state[(id(entity), association.name)] = (entity, frozenset())
            self.insertions.discard(entity)

    def _execute_updates(self) -> None:
        conn = self.connection
        for entity in self.updates:
            metadata = metadata_for(entity)
            self._resolve_foreign_keys(entity, metadata)
            assignments: List[str] = []
            params: Dict[str, Any] = {}
            for mapping in metadata.field_mappings.values():
                if mapping.identifier:
                    continue
                key = f"v_{parameter_name(mapping.column)}"
                assignments.append(f"{conn.quote_identifier(mapping.column)} = {conn.placeholder(key)}")
                params[key] = mapping.converter.to_storage(metadata.get_value(entity, mapping.name))
            self.updates.discard(entity)
            if not assignments:
                continue
            params["k_id"] = metadata.identifier.converter.to_storage(metadata.get_identifier(entity))
            sql = (
                f"UPDATE {conn.format_table(metadata.table_name)} SET {', '.join(assignments)} "
                f"WHERE {conn.quote_identifier(metadata.identifier_column)} = {conn.placeholder('k_id')}"
            )
            self._write(sql, params, entity, "update")
            self._journal.updated.append((entity, self.snapshots.get(entity)))
            self.snapshots.take(entity)

    def _execute_junction_changes(self) -> None:
        changes = list(self.junctions)
        plans = [(change, *self._junction_diff(change)) for change in changes]
        for change, _, removed in plans:
            for target_id in removed:
                self._delete_junction_row(change, target_id)
        for change, added, _ in plans:
            for target_id in added:
                self._insert_junction_row(change, target_id)
        for change, _, _ in plans:
            target_meta = change.association.target_metadata
            self._junction_state[(id(change.owner), change.association.name)] = (
                change.owner,
                self._target_keys(target_meta, change.targets),
            )

    def _junction_diff(self, change: JunctionChange) -> Tuple[List[Any], List[Any]]:
        target_meta = change.association.target_metadata
        for target in change.targets:
            if metadata_for(target).get_identifier(target) is None:
                raise WriteFailureError(
                    f"Cannot link {type(change.owner).__name__}.{change.association.name} to an "
                    f"unsaved {type(target).__name__}",
                    entity=change.owner,
                )
        desired = self._target_keys(target_meta, change.targets)
        state = self._junction_state.get((id(change.owner), change.association.name))
        current = state[1] if state is not None else self._stored_junction_keys(change)
        added = [key for key in self._ordered_keys(target_meta, change.targets) if key not in current]
        removed = [key for key in current if key not in desired]
        return added, removed

    def _stored_junction_keys(self, change: JunctionChange) -> FrozenSet[Any]:
        """
        Junction rows already stored for an owner whose collection was never loaded.
        """

        owner_meta = metadata_for(change.owner)
        owner_id = owner_meta.get_identifier(change.owner)
        if owner_id is None:
            return frozenset()
        conn = self.connection
        join_table = change.association.join_table
        target_meta = change.association.target_metadata
        sql = (
            f"SELECT {conn.quote_identifier(join_table.inverse_join_column)} AS related "
            f"FROM {conn.format_table(change.table)} "
            f"WHERE {conn.quote_identifier(join_table.join_column)} = {conn.placeholder('owner')}"
        )
        params = {"owner": owner_meta.identifier.converter.to_storage(owner_id)}
        try:
            rows = conn.fetch_all(sql, params)
        except QueryFailedError as exc:
            raise WriteFailureError(
                f"Junction lookup on {change.table} failed: {exc}", entity=change.owner
            ) from exc
        converter = target_meta.identifier.converter
        return frozenset(converter.from_storage(row["related"]) for row in rows)

    def _ordered_keys(self, target_meta: EntityMetadata, targets: Iterable[Any]) -> List[Any]:
        keys: List[Any] = []
        for target in targets:
            key = target_meta.normalize_identifier(metadata_for(target).get_identifier(target))
            if key not in keys:
                keys.append(key)
        return keys

    def _junction_params(self, change: JunctionChange, target_id: Any) -> Dict[str, Any]:
        owner_meta = metadata_for(change.owner)
        target_meta = change.association.target_metadata
        return {
            "owner": owner_meta.identifier.converter.to_storage(owner_meta.get_identifier(change.owner)),
            "related": target_meta.identifier.converter.to_storage(target_id),
        }

    def _junction_where(self, change: JunctionChange) -> str:
        conn = self.connection
        join_table = change.association.join_table
        return (
            f"{conn.quote_identifier(join_table.join_column)} = {conn.placeholder('owner')} AND "
            f"{conn.quote_identifier(join_table.inverse_join_column)} = {conn.placeholder('related')}"
        )

    def _delete_junction_row(self, change: JunctionChange, target_id: Any) -> None:
        conn = self.connection
        sql = f"DELETE FROM {conn.format_table(change.table)} WHERE {self._junction_where(change)}"
        self._write(sql, self._junction_params(change, target_id), change.owner, "junction delete")

    def _insert_junction_row(self, change: JunctionChange, target_id: Any) -> None:
        conn = self.connection
        params = self._junction_params(change, target_id)
        exists_sql = f"SELECT 1 FROM {conn.format_table(change.table)} WHERE {self._junction_where(change)}"
        try:
            if conn.fetch_one(exists_sql, params) is not None:
                return
        except QueryFailedError as exc:
            raise WriteFailureError(
                f"Junction lookup on {change.table} failed: {exc}", entity=change.owner
            ) from exc
        join_table = change.association.join_table
        sql = (
            f"INSERT INTO {conn.format_table(change.table)} "
            f"({conn.quote_identifier(join_table.join_column)}, "
            f"{conn.quote_identifier(join_table.inverse_join_column)}) "
            f"VALUES ({conn.placeholder('owner')}, {conn.placeholder('related')})"
        )
        self._write(sql, params, change.owner, "junction insert")

    def _resolve_foreign_keys(self, entity: Any, metadata: EntityMetadata) -> None:
        values = entity.__dict__["_field_values"]
        for association in metadata.owning_to_one():
            if association.foreign_key is None:
                continue
            values[association.foreign_key] = metadata.foreign_key_value(entity, association)

    def _write(self, sql: str, params: Dict[str, Any], entity: Any, operation: str) -> None:
        try:
            self.connection.execute(sql, params)
        except QueryFailedError as exc:
            raise WriteFailureError(
                f"Failed to {operation} {type(entity).__name__}: {exc}", entity=entity
            ) from exc

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def clear(self) -> None:
        """
        Forget all tracked state and roll back work flushed under this unit's savepoint.
        """

        if self.connection.in_transaction:
            self.savepoint.rollback()
        self.reset()

    def reset(self) -> None:
        """
        Forget all tracked state without touching the database.
        """

        self.identity_map.clear()
        self.snapshots.clear()
        self.insertions.clear()
        self.updates.clear()
        self.deletions.clear()
        self.junctions.clear()
        self._junction_state.clear()
        if not self.savepoint.active:
            self.savepoint.reset()

    def __repr__(self) -> str:
        return (
            f"<UnitOfWork {self.name} managed={len(self.snapshots)} new={len(self.insertions)} "
            f"removed={len(self.deletions)}>"
        )
