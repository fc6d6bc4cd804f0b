"""
Entity manager coordinating the connection, units of work and transactions.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Set, Type, TypeVar

from ..adapters.config import ConnectionConfig
from ..adapters.connection import Connection, Row
from ..adapters.registry import AdapterRegistry, ConnectionFactory
from ..core.entity import metadata_for
from ..exceptions import NoActiveTransactionError, ORMError
from ..metadata.mapping import EntityMetadata
from ..metadata.registry import MetadataRegistry, metadata_registry
from ..utils import get_logger
from .hydration import EntityHydrator, HydrationMode
from .proxy import ProxyFactory
from .unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from .repository import Repository

T = TypeVar("T")


class EntityManager:
    """
    Public persistence facade.

    Owns one :class:`Connection` and every :class:`UnitOfWork` it creates. All
    entity operations go to the current unit of work; transaction boundaries
    span any number of flushes and units of work.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        registry: Optional[MetadataRegistry] = None,
        proxy_factory: Optional[ProxyFactory] = None,
    ) -> None:
        self.connection = connection
        self.registry = registry or metadata_registry
        self.proxies = proxy_factory or ProxyFactory()
        self.hydrator = EntityHydrator(self.proxies)
        self.logger = get_logger("persistence.entity_manager")
        self._names = itertools.count(1)
        self._units: List[UnitOfWork] = []
        self._repositories: Dict[type, "Repository"] = {}
        self._unit_of_work = self.create_unit_of_work()

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def from_dsn(
        cls,
        dsn: str,
        *,
        adapters: Optional[AdapterRegistry] = None,
        slow_query_ms: Optional[int] = None,
        **overrides: Any,
    ) -> "EntityManager":
        factory = ConnectionFactory(adapters, slow_query_ms=slow_query_ms)
        return cls(factory.create(dsn, **overrides))

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        *,
        adapters: Optional[AdapterRegistry] = None,
        slow_query_ms: Optional[int] = None,
    ) -> "EntityManager":
        factory = ConnectionFactory(adapters, slow_query_ms=slow_query_ms)
        return cls(factory.create(config))

    def __enter__(self) -> "EntityManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self.connection.in_transaction:
                if exc_type:
                    self.rollback()
                else:
                    self.commit()
        finally:
            self.close()

    # ------------------------------------------------------------------ #
    # Units of work
    # ------------------------------------------------------------------ #
    @property
    def unit_of_work(self) -> UnitOfWork:
        return self._unit_of_work

    @property
    def unit_of_works(self) -> tuple[UnitOfWork, ...]:
        return tuple(self._units)

    def create_unit_of_work(self) -> UnitOfWork:
        """
        Create a unit of work bound to this manager's connection.

        The new unit of work does not become current; pass it to
        :meth:`set_unit_of_work` to switch.
        """

        unit_of_work = UnitOfWork(
            self.connection,
            savepoint_name=self._next_unit_name(),
            proxy_factory=self.proxies,
            hydrator=self.hydrator,
        )
        self._units.append(unit_of_work)
        return unit_of_work

    def set_unit_of_work(self, unit_of_work: UnitOfWork) -> None:
        """
        Make ``unit_of_work`` current, adopting it when it was built elsewhere.

        An adopted unit whose name is already used by another unit of this manager
        is renamed, since savepoint names must be unique on the shared connection.
        """

        if unit_of_work.connection is not self.connection:
            raise ValueError("Unit of work is bound to a different connection")
        if unit_of_work not in self._units:
            if unit_of_work.name in self._unit_names():
                previous = unit_of_work.name
                unit_of_work.savepoint.rename(self._next_unit_name())
                self.logger.debug("Renamed adopted unit of work %s to %s", previous, unit_of_work.name)
            self._units.append(unit_of_work)
        self._unit_of_work = unit_of_work

    def _unit_names(self) -> Set[str]:
        return {unit_of_work.name for unit_of_work in self._units}

    def _next_unit_name(self) -> str:
        taken = self._unit_names()
        while True:
            name = f"uow_{next(self._names)}"
            if name not in taken:
                return name

    # ------------------------------------------------------------------ #
    # Entity operations
    # ------------------------------------------------------------------ #
    def find(self, entity_class: Type[T], identifier: Any) -> Optional[T]:
        return self._unit_of_work.find(entity_class, identifier)

    def get_reference(self, entity_class: Type[T], identifier: Any) -> T:
        return self._unit_of_work.get_reference(entity_class, identifier)

    def persist(self, entity: Any) -> None:
        self._unit_of_work.persist(entity)

    def remove(self, entity: Any) -> None:
        self._unit_of_work.remove(entity)

    def refresh(self, entity: Any) -> Any:
        return self._unit_of_work.refresh(entity)

    def detach(self, entity: Any) -> None:
        self._unit_of_work.detach(entity)

    def merge(self, entity: Any) -> Any:
        return self._unit_of_work.merge(entity)

    def contains(self, entity: Any) -> bool:
        return self._unit_of_work.contains(entity)

    def clear(self) -> None:
        self._unit_of_work.clear()

    def flush(self) -> None:
        """
        Flush the current unit of work, inside an implicit transaction when none
        is active.
        """

        if self.connection.in_transaction:
            self._unit_of_work.flush()
            return
        self.connection.begin_transaction()
        try:
            self._unit_of_work.flush()
        except Exception:
            self._abort_implicit_transaction()
            raise
        self.commit()

    def _abort_implicit_transaction(self) -> None:
        try:
            self.connection.rollback()
        except ORMError:
            self.logger.exception("Rolling back the implicit flush transaction failed")
        for unit_of_work in self._units:
            unit_of_work.savepoint.reset()

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @property
    def in_transaction(self) -> bool:
        return self.connection.in_transaction

    def begin_transaction(self) -> None:
        self.connection.begin_transaction()

    def commit(self) -> None:
        """
        Release open savepoints (best effort) and commit the outer transaction.
        """

        if not self.connection.in_transaction:
            raise NoActiveTransactionError("No active transaction to commit.")
        by_name = {unit_of_work.name: unit_of_work for unit_of_work in self._units}
        for name in reversed(self.connection.savepoints):
            unit_of_work = by_name.get(name)
            if unit_of_work is None:
                continue
            try:
                unit_of_work.savepoint.release()
            except ORMError as exc:
                self.logger.warning(
                    "Releasing savepoint %s before commit failed: %s", unit_of_work.name, exc
                )
        self.connection.commit()
        for unit_of_work in self._units:
            unit_of_work.savepoint.reset()

    def rollback(self) -> None:
        """
        Roll back the outer transaction and forget everything tracked since.
        """

        try:
            self.connection.rollback()
        finally:
            for unit_of_work in self._units:
                unit_of_work.reset()

    @contextmanager
    def transaction(self) -> Iterator["EntityManager"]:
        """
        Run a block inside a new transaction, flushing the current unit of work at the end.

        Starting one while a transaction is already open raises
        :class:`~aurum.exceptions.TransactionAlreadyActiveError`.
        """

        self.begin_transaction()
        try:
            yield self
            self._unit_of_work.flush()
        except Exception:
            self.rollback()
            raise
        self.commit()

    def transactional(self, fn: Callable[["EntityManager"], T]) -> T:
        with self.transaction():
            return fn(self)

    # ------------------------------------------------------------------ #
    # Metadata, repositories and raw SQL
    # ------------------------------------------------------------------ #
    def get_metadata(self, entity: Any) -> EntityMetadata:
        if isinstance(entity, str):
            return self.registry.get_metadata_for(entity)
        return metadata_for(entity)

    def get_repository(self, entity_class: Type[T]) -> "Repository":
        from .repository import Repository

        repository = self._repositories.get(entity_class)
        if repository is None:
            metadata_for(entity_class)
            repository = Repository(self, entity_class)
            self._repositories[entity_class] = repository
        return repository

    def native_query(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        entity_class: Optional[Type[T]] = None,
    ) -> List[Any]:
        """
        Run raw SQL. Rows are hydrated as managed entities when ``entity_class``
        is given, otherwise returned as dicts.
        """

        rows: List[Row] = self.connection.fetch_all(sql, params)
        if entity_class is None:
            return rows
        return self.hydrator.hydrate_all(rows, entity_class, HydrationMode.MANAGED, self._unit_of_work)

    def close(self) -> None:
        for unit_of_work in self._units:
            unit_of_work.reset()
        self._repositories.clear()
        self.connection.close()

    def __repr__(self) -> str:
        return f"<EntityManager uow={self._unit_of_work.name} units={len(self._units)}>"
