"""
Per-entity repository with simple criteria lookups.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, Iterator, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from ..core.entity import metadata_for
from ..metadata.mapping import EntityMetadata, FieldMapping
from .hydration import HydrationMode

if TYPE_CHECKING:
    from .entity_manager import EntityManager

T = TypeVar("T")

Criteria = Optional[Mapping[str, Any]]


class Repository(Generic[T]):
    """
    Finder helpers for one entity class.

    Criteria are ``{name: value}`` pairs joined with AND. A list or tuple value
    becomes ``IN``, ``None`` becomes ``IS NULL``. Names are field names or the
    names of owning to-one associations, which compare on their join column.
    """

    def __init__(self, manager: "EntityManager", entity_class: Type[T]) -> None:
        self.manager = manager
        self.entity_class = entity_class
        self.metadata: EntityMetadata = metadata_for(entity_class)

    # Lookups -----------------------------------------------------------
    def find(self, identifier: Any) -> Optional[T]:
        return self.manager.find(self.entity_class, identifier)

    def find_all(self) -> List[T]:
        return self.find_by({})

    def find_by(
        self,
        criteria: Criteria = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        sql, params = self._select("*", criteria, order_by, limit, offset)
        rows = self.manager.connection.fetch_all(sql, params)
        return self.manager.hydrator.hydrate_all(
            rows, self.entity_class, HydrationMode.MANAGED, self.manager.unit_of_work
        )

    def find_one_by(self, criteria: Criteria = None, order_by: Optional[Sequence[str]] = None) -> Optional[T]:
        found = self.find_by(criteria, order_by=order_by, limit=1)
        return found[0] if found else None

    def count(self, criteria: Criteria = None) -> int:
        sql, params = self._select("COUNT(*) AS total", criteria)
        row = self.manager.connection.fetch_one(sql, params)
        return int(row["total"]) if row else 0

    def exists(self, criteria: Criteria = None) -> bool:
        return self.count(criteria) > 0

    def iterate(
        self,
        criteria: Criteria = None,
        *,
        detached: bool = True,
        order_by: Optional[Sequence[str]] = None,
        batch_size: int = 100,
    ) -> Iterator[T]:
        """
        Stream matching entities. Detached results are not tracked or dirty-checked.
        """

        sql, params = self._select("*", criteria, order_by)
        if detached:
            mode, unit_of_work = HydrationMode.DETACHED, None
        else:
            mode, unit_of_work = HydrationMode.MANAGED, self.manager.unit_of_work
        hydrator = self.manager.hydrator
        for row in self.manager.connection.iterate(sql, params, batch_size=batch_size):
            yield hydrator.hydrate(row, self.entity_class, mode, unit_of_work)

    # Writes ------------------------------------------------------------
    def save(self, entity: T, *, flush: bool = True) -> T:
        self.manager.persist(entity)
        if flush:
            self.manager.flush()
        return entity

    def delete(self, entity: T, *, flush: bool = True) -> None:
        self.manager.remove(entity)
        if flush:
            self.manager.flush()

    # SQL building ------------------------------------------------------
    def _select(
        self,
        columns: str,
        criteria: Criteria,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        conn = self.manager.connection
        params: Dict[str, Any] = {}
        where = self._where(criteria or {}, params)
        where.extend(self.manager.unit_of_work.discriminator_filter(self.metadata, params))
        sql = f"SELECT {columns} FROM {conn.format_table(self.metadata.table_name)}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        if order_by:
            sql += " ORDER BY " + ", ".join(self._order_term(term) for term in order_by)
        limit_sql = conn.limit_clause(limit, offset)
        if limit_sql:
            sql += f" {limit_sql}"
        return sql, params

    def _where(self, criteria: Mapping[str, Any], params: Dict[str, Any]) -> List[str]:
        conn = self.manager.connection
        clauses = []
        for index, (name, value) in enumerate(criteria.items()):
            mapping = self._resolve(name)
            column = conn.quote_identifier(mapping.column)
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    clauses.append("1 = 0")
                    continue
                names = []
                for position, item in enumerate(values):
                    key = f"c{index}_{position}"
                    params[key] = self._storage_value(name, mapping, item)
                    names.append(conn.placeholder(key))
                clauses.append(f"{column} IN ({', '.join(names)})")
            else:
                key = f"c{index}"
                params[key] = self._storage_value(name, mapping, value)
                clauses.append(f"{column} = {conn.placeholder(key)}")
        return clauses

    def _resolve(self, name: str) -> FieldMapping:
        if self.metadata.has_field(name):
            return self.metadata.get_field_mapping(name)
        if self.metadata.has_association(name):
            association = self.metadata.get_association(name)
            if association.is_owning_to_one and association.foreign_key:
                return self.metadata.get_field_mapping(association.foreign_key)
        raise KeyError(f"Cannot filter {self.entity_class.__name__} on '{name}'")

    def _storage_value(self, name: str, mapping: FieldMapping, value: Any) -> Any:
        if mapping.association is not None and name == mapping.association and hasattr(value, "_meta"):
            association = self.metadata.get_association(name)
            value = metadata_for(value).referenced_value(value, association.referenced_column)
        return mapping.converter.to_storage(value)

    def _order_term(self, term: str) -> str:
        descending = term.startswith("-")
        mapping = self._resolve(term.lstrip("-"))
        direction = "DESC" if descending else "ASC"
        return f"{self.manager.connection.quote_identifier(mapping.column)} {direction}"

    def __repr__(self) -> str:
        return f"<Repository {self.entity_class.__name__}>"
