"""
Connection collaborator used by the persistence layer.

Wraps a :class:`DatabaseAdapter` with named-parameter execution, row
fetching, transaction control and a savepoint stack.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..exceptions import (
    InvalidSavepointNameError,
    NoActiveTransactionError,
    ORMError,
    QueryFailedError,
    SavepointNotSupportedError,
    TransactionAlreadyActiveError,
)
from ..utils import get_logger
from .base import DatabaseAdapter
from .config import ConnectionConfig

Row = Dict[str, Any]


class Connection:
    """
    Statement execution and transaction boundaries over one adapter.
    """

    def __init__(self, adapter: DatabaseAdapter, config: Optional[ConnectionConfig] = None) -> None:
        self.adapter = adapter
        self.dialect = adapter.dialect
        self.config = config
        self.logger = get_logger("connection")
        self._savepoints: List[str] = []
        self._last_cursor: Any = None
        if config is not None and not getattr(adapter, "connected", False):
            adapter.connect(config)

    # ------------------------------------------------------------------ #
    # Statements
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            cursor = self.adapter.execute(sql, dict(params) if params else None)
        except ORMError:
            raise
        except Exception as exc:
            raise QueryFailedError(f"Query failed: {exc}", sql=sql) from exc
        self._last_cursor = cursor
        return cursor

    def fetch_one(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Row]:
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        if row is None:
            return None
        return self._to_dict(cursor, row)

    def fetch_all(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        cursor = self.execute(sql, params)
        return [self._to_dict(cursor, row) for row in cursor.fetchall()]

    def iterate(
        self, sql: str, params: Optional[Mapping[str, Any]] = None, *, batch_size: int = 100
    ) -> Iterator[Row]:
        cursor = self.execute(sql, params)
        while True:
            rows = cursor.fetchmany(batch_size)
            if not rows:
                return
            for row in rows:
                yield self._to_dict(cursor, row)

    def last_insert_id(self, table: str | None = None, column: str | None = None) -> Any:
        return self.adapter.last_insert_id(self._last_cursor, table or "", column or "")

    # ------------------------------------------------------------------ #
    # SQL helpers
    # ------------------------------------------------------------------ #
    def quote_identifier(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def format_table(self, table_name: str) -> str:
        return self.dialect.format_table(table_name)

    def placeholder(self, name: str) -> str:
        return self.dialect.named_placeholder(name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        return self.dialect.limit_clause(limit, offset)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @property
    def in_transaction(self) -> bool:
        return bool(self.adapter.in_transaction)

    def begin_transaction(self) -> None:
        if self.in_transaction:
            raise TransactionAlreadyActiveError("A transaction is already active on this connection.")
        self._run(self.adapter.begin, "BEGIN")
        self._savepoints.clear()
        self.logger.debug("Transaction started")

    def commit(self) -> None:
        if not self.in_transaction:
            raise NoActiveTransactionError("No active transaction to commit.")
        try:
            self._run(self.adapter.commit, "COMMIT")
        finally:
            self._savepoints.clear()
        self.logger.debug("Transaction committed")

    def rollback(self) -> None:
        if not self.in_transaction:
            raise NoActiveTransactionError("No active transaction to roll back.")
        try:
            self._run(self.adapter.rollback, "ROLLBACK")
        finally:
            self._savepoints.clear()
        self.logger.debug("Transaction rolled back")

    # ------------------------------------------------------------------ #
    # Savepoints
    # ------------------------------------------------------------------ #
    @property
    def savepoints(self) -> tuple[str, ...]:
        return tuple(self._savepoints)

    def has_savepoint(self, name: str) -> bool:
        return name in self._savepoints

    def create_savepoint(self, name: str) -> None:
        self._check_savepoint_support()
        if name in self._savepoints:
            raise InvalidSavepointNameError(f"Savepoint '{name}' already exists.")
        self.execute(self.dialect.savepoint_sql(name))
        self._savepoints.append(name)
        self.logger.debug("Savepoint %s created", name)

    def release_savepoint(self, name: str) -> None:
        self._check_savepoint_support()
        index = self._savepoint_index(name)
        if self.dialect.capabilities.supports_release_savepoint:
            self.execute(self.dialect.release_savepoint_sql(name))
        del self._savepoints[index:]
        self.logger.debug("Savepoint %s released", name)

    def rollback_to_savepoint(self, name: str) -> None:
        self._check_savepoint_support()
        index = self._savepoint_index(name)
        self.execute(self.dialect.rollback_to_savepoint_sql(name))
        del self._savepoints[index + 1 :]
        self.logger.debug("Rolled back to savepoint %s", name)

    def _check_savepoint_support(self) -> None:
        if not self.dialect.capabilities.supports_savepoints:
            raise SavepointNotSupportedError(
                f"Dialect '{self.dialect.name}' does not support savepoints."
            )
        if not self.in_transaction:
            raise NoActiveTransactionError("Savepoints require an active transaction.")

    def _savepoint_index(self, name: str) -> int:
        try:
            return self._savepoints.index(name)
        except ValueError as exc:
            raise InvalidSavepointNameError(f"Savepoint '{name}' does not exist.") from exc

    # ------------------------------------------------------------------ #
    def close(self) -> None:
        self._savepoints.clear()
        self.adapter.close()

    def _run(self, operation, label: str) -> None:
        try:
            operation()
        except ORMError:
            raise
        except Exception as exc:
            raise QueryFailedError(f"{label} failed: {exc}", sql=label) from exc

    @staticmethod
    def _to_dict(cursor: Any, row: Any) -> Row:
        if isinstance(row, Mapping):
            return dict(row)
        if hasattr(row, "keys"):
            return {key: row[key] for key in row.keys()}
        names = [column[0] for column in cursor.description]
        return dict(zip(names, row))
