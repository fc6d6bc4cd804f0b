"""
Adapter protocol and adapter error types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence

from ..dialects.base import Dialect

if TYPE_CHECKING:
    from .config import ConnectionConfig


class AdapterError(RuntimeError):
    """Base error for adapter-related failures."""


class AdapterConfigurationError(AdapterError):
    """Bad DSN or connection options, or a missing driver package."""


class AdapterConnectionError(AdapterError):
    """The driver connection could not be opened or is already closed."""


class AdapterExecutionError(AdapterError):
    """A statement was rejected before reaching the driver."""


class AdapterTransactionError(AdapterError):
    """BEGIN, COMMIT or ROLLBACK issued in the wrong driver state."""


Params = Mapping[str, Any] | Sequence[Any]


class DatabaseAdapter(Protocol):
    """
    The driver surface a :class:`~aurum.adapters.connection.Connection` talks to.

    Statements arrive already in the driver's own placeholder style; adapters
    neither rewrite SQL nor track savepoints, which are plain statements here.
    """

    dialect: Dialect
    slow_query_ms: int

    def connect(self, config: "ConnectionConfig") -> Any:
        ...

    def close(self) -> None:
        """Idempotent."""

    def execute(self, sql: str, params: Params | None = None) -> Any:
        """Run one statement and return the driver cursor."""

    def begin(self) -> None:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    @property
    def connected(self) -> bool:
        ...

    @property
    def in_transaction(self) -> bool:
        ...

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        """Key generated by the insert that ran on ``cursor``."""
