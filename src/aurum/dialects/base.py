"""
Dialect strategy interfaces describing backend SQL differences.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_savepoints: bool = True
    supports_release_savepoint: bool = True
    supports_schema_namespaces: bool = False


class Dialect(Protocol):
    """
    Strategy interface consumed by the connection and persistence layers.
    """

    @property
    def name(self) -> str: ...

    @property
    def param_style(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str: ...

    def named_placeholder(self, name: str) -> str: ...

    def begin_sql(self) -> str: ...

    def savepoint_sql(self, name: str) -> str: ...

    def release_savepoint_sql(self, name: str) -> str: ...

    def rollback_to_savepoint_sql(self, name: str) -> str: ...


class SavepointSQLMixin:
    """
    ANSI savepoint statements shared by the bundled dialects.
    """

    def savepoint_sql(self, name: str) -> str:
        return f"SAVEPOINT {self.quote_identifier(name)}"

    def release_savepoint_sql(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {self.quote_identifier(name)}"

    def rollback_to_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {self.quote_identifier(name)}"
