"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, SavepointSQLMixin


class SQLiteDialect(SavepointSQLMixin):
    """
    SQLite dialect using named (``:name``) parameters.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "named"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_savepoints=True,
        supports_release_savepoint=True,
        supports_schema_namespaces=False,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset is not None:
            if limit is None:
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def named_placeholder(self, name: str) -> str:
        return f":{name}"

    def begin_sql(self) -> str:
        return "BEGIN"
