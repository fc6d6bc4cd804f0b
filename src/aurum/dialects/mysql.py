"""
MySQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, SavepointSQLMixin


class MySQLDialect(SavepointSQLMixin):
    """
    MySQL/MariaDB dialect using pyformat (``%(name)s``) parameters.
    """

    name: Final[str] = "mysql"
    param_style: Final[str] = "pyformat"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_savepoints=True,
        supports_release_savepoint=True,
        supports_schema_namespaces=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace("`", "``")
        return f"`{escaped}`"

    def format_table(self, table_name: str) -> str:
        if "." in table_name:
            schema, table = table_name.split(".", 1)
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table_name)

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset is not None:
            if limit is None:
                parts.append("LIMIT 18446744073709551615")
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def named_placeholder(self, name: str) -> str:
        return f"%({name})s"

    def begin_sql(self) -> str:
        return "START TRANSACTION"
