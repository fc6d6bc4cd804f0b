from typing import Any, Dict, List, Tuple

import pytest

from aurum import EntityManager
from aurum.adapters import Connection, ConnectionConfig, SQLiteAdapter


class RecordingConnection(Connection):
    """
    Connection that remembers every statement it runs, with its parameters.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.statements: List[Tuple[str, Dict[str, Any]]] = []
        super().__init__(*args, **kwargs)

    def execute(self, sql, params=None):
        self.statements.append((sql, dict(params or {})))
        return super().execute(sql, params)

    def sql(self, prefix: str = "") -> List[str]:
        return [sql for sql, _ in self.statements if sql.lstrip().upper().startswith(prefix.upper())]

    def writes(self) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            (sql, params)
            for sql, params in self.statements
            if sql.split(" ", 1)[0].upper() in ("INSERT", "UPDATE", "DELETE")
        ]

    def reset(self) -> None:
        self.statements.clear()


def create_tables(connection: Connection, *statements: str) -> None:
    for statement in statements:
        connection.execute(statement)


@pytest.fixture
def connection(tmp_path):
    config = ConnectionConfig.from_dsn(f"sqlite:///{tmp_path / 'aurum.db'}")
    conn = RecordingConnection(SQLiteAdapter(), config)
    yield conn
    conn.close()


@pytest.fixture
def manager(connection):
    return EntityManager(connection)


@pytest.fixture
def schema(connection):
    """
    Run DDL statements on the test database and forget them in the statement log.
    """

    def apply(*statements: str) -> None:
        create_tables(connection, *statements)
        connection.reset()

    return apply
