"""
MySQL database adapter implementation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

from ..dialects.mysql import MySQLDialect
from ..security.redaction import redact_params
from ..utils import get_logger, resolve_slow_query_ms, time_call
from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterExecutionError,
    AdapterTransactionError,
    DatabaseAdapter,
    Params,
)
from .config import ConnectionConfig

_NAMED_PLACEHOLDER_RE = re.compile(r"(?<!%)%\((\w+)\)s")


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


@dataclass
class MySQLConnectionState:
    connection: Any
    config: ConnectionConfig
    driver: Any
    in_transaction: bool = False


class MySQLAdapter(DatabaseAdapter):
    """
    Adapter wrapping a MySQL DB-API driver (PyMySQL or mysqlclient).

    Also used for MariaDB, which speaks the same protocol and SQL.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.dialect = MySQLDialect()
        self._state: MySQLConnectionState | None = None
        self.logger = get_logger("adapters.mysql")
        self.slow_query_ms = resolve_slow_query_ms(default=100, override=slow_query_ms)

    def connect(self, config: ConnectionConfig) -> Any:
        driver = _load_driver()
        if driver is None:
            raise AdapterConfigurationError(
                "PyMySQL or mysqlclient is required to use MySQLAdapter."
            )
        if not config.dsn:
            raise AdapterConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )

        options = dict(config.options or {})
        options.pop("slow_query_ms", None)
        if config.ssl:
            for key, value in config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(config.timeout)

        self.logger.info(
            "Connecting to MySQL %s (autocommit=%s)",
            config.describe(),
            config.autocommit,
        )

        dsn = config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port

        try:
            connection = driver.connect(**connect_kwargs)
        except Exception as exc:
            raise AdapterConnectionError(
                f"Failed to connect to MySQL at {config.redacted_dsn()}."
            ) from exc
        if hasattr(connection, "autocommit"):
            connection.autocommit(config.autocommit)

        self._state = MySQLConnectionState(connection, config, driver)
        if config.isolation_level:
            self.execute(f"SET SESSION TRANSACTION ISOLATION LEVEL {config.isolation_level}")
        return connection

    def close(self) -> None:
        if self._state:
            try:
                self._state.connection.close()
            finally:
                self._state = None

    @property
    def connected(self) -> bool:
        return self._state is not None

    def _ensure_connection(self):
        if not self._state:
            raise AdapterConnectionError("MySQLAdapter is not connected.")
        conn = self._state.connection
        if getattr(conn, "closed", False):
            if self._state.in_transaction:
                raise AdapterConnectionError("MySQL connection lost inside a transaction.")
            self.logger.warning("MySQL connection closed; reconnecting.")
            conn = self.connect(self._state.config)
        return conn

    def execute(self, sql: str, params: Params | None = None):
        connection = self._ensure_connection()
        cursor = connection.cursor()
        self._validate_params(sql, params)
        with time_call(
            "mysql.execute",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.slow_query_ms,
        ):
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
        return cursor

    def begin(self) -> None:
        if self._state and self._state.in_transaction:
            raise AdapterTransactionError("A MySQL transaction is already open.")
        connection = self._ensure_connection()
        cursor = connection.cursor()
        cursor.execute(self.dialect.begin_sql())
        if self._state:
            self._state.in_transaction = True

    def commit(self) -> None:
        connection = self._ensure_connection()
        try:
            connection.commit()
        finally:
            if self._state:
                self._state.in_transaction = False

    def rollback(self) -> None:
        connection = self._ensure_connection()
        try:
            connection.rollback()
        finally:
            if self._state:
                self._state.in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return bool(self._state and self._state.in_transaction)

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        return cursor.lastrowid

    @staticmethod
    def _count_placeholders(sql: str) -> int:
        count = 0
        idx = 0
        while idx < len(sql) - 1:
            if sql[idx] == "%" and sql[idx + 1] == "s":
                count += 1
                idx += 2
                continue
            if sql[idx] == "%" and sql[idx + 1] == "%":
                idx += 2
                continue
            idx += 1
        return count

    def _validate_params(self, sql: str, params: Params | None) -> None:
        if isinstance(params, Mapping):
            names = set(_NAMED_PLACEHOLDER_RE.findall(sql))
            missing = sorted(names - set(params))
            if missing:
                raise AdapterExecutionError(f"Missing values for named parameters: {', '.join(missing)}.")
            return
        params = params or ()
        placeholder_count = self._count_placeholders(sql)
        if placeholder_count == 0:
            if params:
                raise AdapterExecutionError(
                    "Parameters provided but SQL statement has no placeholders."
                )
            return
        if placeholder_count != len(params):
            raise AdapterExecutionError(
                f"Parameter count mismatch: expected {placeholder_count}, received {len(params)}."
            )
