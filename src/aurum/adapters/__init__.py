"""
Database adapters, connection configuration and the Connection collaborator.
"""

from .base import (
    AdapterConfigurationError,
    AdapterConnectionError,
    AdapterError,
    AdapterExecutionError,
    AdapterTransactionError,
    DatabaseAdapter,
)
from .config import ConnectionConfig, SSLConfig
from .connection import Connection
from .mysql import MySQLAdapter
from .registry import DEFAULT_ADAPTERS, AdapterRegistry, ConnectionFactory
from .sqlite import SQLiteAdapter

__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "AdapterRegistry",
    "AdapterTransactionError",
    "Connection",
    "ConnectionConfig",
    "ConnectionFactory",
    "DEFAULT_ADAPTERS",
    "DatabaseAdapter",
    "MySQLAdapter",
    "SQLiteAdapter",
    "SSLConfig",
]
