"""
Dialect strategies.
"""

from .base import Dialect, DialectCapabilities
from .mysql import MySQLDialect
from .sqlite import SQLiteDialect

__all__ = ["Dialect", "DialectCapabilities", "SQLiteDialect", "MySQLDialect"]
