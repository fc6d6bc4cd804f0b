"""
Utility helpers shared across Aurum packages.
"""

from .identifiers import uuid7
from .logging import configure_logging, get_logger, resolve_slow_query_ms, time_call
from .naming import camel_to_snake, parameter_name

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "get_logger",
    "parameter_name",
    "resolve_slow_query_ms",
    "time_call",
    "uuid7",
]
