"""
Adapter registry and connection factory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from .base import AdapterConfigurationError, DatabaseAdapter
from .config import ConnectionConfig
from .connection import Connection
from .mysql import MySQLAdapter
from .sqlite import SQLiteAdapter

AdapterConstructor = Callable[..., DatabaseAdapter]


@dataclass(frozen=True)
class AdapterRegistry:
    """
    Immutable mapping of DSN scheme to adapter constructor.

    ``with_adapter`` returns a new registry, so a customised registry is passed
    explicitly to :class:`ConnectionFactory` rather than patched in place.
    """

    constructors: Mapping[str, AdapterConstructor] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {scheme.lower(): ctor for scheme, ctor in self.constructors.items()}
        object.__setattr__(self, "constructors", MappingProxyType(normalized))

    def get(self, scheme: str) -> AdapterConstructor:
        key = scheme.split("+", 1)[0].lower()
        try:
            return self.constructors[key]
        except KeyError as exc:
            known = ", ".join(sorted(self.constructors)) or "none"
            raise AdapterConfigurationError(
                f"No adapter registered for scheme '{scheme}' (known: {known})"
            ) from exc

    def with_adapter(self, scheme: str, constructor: AdapterConstructor) -> "AdapterRegistry":
        merged = dict(self.constructors)
        merged[scheme.lower()] = constructor
        return AdapterRegistry(merged)

    def schemes(self) -> list[str]:
        return sorted(self.constructors)

    def __contains__(self, scheme: object) -> bool:
        return isinstance(scheme, str) and scheme.split("+", 1)[0].lower() in self.constructors


DEFAULT_ADAPTERS = AdapterRegistry(
    {
        "sqlite": SQLiteAdapter,
        "mysql": MySQLAdapter,
        "mariadb": MySQLAdapter,
    }
)


class ConnectionFactory:
    """
    Build :class:`Connection` objects from DSNs or configs using a registry.
    """

    def __init__(self, registry: AdapterRegistry | None = None, *, slow_query_ms: int | None = None) -> None:
        self.registry = registry or DEFAULT_ADAPTERS
        self.slow_query_ms = slow_query_ms

    def create(self, target: str | ConnectionConfig, **kwargs: Any) -> Connection:
        config = target if isinstance(target, ConnectionConfig) else ConnectionConfig.from_dsn(target, **kwargs)
        constructor = self.registry.get(config.scheme)
        slow_query_ms = self.slow_query_ms
        if slow_query_ms is None and config.options:
            slow_query_ms = config.options.get("slow_query_ms")
        adapter = constructor(slow_query_ms=slow_query_ms)
        return Connection(adapter, config)
