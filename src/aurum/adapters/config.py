"""
Connection configuration parsed from DSN strings.

Query keys that steer the connection itself (``autocommit``, ``timeout``,
``isolation_level`` and the ``ssl_*`` family) become attributes; every other key
is handed to the driver untouched, except ``connect_timeout`` and
``slow_query_ms`` which are converted to integers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from ..security.dsns import DSNConfig, parse_dsn
from .base import AdapterConfigurationError

_FLAGS = {
    **dict.fromkeys(("1", "true", "yes", "on"), True),
    **dict.fromkeys(("0", "false", "no", "off"), False),
}

# query key -> expected type, for keys lifted onto ConnectionConfig
_CONNECTION_KEYS = {"autocommit": bool, "timeout": float, "isolation_level": str}
_INTEGER_OPTIONS = frozenset({"connect_timeout", "slow_query_ms"})


def _coerce(key: str, raw: str, kind: type) -> Any:
    if kind is bool:
        flag = _FLAGS.get(raw.strip().lower())
        if flag is None:
            raise AdapterConfigurationError(f"Option {key!r} expects a boolean, got {raw!r}")
        return flag
    try:
        return kind(raw)
    except ValueError as exc:
        raise AdapterConfigurationError(f"Option {key!r} expects {kind.__name__}, got {raw!r}") from exc


@dataclass(frozen=True)
class SSLConfig:
    """TLS settings taken from ``ssl_<name>`` query keys."""

    ca: Optional[str] = None
    cert: Optional[str] = None
    key: Optional[str] = None
    check_hostname: Optional[bool] = None

    @classmethod
    def pop_from(cls, query: Dict[str, str]) -> Optional["SSLConfig"]:
        values: Dict[str, Any] = {}
        for field in fields(cls):
            raw = query.pop(f"ssl_{field.name}", None)
            if raw is None:
                continue
            if field.name == "check_hostname":
                values[field.name] = _coerce(f"ssl_{field.name}", raw, bool)
            else:
                values[field.name] = raw
        return cls(**values) if values else None

    def mysql_options(self) -> Dict[str, Any]:
        ssl = {field.name: getattr(self, field.name) for field in fields(self)}
        ssl = {name: value for name, value in ssl.items() if value not in (None, "")}
        return {"ssl": ssl} if ssl else {}


@dataclass
class ConnectionConfig:
    """
    Everything an adapter needs to open its driver connection.

    ``source`` names the environment variable the DSN was read from, if any.
    """

    url: str
    autocommit: bool = False
    isolation_level: Optional[str] = None
    timeout: Optional[float] = None
    options: Optional[Dict[str, Any]] = None
    ssl: Optional[SSLConfig] = None
    dsn: Optional[DSNConfig] = None
    source: Optional[str] = None

    @classmethod
    def from_dsn(cls, dsn: str, **overrides: Any) -> "ConnectionConfig":
        """
        Parse ``dsn``; keyword arguments win over values found in its query.

        An ``options`` override is merged into the driver options instead of
        replacing them.
        """

        parsed = parse_dsn(dsn)
        query = dict(parsed.query)
        settings: Dict[str, Any] = {
            key: _coerce(key, query.pop(key), kind)
            for key, kind in _CONNECTION_KEYS.items()
            if key in query
        }
        settings["ssl"] = SSLConfig.pop_from(query)
        options = {
            key: _coerce(key, value, int) if key in _INTEGER_OPTIONS else value
            for key, value in query.items()
        }
        options.update(overrides.pop("options", None) or {})
        settings.update(overrides)
        return cls(url=dsn, dsn=parsed, options=options or None, **settings)

    @classmethod
    def from_env(cls, env_var: str, **overrides: Any) -> "ConnectionConfig":
        dsn = os.environ.get(env_var)
        if not dsn:
            raise AdapterConfigurationError(f"Environment variable {env_var} does not hold a DSN")
        return cls.from_dsn(dsn, source=env_var, **overrides)

    @property
    def scheme(self) -> str:
        return (self.dsn or parse_dsn(self.url)).scheme

    def redacted_dsn(self) -> str:
        return (self.dsn or parse_dsn(self.url)).redacted()

    def describe(self) -> str:
        """
        Redacted DSN for log lines, prefixed with its environment variable.
        """

        if self.source:
            return f"{self.source} ({self.redacted_dsn()})"
        return self.redacted_dsn()
