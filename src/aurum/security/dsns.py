"""
DSN strings: parsing into parts and rendering without credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from .redaction import REDACTED_VALUE, redact_query_params


@dataclass
class DSNConfig:
    """
    ``driver`` is the raw URL scheme (``mysql+pymysql``); :attr:`scheme` is the
    backend family used to pick an adapter.
    """

    driver: str
    username: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    path: str = ""
    query: Dict[str, str] = field(default_factory=dict)

    @property
    def scheme(self) -> str:
        return self.driver.partition("+")[0].lower()

    @property
    def database(self) -> Optional[str]:
        return self.path.lstrip("/") or None

    def redacted(self) -> str:
        """
        The DSN with its password and sensitive query values masked.
        """

        credentials = ""
        if self.username:
            secret = f":{REDACTED_VALUE}" if self.password else ""
            credentials = f"{self.username}{secret}@"
        location = self.host or ""
        if self.port:
            location = f"{location}:{self.port}"
        # sqlite:///relative.db and sqlite:////abs.db keep their slashes through ``path``
        text = f"{self.driver}://{credentials}{location}{self.path}"
        if self.query:
            text = f"{text}?{urlencode(redact_query_params(self.query))}"
        return text


def parse_dsn(dsn: str) -> DSNConfig:
    parts = urlsplit(dsn)
    return DSNConfig(
        driver=parts.scheme,
        username=parts.username,
        password=parts.password,
        host=parts.hostname,
        port=parts.port,
        path=parts.path,
        query=dict(parse_qsl(parts.query)),
    )


def dsn_from_env(env_var: str) -> DSNConfig:
    dsn = os.environ.get(env_var)
    if not dsn:
        raise ValueError(f"Environment variable {env_var} is not set")
    return parse_dsn(dsn)
