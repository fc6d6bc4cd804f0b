"""
Masking of credentials before DSNs and statement parameters reach a log record.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Union

REDACTED_VALUE = "***"

# Keys are compared with separators and case stripped: "sslKey", "ssl-key" and
# "ssl_key" all match.
_SENSITIVE_KEY = re.compile(
    r"password|passwd|pwd|secret|token|apikey|accesskey|privatekey|ssl(?:key|cert|rootcert|ca)"
)
_SENSITIVE_TEXT = re.compile(
    r"password|passwd|secret|token|api_?key|private_?key|bearer|authorization", re.IGNORECASE
)
_SEPARATORS = re.compile(r"[^a-z0-9]")


def is_sensitive_key(key: Any) -> bool:
    return _SENSITIVE_KEY.search(_SEPARATORS.sub("", str(key).lower())) is not None


def is_sensitive_value(value: str) -> bool:
    return _SENSITIVE_TEXT.search(value) is not None


def redact_query_params(query: Mapping[str, str]) -> Dict[str, str]:
    """
    Mask DSN query values by key only; values such as file paths are kept.
    """

    return {key: REDACTED_VALUE if is_sensitive_key(key) else value for key, value in query.items()}


def redact_value(value: Any, *, key: Any = None) -> Any:
    if key is not None and is_sensitive_key(key):
        return REDACTED_VALUE
    if isinstance(value, Mapping):
        return {name: redact_value(item, key=name) for name, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact_value(item) for item in value)
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", errors="ignore")
        return REDACTED_VALUE if is_sensitive_value(text) else value
    if isinstance(value, str) and is_sensitive_value(value):
        return REDACTED_VALUE
    return value


def redact_params(params: Union[Mapping[str, Any], Iterable[Any], None]) -> Union[Dict[str, Any], List[Any]]:
    """
    Named parameters come back as a dict, positional ones as a list.
    """

    if params is None:
        return []
    if isinstance(params, Mapping):
        return redact_value(params)
    return [redact_value(item) for item in params]
