"""
Scalar type converters used at the storage boundary.

Converters are only consulted when values cross into SQL parameters
(insert, update, criteria) or come back out of result rows (hydration),
and when identifier values are normalized for identity keys.
"""

from __future__ import annotations

import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable

from ..exceptions import UnknownTypeError


class TypeConverter:
    """
    Two-way conversion between Python values and driver-friendly values.

    ``None`` passes through both directions untouched.
    """

    name = "raw"

    def to_storage(self, value: Any) -> Any:
        if value is None:
            return None
        return self._to_storage(value)

    def from_storage(self, value: Any) -> Any:
        if value is None:
            return None
        return self._from_storage(value)

    def _to_storage(self, value: Any) -> Any:
        return value

    def _from_storage(self, value: Any) -> Any:
        return value

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class IntegerType(TypeConverter):
    name = "integer"

    def _to_storage(self, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc

    def _from_storage(self, value: Any) -> int:
        return int(value)


class FloatType(TypeConverter):
    name = "float"

    def _to_storage(self, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc

    def _from_storage(self, value: Any) -> float:
        return float(value)


class StringType(TypeConverter):
    name = "string"

    def _to_storage(self, value: Any) -> str:
        return str(value)

    def _from_storage(self, value: Any) -> str:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)


class TextType(StringType):
    name = "text"


class BooleanType(TypeConverter):
    name = "boolean"

    def _to_storage(self, value: Any) -> int:
        return 1 if self._from_storage(value) else 0

    def _from_storage(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float, Decimal)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class DecimalType(TypeConverter):
    name = "decimal"

    def _to_storage(self, value: Any) -> str:
        return str(Decimal(str(value)))

    def _from_storage(self, value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))


class UUIDType(TypeConverter):
    name = "uuid"

    def _to_storage(self, value: Any) -> str:
        return str(self._from_storage(value))

    def _from_storage(self, value: Any) -> uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        if isinstance(value, bytes) and len(value) == 16:
            return uuid.UUID(bytes=value)
        if isinstance(value, bytes):
            value = value.decode("ascii")
        return uuid.UUID(str(value))


class DateTimeType(TypeConverter):
    name = "datetime"

    def _to_storage(self, value: Any) -> str:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str):
            return datetime.fromisoformat(value).isoformat()
        raise ValueError(f"Expected datetime, received {value!r}")

    def _from_storage(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, bytes):
            value = value.decode("ascii")
        return datetime.fromisoformat(str(value))


class DateType(TypeConverter):
    name = "date"

    def _to_storage(self, value: Any) -> str:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            return date.fromisoformat(value).isoformat()
        raise ValueError(f"Expected date, received {value!r}")

    def _from_storage(self, value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, bytes):
            value = value.decode("ascii")
        return date.fromisoformat(str(value)[:10])


class JSONType(TypeConverter):
    name = "json"

    def _to_storage(self, value: Any) -> str:
        return json.dumps(value, sort_keys=True, default=str)

    def _from_storage(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8")
        if isinstance(value, str):
            return json.loads(value)
        return value


class TypeRegistry:
    """
    Named converter lookup. Each entity field resolves its converter here once,
    when the entity class is created.
    """

    def __init__(self, converters: Iterable[TypeConverter] | None = None) -> None:
        self._converters: Dict[str, TypeConverter] = {}
        for converter in converters if converters is not None else _builtin_converters():
            self.register(converter.name, converter)

    def register(self, name: str, converter: TypeConverter) -> None:
        self._converters[name] = converter

    def get(self, name: str) -> TypeConverter:
        try:
            return self._converters[name]
        except KeyError as exc:
            raise UnknownTypeError(f"Unknown column type '{name}'") from exc

    def has(self, name: str) -> bool:
        return name in self._converters

    def names(self) -> list[str]:
        return sorted(self._converters)


def _builtin_converters() -> list[TypeConverter]:
    return [
        IntegerType(),
        FloatType(),
        StringType(),
        TextType(),
        BooleanType(),
        DecimalType(),
        UUIDType(),
        DateTimeType(),
        DateType(),
        JSONType(),
    ]


type_registry = TypeRegistry()
