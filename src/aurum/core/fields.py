"""
Field descriptors for Aurum entities.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, cast

if TYPE_CHECKING:
    from .entity import Entity


GENERATION_STRATEGIES = ("auto", "uuid")


class FieldError(Exception):
    """Internal exception for field configuration issues."""


def ensure_loaded(instance: object) -> None:
    """
    Initialize a lazy ghost before one of its mapped attributes is used.
    """

    ghost = instance.__dict__.get("_ghost")
    if ghost is not None and not ghost.initialized:
        ghost.load(instance)


class Field:
    """
    Base class for scalar field descriptors.

    Values live in the instance's ``_field_values`` dict. Reading any field
    other than the identifier on an uninitialized ghost loads the ghost first.
    """

    type_name = "string"
    _creation_counter = 0

    def __init__(
        self,
        type_name: Optional[str] = None,
        *,
        column: Optional[str] = None,
        nullable: bool = True,
        identifier: bool = False,
        strategy: Optional[str] = None,
        default: Any = None,
    ) -> None:
        if strategy is not None and strategy not in GENERATION_STRATEGIES:
            raise FieldError(f"Unknown generation strategy '{strategy}'")
        self.type_name = type_name or self.type_name
        self.column = column
        self.nullable = False if identifier else nullable
        self.identifier = identifier
        self.strategy = strategy
        self.default = default

        self.entity: type["Entity"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        if not self.identifier:
            ensure_loaded(instance)
        entity = cast("Entity", instance)
        name = self.require_name()
        if name not in entity._field_values:
            default = self.get_default()
            if default is not None:
                entity._field_values[name] = default
            return default
        return entity._field_values[name]

    def __set__(self, instance: object, value: Any) -> None:
        if not self.identifier:
            ensure_loaded(instance)
        name = self.require_name()
        if value is None:
            if not self.nullable and not self.identifier:
                raise ValueError(f"Field '{name}' cannot be None")
            self.store(instance, None)
            return
        self.store(instance, self.to_python(value))

    def store(self, instance: object, value: Any) -> None:
        """
        Write a value without validation or ghost initialization.
        """

        cast("Entity", instance)._field_values[self.require_name()] = value

    # Metadata helpers ----------------------------------------------------
    def bind(self, entity: type["Entity"], name: str) -> None:
        self.entity = entity
        self.name = name
        if self.column is None:
            self.column = name

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def column_name(self) -> str:
        return self.column or self.require_name()

    # Conversion ----------------------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    def to_python(self, value: Any) -> Any:
        return value

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def __repr__(self) -> str:
        owner = self.entity.__name__ if self.entity else "?"
        return f"<{self.__class__.__name__} {owner}.{self.name}>"


class AutoField(Field):
    """
    Database generated integer identifier, the default ``id`` of every entity.
    """

    type_name = "integer"

    def __init__(self, *, column: Optional[str] = None) -> None:
        super().__init__(column=column, identifier=True, strategy="auto")

    def to_python(self, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value '{value}' for AutoField") from exc


class IntegerField(Field):
    type_name = "integer"

    def to_python(self, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class FloatField(Field):
    type_name = "float"

    def to_python(self, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class StringField(Field):
    type_name = "string"

    def __init__(self, *, max_length: int = 255, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str:
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(
                f"Value for field '{self.require_name()}' exceeds max_length {self.max_length}"
            )
        return result


class TextField(Field):
    type_name = "text"


class BooleanField(Field):
    type_name = "boolean"

    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class DecimalField(Field):
    type_name = "decimal"


class UUIDField(Field):
    type_name = "uuid"


class DateTimeField(Field):
    type_name = "datetime"

    def __init__(self, *, auto_now_add: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.auto_now_add = auto_now_add

    def get_default(self) -> Any:
        if self.auto_now_add:
            return datetime.now(timezone.utc)
        return super().get_default()

    @property
    def has_default(self) -> bool:
        return self.auto_now_add or super().has_default

    def to_python(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        raise ValueError(f"Expected datetime for field '{self.name}', received {value!r}")


class DateField(Field):
    type_name = "date"


class JSONField(Field):
    type_name = "json"
