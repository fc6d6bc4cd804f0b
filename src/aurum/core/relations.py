"""
Association descriptors: many-to-one, one-to-one, one-to-many, many-to-many.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Optional, Type, cast

from .fields import Field, FieldError, ensure_loaded

if TYPE_CHECKING:
    from .entity import Entity


MANY_TO_ONE = "many_to_one"
ONE_TO_ONE = "one_to_one"
ONE_TO_MANY = "one_to_many"
MANY_TO_MANY = "many_to_many"


@dataclass(frozen=True)
class JoinTable:
    """
    Junction table descriptor for the owning side of a many-to-many association.
    """

    name: Optional[str] = None
    join_column: str = "entity_id"
    inverse_join_column: str = "related_id"


class ForeignKeyField(Field):
    """
    Scalar field carrying the join column of an owning to-one association.

    Its type follows the referenced column of the target and is resolved by
    the metadata layer once the target class is known.
    """

    type_name = ""

    def __init__(self, association: "ToOneAssociation", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.association = association


class Association:
    """
    Base descriptor for associations. Related objects are kept in the
    instance's ``_related`` dict.
    """

    kind = ""
    _creation_counter = 0

    def __init__(
        self,
        target: Type | str,
        *,
        nullable: bool = True,
        mapped_by: Optional[str] = None,
        inversed_by: Optional[str] = None,
    ) -> None:
        self.target = target
        self.nullable = nullable
        self.mapped_by = mapped_by
        self.inversed_by = inversed_by
        self.entity: type["Entity"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    @property
    def owning(self) -> bool:
        return self.mapped_by is None

    def bind(self, entity: type["Entity"], name: str) -> None:
        self.entity = entity
        self.name = name

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Association name is not set.")
        return self.name

    def store(self, instance: object, value: Any) -> None:
        cast("Entity", instance)._related[self.require_name()] = value

    def __repr__(self) -> str:
        owner = self.entity.__name__ if self.entity else "?"
        target = self.target if isinstance(self.target, str) else self.target.__name__
        return f"<{self.__class__.__name__} {owner}.{self.name} -> {target}>"


class ToOneAssociation(Association):
    def __init__(
        self,
        target: Type | str,
        *,
        join_column: Optional[str] = None,
        referenced_column: Optional[str] = None,
        foreign_key: Optional[str] = None,
        nullable: bool = True,
        mapped_by: Optional[str] = None,
        inversed_by: Optional[str] = None,
    ) -> None:
        super().__init__(target, nullable=nullable, mapped_by=mapped_by, inversed_by=inversed_by)
        self.join_column = join_column
        self.referenced_column = referenced_column
        self.foreign_key = foreign_key

    def bind(self, entity: type["Entity"], name: str) -> None:
        super().bind(entity, name)
        if self.owning:
            if self.join_column is None:
                self.join_column = f"{name}_id"
            if self.foreign_key is None:
                self.foreign_key = f"{name}_id"

    def foreign_key_field(self) -> ForeignKeyField:
        return ForeignKeyField(self, column=self.join_column, nullable=self.nullable)

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        ensure_loaded(instance)
        return cast("Entity", instance)._related.get(self.require_name())

    def __set__(self, instance: object, value: Any) -> None:
        ensure_loaded(instance)
        self.store(instance, value)
        if self.owning:
            self.sync_foreign_key(instance, value)

    def sync_foreign_key(self, instance: object, value: Any) -> None:
        """
        Copy the target's referenced value into the foreign key field when known.
        """

        entity = cast("Entity", instance)
        if self.foreign_key is None:
            return
        if value is None:
            entity._field_values[self.foreign_key] = None
            return
        target_meta = getattr(type(value), "_meta", None)
        if target_meta is None:
            return
        reference = target_meta.referenced_value(value, self.referenced_column)
        if reference is not None:
            entity._field_values[self.foreign_key] = reference


class ManyToOne(ToOneAssociation):
    kind = MANY_TO_ONE

    def __init__(self, target: Type | str, **kwargs: Any) -> None:
        if kwargs.get("mapped_by") is not None:
            raise FieldError("ManyToOne is always the owning side and cannot declare mapped_by.")
        super().__init__(target, **kwargs)


class OneToOne(ToOneAssociation):
    kind = ONE_TO_ONE


class ToManyAssociation(Association):
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        ensure_loaded(instance)
        entity = cast("Entity", instance)
        name = self.require_name()
        collection = entity._related.get(name)
        if collection is None:
            collection = []
            entity._related[name] = collection
        return collection

    def __set__(self, instance: object, value: Iterable[Any] | None) -> None:
        ensure_loaded(instance)
        if value is None:
            value = []
        elif not hasattr(value, "is_initialized"):
            value = list(value)
        self.store(instance, value)


class OneToMany(ToManyAssociation):
    kind = ONE_TO_MANY

    def __init__(self, target: Type | str, *, mapped_by: str, **kwargs: Any) -> None:
        super().__init__(target, mapped_by=mapped_by, **kwargs)

    @property
    def owning(self) -> bool:
        return False


class ManyToMany(ToManyAssociation):
    kind = MANY_TO_MANY

    def __init__(
        self,
        target: Type | str,
        *,
        join_table: Optional[JoinTable] = None,
        mapped_by: Optional[str] = None,
        inversed_by: Optional[str] = None,
    ) -> None:
        super().__init__(target, mapped_by=mapped_by, inversed_by=inversed_by)
        if join_table is not None and mapped_by is not None:
            raise FieldError("Only the owning side of a many-to-many association declares a join table.")
        self.join_table = join_table
