"""
Core declarative API: entities, fields, associations and type converters.
"""

from .fields import (
    AutoField,
    BooleanField,
    DateField,
    DateTimeField,
    DecimalField,
    Field,
    FloatField,
    IntegerField,
    JSONField,
    StringField,
    TextField,
    UUIDField,
)
from .relations import JoinTable, ManyToMany, ManyToOne, OneToMany, OneToOne
from .types import TypeConverter, TypeRegistry, type_registry
from .entity import Entity, metadata_for

__all__ = [
    "AutoField",
    "BooleanField",
    "DateField",
    "DateTimeField",
    "DecimalField",
    "Entity",
    "Field",
    "FloatField",
    "IntegerField",
    "JSONField",
    "JoinTable",
    "ManyToMany",
    "ManyToOne",
    "OneToMany",
    "OneToOne",
    "StringField",
    "TextField",
    "TypeConverter",
    "TypeRegistry",
    "UUIDField",
    "metadata_for",
    "type_registry",
]
