"""
Aurum public package initialization.

Entities are declared with :class:`Entity` and field/association descriptors;
an :class:`EntityManager` tracks and flushes them.
"""

from .adapters import AdapterRegistry, Connection, ConnectionConfig, ConnectionFactory  # noqa: F401
from .core import (  # noqa: F401
    AutoField,
    BooleanField,
    DateField,
    DateTimeField,
    DecimalField,
    Entity,
    FloatField,
    IntegerField,
    JoinTable,
    JSONField,
    ManyToMany,
    ManyToOne,
    OneToMany,
    OneToOne,
    StringField,
    TextField,
    UUIDField,
    metadata_for,
)
from .exceptions import (  # noqa: F401
    EntityConfigurationError,
    EntityNotFoundError,
    EntityNotManagedError,
    IdentityConflictError,
    InvalidSavepointNameError,
    NoActiveTransactionError,
    ORMError,
    QueryFailedError,
    SavepointNotSupportedError,
    TransactionAlreadyActiveError,
    UnknownTypeError,
    WriteFailureError,
)
from .persistence import EntityManager, HydrationMode, Repository, UnitOfWork  # noqa: F401
from .utils import configure_logging  # noqa: F401

__all__ = [
    "AdapterRegistry",
    "AutoField",
    "BooleanField",
    "Connection",
    "ConnectionConfig",
    "ConnectionFactory",
    "DateField",
    "DateTimeField",
    "DecimalField",
    "Entity",
    "EntityConfigurationError",
    "EntityManager",
    "EntityNotFoundError",
    "EntityNotManagedError",
    "FloatField",
    "HydrationMode",
    "IdentityConflictError",
    "IntegerField",
    "InvalidSavepointNameError",
    "JSONField",
    "JoinTable",
    "ManyToMany",
    "ManyToOne",
    "NoActiveTransactionError",
    "ORMError",
    "OneToMany",
    "OneToOne",
    "QueryFailedError",
    "Repository",
    "SavepointNotSupportedError",
    "StringField",
    "TextField",
    "TransactionAlreadyActiveError",
    "UUIDField",
    "UnitOfWork",
    "UnknownTypeError",
    "WriteFailureError",
    "configure_logging",
    "metadata_for",
]
