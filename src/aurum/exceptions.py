"""
Error taxonomy for Aurum.
"""

from __future__ import annotations


class ORMError(RuntimeError):
    """Base error for all persistence failures raised by Aurum."""


class EntityConfigurationError(ORMError):
    """Raised when an entity class is declared or mapped incorrectly."""


class UnknownTypeError(ORMError):
    """Raised when a field refers to a type name missing from the type registry."""


class EntityNotManagedError(ORMError):
    """Raised when an operation requires an entity tracked by the unit of work."""


class EntityNotFoundError(ORMError):
    """Raised when a referenced row does not exist."""

    def __init__(self, entity_class: type, identifier: object) -> None:
        super().__init__(f"{entity_class.__name__} with identifier {identifier!r} was not found.")
        self.entity_class = entity_class
        self.identifier = identifier


class IdentityConflictError(ORMError):
    """Raised when a second object is registered for an occupied identity key."""


class TransactionError(ORMError):
    """Base error for transaction state violations."""


class NoActiveTransactionError(TransactionError):
    """Raised when an operation needs an open transaction and none is active."""


class TransactionAlreadyActiveError(TransactionError):
    """Raised when a transaction is started while another one is active."""


class SavepointError(ORMError):
    """Base error for savepoint handling."""


class SavepointNotSupportedError(SavepointError):
    """Raised when the active dialect cannot create savepoints."""


class InvalidSavepointNameError(SavepointError):
    """Raised for duplicate or unknown savepoint names."""


class QueryFailedError(ORMError):
    """Raised when the driver rejects a statement."""

    def __init__(self, message: str, *, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class WriteFailureError(ORMError):
    """Raised when an insert, update, delete or junction write fails during flush."""

    def __init__(self, message: str, *, entity: object | None = None) -> None:
        super().__init__(message)
        self.entity = entity


__all__ = [
    "ORMError",
    "EntityConfigurationError",
    "UnknownTypeError",
    "EntityNotManagedError",
    "EntityNotFoundError",
    "IdentityConflictError",
    "TransactionError",
    "NoActiveTransactionError",
    "TransactionAlreadyActiveError",
    "SavepointError",
    "SavepointNotSupportedError",
    "InvalidSavepointNameError",
    "QueryFailedError",
    "WriteFailureError",
]
