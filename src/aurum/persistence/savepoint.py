"""
Per unit-of-work savepoint lifecycle.
"""

from __future__ import annotations

import itertools
from enum import Enum
from typing import Optional

from ..adapters.connection import Connection
from ..utils import get_logger


class SavepointState(Enum):
    NONE = "none"
    CREATED = "created"
    RELEASED = "released"
    ROLLED_BACK = "rolled_back"


class SavepointManager:
    """
    Owns one named savepoint on a shared connection.

    The savepoint is created lazily, on the first flush inside a transaction, and
    kept until the outer transaction commits or the unit of work is cleared. Once
    released or rolled back a new cycle may begin.

    Every flush additionally runs inside a short-lived savepoint nested in the
    current stack (``<name>_f<n>``). A failed flush rolls back to that one only,
    so work flushed earlier by this or any other unit of work survives.
    """

    def __init__(self, connection: Connection, name: str) -> None:
        self.connection = connection
        self.name = name
        self.state = SavepointState.NONE
        self.logger = get_logger("persistence.savepoint")
        self._flushes = itertools.count(1)

    @property
    def active(self) -> bool:
        return self.state is SavepointState.CREATED and self.connection.has_savepoint(self.name)

    def ensure(self) -> bool:
        """
        Create the savepoint if the connection is in a transaction and it does not
        exist yet. Returns True when a savepoint was created.
        """

        if not self.connection.in_transaction:
            return False
        if self.state is SavepointState.CREATED:
            if self.connection.has_savepoint(self.name):
                return False
            self._mark_lost()
        self.connection.create_savepoint(self.name)
        self.state = SavepointState.CREATED
        return True

    def release(self) -> None:
        if self.state is not SavepointState.CREATED:
            return
        if not self.connection.in_transaction or not self.connection.has_savepoint(self.name):
            self._mark_lost()
            return
        self.connection.release_savepoint(self.name)
        self.state = SavepointState.RELEASED

    def rollback(self) -> None:
        """
        Undo work done since the savepoint, then drop it so the name can be reused.
        """

        if self.state is not SavepointState.CREATED:
            return
        if not self.connection.in_transaction or not self.connection.has_savepoint(self.name):
            self._mark_lost()
            return
        self.connection.rollback_to_savepoint(self.name)
        self.connection.release_savepoint(self.name)
        self.state = SavepointState.ROLLED_BACK

    def reset(self) -> None:
        """
        Forget the savepoint after the outer transaction ended.
        """

        self.state = SavepointState.NONE

    def rename(self, name: str) -> None:
        if self.active:
            raise ValueError(f"Cannot rename savepoint {self.name} while it is open")
        self.name = name

    # ------------------------------------------------------------------ #
    # Flush scope
    # ------------------------------------------------------------------ #
    def begin_flush(self) -> Optional[str]:
        """
        Make sure the unit's savepoint exists, then open one for a single flush.

        Returns the flush savepoint name, or None outside a transaction.
        """

        if not self.connection.in_transaction:
            return None
        self.ensure()
        flush_name = f"{self.name}_f{next(self._flushes)}"
        self.connection.create_savepoint(flush_name)
        return flush_name

    def end_flush(self, flush_name: Optional[str]) -> None:
        if flush_name is not None and self.connection.has_savepoint(flush_name):
            self.connection.release_savepoint(flush_name)

    def abort_flush(self, flush_name: Optional[str]) -> None:
        """
        Undo the statements of a failed flush and drop its savepoint.
        """

        if flush_name is None:
            return
        if not self.connection.in_transaction or not self.connection.has_savepoint(flush_name):
            self.logger.warning(
                "Flush savepoint %s no longer exists on the connection; nothing to roll back",
                flush_name,
            )
            return
        self.connection.rollback_to_savepoint(flush_name)
        self.connection.release_savepoint(flush_name)

    def _mark_lost(self) -> None:
        self.logger.warning(
            "Savepoint %s no longer exists on the connection; treating it as rolled back",
            self.name,
        )
        self.state = SavepointState.ROLLED_BACK

    def __repr__(self) -> str:
        return f"<SavepointManager {self.name} {self.state.value}>"
