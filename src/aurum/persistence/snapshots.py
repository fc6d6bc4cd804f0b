"""
Change snapshots and dirty checking for managed entities.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from ..core.entity import metadata_for
from .proxy import is_initialized

Snapshot = Dict[str, Any]


def capture(entity: Any) -> Snapshot:
    """
    Copy the current field values of ``entity``.

    Owning to-one associations are recorded by their resolved foreign key so that
    re-pointing an association counts as a change.
    """

    metadata = metadata_for(entity)
    values: Snapshot = {}
    for name in metadata.field_mappings:
        values[name] = _copy_value(metadata.get_value(entity, name))
    for association in metadata.owning_to_one():
        values[association.name] = metadata.foreign_key_value(entity, association)
    return values


def _copy_value(value: Any) -> Any:
    if isinstance(value, (dict, list, set)):
        return copy.deepcopy(value)
    return value


class SnapshotStore:
    """
    Snapshots keyed by object identity; entities do not have to be hashable.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, Tuple[Any, Snapshot]] = {}

    def take(self, entity: Any) -> Optional[Snapshot]:
        if not is_initialized(entity):
            return None
        snapshot = capture(entity)
        self._entries[id(entity)] = (entity, snapshot)
        return snapshot

    snapshot = take

    def get(self, entity: Any) -> Optional[Snapshot]:
        entry = self._entries.get(id(entity))
        if entry is None or entry[0] is not entity:
            return None
        return entry[1]

    def has(self, entity: Any) -> bool:
        return self.get(entity) is not None

    def discard(self, entity: Any) -> None:
        entry = self._entries.get(id(entity))
        if entry is not None and entry[0] is entity:
            del self._entries[id(entity)]

    def restore(self, entity: Any, snapshot: Optional[Snapshot]) -> None:
        """
        Put back a snapshot returned earlier by :meth:`get`; None discards.
        """

        if snapshot is None:
            self.discard(entity)
        else:
            self._entries[id(entity)] = (entity, snapshot)

    def changed_fields(self, entity: Any) -> Dict[str, Tuple[Any, Any]]:
        """
        Map of changed attribute name to ``(old, new)``.
        """

        if not is_initialized(entity):
            return {}
        snapshot = self.get(entity)
        if snapshot is None:
            return {}
        current = capture(entity)
        return {
            name: (snapshot.get(name), value)
            for name, value in current.items()
            if name not in snapshot or snapshot[name] != value
        }

    def is_dirty(self, entity: Any) -> bool:
        return bool(self.changed_fields(entity))

    def entities(self) -> List[Any]:
        return [entity for entity, _ in self._entries.values()]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity: Any) -> bool:
        return self.has(entity)
