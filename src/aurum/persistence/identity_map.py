"""
Identity map ensuring a single in-memory instance per row.
"""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Type

from ..core.entity import metadata_for
from ..exceptions import IdentityConflictError

IdentityKey = Tuple[Type[Any], Any]


class IdentityMap:
    """
    Stores entity instances keyed by (concrete class, normalized identifier).
    """

    def __init__(self) -> None:
        self._store: Dict[IdentityKey, Any] = {}
        self._lock = RLock()

    @staticmethod
    def _make_key(instance_or_class: Any, identifier: Any) -> IdentityKey:
        if isinstance(instance_or_class, type):
            entity_class = instance_or_class
        else:
            entity_class = type(instance_or_class)
        metadata = metadata_for(entity_class)
        return (entity_class, metadata.normalize_identifier(identifier))

    def register(self, instance: Any, identifier: Any = None, *, merge: bool = False) -> Any:
        """
        Track ``instance``. Returns the instance now held for its identity key.
        """

        if identifier is None:
            identifier = metadata_for(instance).get_identifier(instance)
        if identifier is None:
            return instance
        key = self._make_key(instance, identifier)
        with self._lock:
            existing = self._store.get(key)
            if existing is not None and existing is not instance and not merge:
                raise IdentityConflictError(
                    f"Another {key[0].__name__} instance is already tracked for identifier {identifier!r}"
                )
            self._store[key] = instance
        return instance

    def get(self, entity_class: Type[Any], identifier: Any) -> Optional[Any]:
        if identifier is None:
            return None
        key = self._make_key(entity_class, identifier)
        with self._lock:
            found = self._store.get(key)
            if found is not None:
                return found
            for (cls, value), instance in self._store.items():
                if value == key[1] and cls is not entity_class and issubclass(cls, entity_class):
                    return instance
        return None

    def forget(self, entity_class: Type[Any], identifier: Any) -> None:
        if identifier is None:
            return
        key = self._make_key(entity_class, identifier)
        with self._lock:
            self._store.pop(key, None)

    def remove(self, instance: Any) -> None:
        identifier = metadata_for(instance).get_identifier(instance)
        with self._lock:
            if identifier is not None:
                key = self._make_key(instance, identifier)
                if self._store.get(key) is instance:
                    del self._store[key]
                    return
            for key, value in list(self._store.items()):
                if value is instance:
                    del self._store[key]

    def contains_object(self, instance: Any) -> bool:
        identifier = metadata_for(instance).get_identifier(instance)
        if identifier is None:
            return False
        key = self._make_key(instance, identifier)
        with self._lock:
            return self._store.get(key) is instance

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def values(self) -> List[Any]:
        with self._lock:
            return list(self._store.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, instance: Any) -> bool:
        return self.contains_object(instance)
