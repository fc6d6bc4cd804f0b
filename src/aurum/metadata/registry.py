"""
Registry of entity metadata with lazy resolution of string targets.
"""

from __future__ import annotations

from threading import RLock
from typing import TYPE_CHECKING, Dict, List, Optional, Type

from ..exceptions import EntityConfigurationError

if TYPE_CHECKING:
    from .mapping import EntityMetadata


class MetadataRegistry:
    """
    Known entity classes, keyed by fully qualified and short class name.

    String targets such as ``ManyToOne("Author")`` are looked up here the first
    time the association is used, so declaration order does not matter.
    """

    def __init__(self) -> None:
        self._by_path: Dict[str, Type] = {}
        self._by_name: Dict[str, Type] = {}
        self._lock = RLock()

    def register(self, entity_class: Type) -> None:
        with self._lock:
            self._by_path[self._label(entity_class)] = entity_class
            self._by_name[entity_class.__name__] = entity_class

    def resolve(self, target: Type | str, *, context: Optional[Type] = None) -> Optional[Type]:
        if isinstance(target, type):
            return target
        with self._lock:
            if target in self._by_path:
                return self._by_path[target]
            if context is not None:
                local = self._by_path.get(f"{context.__module__}.{target}")
                if local is not None:
                    return local
            return self._by_name.get(target.split(".")[-1])

    def get_metadata_for(self, target: Type | str) -> "EntityMetadata":
        entity_class = self.resolve(target)
        metadata = getattr(entity_class, "_meta", None) if entity_class is not None else None
        if metadata is None or metadata.abstract:
            label = target if isinstance(target, str) else target.__name__
            raise EntityConfigurationError(f"'{label}' is not a mapped entity")
        return metadata

    def entities(self) -> List[Type]:
        with self._lock:
            return list(self._by_path.values())

    def clear(self) -> None:
        with self._lock:
            self._by_path.clear()
            self._by_name.clear()

    @staticmethod
    def _label(entity_class: Type) -> str:
        return f"{entity_class.__module__}.{entity_class.__name__}"


metadata_registry = MetadataRegistry()
