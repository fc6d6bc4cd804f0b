"""
Lazy loading: ghost proxies for to-one references and lazy collections.

A ghost is a genuine instance of the entity class created without calling
``__init__``. It knows only its identifier until a mapped attribute other than
the identifier is read, at which point the loader fills it in place.
"""

from __future__ import annotations

from collections.abc import MutableSequence
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Type

from ..core.entity import metadata_for
from ..exceptions import EntityNotFoundError
from ..utils import get_logger

Loader = Callable[[], Any]
InitializedCallback = Callable[[Any], None]


@dataclass
class GhostState:
    entity_class: Type[Any]
    identifier: Any
    loader: Loader
    factory: "ProxyFactory"
    on_initialized: Optional[InitializedCallback] = None
    initialized: bool = False
    loading: bool = False

    def load(self, ghost: Any) -> None:
        self.factory.initialize(ghost)


class ProxyFactory:
    def __init__(self) -> None:
        self.logger = get_logger("persistence.proxy")

    def create_proxy(
        self,
        entity_class: Type[Any],
        identifier: Any,
        loader: Loader,
        on_initialized: Optional[InitializedCallback] = None,
    ) -> Any:
        metadata = metadata_for(entity_class)
        ghost = metadata.new_instance()
        metadata.set_identifier(ghost, metadata.normalize_identifier(identifier))
        ghost.__dict__["_ghost"] = GhostState(
            entity_class=entity_class,
            identifier=identifier,
            loader=loader,
            factory=self,
            on_initialized=on_initialized,
        )
        return ghost

    def initialize(self, ghost: Any) -> Any:
        """
        Load the ghost's state. Safe to call repeatedly.
        """

        state: GhostState | None = ghost.__dict__.get("_ghost")
        if state is None or state.initialized or state.loading:
            return ghost

        state.loading = True
        try:
            loaded = state.loader()
            if loaded is None:
                raise EntityNotFoundError(state.entity_class, state.identifier)
            if loaded is not ghost:
                ghost.__dict__["_field_values"].update(loaded.__dict__.get("_field_values", {}))
                ghost.__dict__["_related"].update(loaded.__dict__.get("_related", {}))
            state.initialized = True
        finally:
            state.loading = False

        self.logger.debug(
            "Initialized %s proxy for identifier %r", state.entity_class.__name__, state.identifier
        )
        if state.on_initialized is not None:
            state.on_initialized(ghost)
        return ghost


def is_proxy(entity: Any) -> bool:
    return "_ghost" in getattr(entity, "__dict__", {})


def is_initialized(entity: Any) -> bool:
    state = getattr(entity, "__dict__", {}).get("_ghost")
    return state is None or state.initialized


def initialize(entity: Any) -> Any:
    state: GhostState | None = getattr(entity, "__dict__", {}).get("_ghost")
    if state is None:
        return entity
    return state.factory.initialize(entity)


def real_class(entity: Any) -> Type[Any]:
    return type(entity)


def identifier_of(entity: Any) -> Any:
    """
    Identifier of an entity or ghost; never triggers a load.
    """

    return metadata_for(entity).get_identifier(entity)


class LazyCollection(MutableSequence):
    """
    List-like collection filled by ``loader`` on first use.
    """

    def __init__(self, loader: Callable[[], Iterable[Any]]) -> None:
        self._loader: Callable[[], Iterable[Any]] | None = loader
        self._items: List[Any] | None = None

    def is_initialized(self) -> bool:
        return self._items is not None

    def _load(self) -> List[Any]:
        if self._items is None:
            loader, self._loader = self._loader, None
            self._items = list(loader()) if loader is not None else []
        return self._items

    def __getitem__(self, index):
        return self._load()[index]

    def __setitem__(self, index, value) -> None:
        self._load()[index] = value

    def __delitem__(self, index) -> None:
        del self._load()[index]

    def __len__(self) -> int:
        return len(self._load())

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._load()))

    def insert(self, index: int, value: Any) -> None:
        self._load().insert(index, value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LazyCollection):
            return self._load() == other._load()
        if isinstance(other, list):
            return self._load() == other
        return NotImplemented

    def __repr__(self) -> str:
        if self._items is None:
            return "<LazyCollection (not loaded)>"
        return f"<LazyCollection {self._items!r}>"
