"""
Persistence layer: unit of work, entity manager, identity map, lazy loading.
"""

from .cascade import CascadeResolver, JunctionChange, JunctionChangeSet
from .entity_manager import EntityManager
from .hydration import EntityHydrator, HydrationMode
from .identity_map import IdentityMap
from .ordering import sort_insertions
from .proxy import (
    LazyCollection,
    ProxyFactory,
    identifier_of,
    initialize,
    is_initialized,
    is_proxy,
    real_class,
)
from .repository import Repository
from .savepoint import SavepointManager, SavepointState
from .snapshots import SnapshotStore
from .unit_of_work import EntitySet, UnitOfWork

__all__ = [
    "CascadeResolver",
    "EntityHydrator",
    "EntityManager",
    "EntitySet",
    "HydrationMode",
    "IdentityMap",
    "JunctionChange",
    "JunctionChangeSet",
    "LazyCollection",
    "ProxyFactory",
    "Repository",
    "SavepointManager",
    "SavepointState",
    "SnapshotStore",
    "UnitOfWork",
    "identifier_of",
    "initialize",
    "is_initialized",
    "is_proxy",
    "real_class",
    "sort_insertions",
]
