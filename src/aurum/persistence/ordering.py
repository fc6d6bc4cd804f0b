"""
Dependency ordering for scheduled insertions.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Tuple

from ..core.entity import metadata_for
from ..utils import get_logger

logger = get_logger("persistence.ordering")

_VISITING = 1
_DONE = 2


def _dependencies(entity: Any, pending: Dict[int, Any]) -> List[Any]:
    """
    Pending entities that ``entity`` references through owning to-one associations.
    """

    related = entity.__dict__.get("_related", {})
    found = []
    for association in metadata_for(entity).owning_to_one():
        target = related.get(association.name)
        if target is not None and target is not entity and pending.get(id(target)) is target:
            found.append(target)
    return found


def sort_insertions(entities: Iterable[Any]) -> List[Any]:
    """
    Order entities so referenced rows are inserted before the rows pointing at them.

    Depth-first topological sort over the owning to-one edges between members of
    the set. Cycles do not fail: the back edge is skipped with a warning and the
    members come out in encounter order.
    """

    pending: Dict[int, Any] = {}
    for entity in entities:
        pending.setdefault(id(entity), entity)

    state: Dict[int, int] = {}
    ordered: List[Any] = []

    for root in pending.values():
        if id(root) in state:
            continue
        state[id(root)] = _VISITING
        stack: List[Tuple[Any, Iterator[Any]]] = [(root, iter(_dependencies(root, pending)))]
        while stack:
            node, children = stack[-1]
            descended = False
            for child in children:
                mark = state.get(id(child))
                if mark == _DONE:
                    continue
                if mark == _VISITING:
                    logger.warning(
                        "Insertion cycle between %s and %s; using encounter order",
                        type(node).__name__,
                        type(child).__name__,
                    )
                    continue
                state[id(child)] = _VISITING
                stack.append((child, iter(_dependencies(child, pending))))
                descended = True
                break
            if not descended:
                stack.pop()
                state[id(node)] = _DONE
                ordered.append(node)

    return ordered
