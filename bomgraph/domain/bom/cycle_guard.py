"""
BOM Domain - Cycle Guard.

Decides whether a component may be attached under a line without creating a
structural cycle, either inside the tree or across the product graph where a
sub-assembly's own BOM references further products.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.exceptions import (
    DomainException,
    EntityNotFoundException,
    StructuralCycleException,
    TraversalBudgetExceededException,
)

from .tree import BOMTree

logger = logging.getLogger(__name__)


class ProductGraph:
    """
    Directed "P's BOM contains Q" graph between products.

    Backed either by an edge mapping or by a lookup callable such as
    ``NodeStore.list_product_graph_edges``; lookups are cached per instance.
    """

    def __init__(
        self,
        edges: Optional[Mapping[str, Iterable[str]]] = None,
        lookup: Optional[Callable[[str], Iterable[str]]] = None,
    ):
        if edges is not None and lookup is not None:
            raise ValueError("Pass either edges or lookup, not both")
        self._edges: Dict[str, Tuple[str, ...]] = {
            k: tuple(v) for k, v in (edges or {}).items()
        }
        self._lookup = lookup

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> ProductGraph:
        edges: Dict[str, List[str]] = {}
        for parent, child in pairs:
            edges.setdefault(parent, []).append(child)
        return cls(edges)

    def successors(self, product_id: str) -> Tuple[str, ...]:
        if product_id not in self._edges:
            if self._lookup is None:
                return ()
            self._edges[product_id] = tuple(self._lookup(product_id))
        return self._edges[product_id]


@dataclass(frozen=True)
class AttachRequest:
    owner_product_id: str
    parent_node_id: Optional[str]  # None attaches a root line
    component_product_id: str


@dataclass(frozen=True)
class AttachResult:
    ok: bool
    error: Optional[DomainException] = None
    path: Tuple[str, ...] = ()

    @classmethod
    def allowed(cls) -> AttachResult:
        return cls(ok=True)

    @classmethod
    def denied(cls, error: DomainException) -> AttachResult:
        return cls(ok=False, error=error, path=getattr(error, "path", ()))


def find_path(
    graph: ProductGraph,
    start: str,
    targets: Set[str],
    settings: Optional[EngineSettings] = None,
) -> Optional[List[str]]:
    """
    Breadth-first search from ``start``; return the path to the first target
    reached, or None.

    Raises:
        TraversalBudgetExceededException: more products or levels than the
            configured budget would have to be explored.
    """
    cfg = resolve(settings)
    came_from: Dict[str, Optional[str]] = {start: None}
    queue = deque([(start, 0)])

    while queue:
        product, depth = queue.popleft()
        for successor in graph.successors(product):
            if successor in came_from:
                continue
            came_from[successor] = product
            if successor in targets:
                path = [successor]
                while came_from[path[-1]] is not None:
                    path.append(came_from[path[-1]])
                return list(reversed(path))
            if depth + 1 > cfg.max_traversal_depth:
                raise TraversalBudgetExceededException("depth", cfg.max_traversal_depth, [start, successor])
            if len(came_from) > cfg.max_traversal_nodes:
                raise TraversalBudgetExceededException("nodes", cfg.max_traversal_nodes, [start])
            queue.append((successor, depth + 1))
    return None


def _chain_components(tree: BOMTree, parent_node_id: Optional[str]) -> Tuple[str, ...]:
    if parent_node_id is None:
        return ()
    return (*tree.component_path(parent_node_id), tree.get(parent_node_id).component_id)


def _check(
    owner: str,
    chain: Sequence[str],
    component: str,
    graph: Optional[ProductGraph],
    cfg: EngineSettings,
) -> None:
    if component == owner:
        raise StructuralCycleException(
            [owner, component], f"Product '{owner}' cannot be a component of its own BOM"
        )
    if component in chain:
        raise StructuralCycleException([owner, *chain, component])
    if graph is None:
        return
    path = find_path(graph, component, {owner, *chain}, cfg)
    if path is not None:
        raise StructuralCycleException(
            path,
            f"Component '{component}' already contains '{path[-1]}' through its own BOM: "
            + " -> ".join(path),
        )


def can_attach(
    request: AttachRequest,
    tree: BOMTree,
    graph: Optional[ProductGraph] = None,
    settings: Optional[EngineSettings] = None,
) -> AttachResult:
    """
    Check whether ``request.component_product_id`` may go under
    ``request.parent_node_id``.

    Never raises for a denial; the error is returned in the result.
    """
    cfg = resolve(settings)
    try:
        chain = _chain_components(tree, request.parent_node_id)
        _check(request.owner_product_id, chain, request.component_product_id, graph, cfg)
    except (StructuralCycleException, TraversalBudgetExceededException, EntityNotFoundException) as exc:
        logger.info(
            f"Attach of {request.component_product_id} under {request.parent_node_id} "
            f"denied: {exc.code}"
        )
        return AttachResult.denied(exc)
    return AttachResult.allowed()


def check_structure(
    tree: BOMTree,
    graph: Optional[ProductGraph] = None,
    settings: Optional[EngineSettings] = None,
) -> None:
    """
    Validate every line of a built tree against the owning product.

    Raises:
        StructuralCycleException: a component repeats on its own ancestor
            chain, equals the owning product, or (with ``graph``) reaches
            them through its own BOM.
        TraversalBudgetExceededException: product graph search too large.
    """
    cfg = resolve(settings)
    for node in tree.preorder():
        chain = tree.component_path(node.id)
        sub_graph = graph if node.component_type.has_own_bom else None
        _check(node.product_id, chain, node.component_id, sub_graph, cfg)
