"""
BOM Domain - Tree Builder.

Turns the flat component lines of one BOM into an arena tree: a tuple of
nodes addressed by index, with children stored as index tuples. Levels are
recomputed breadth-first from the roots; the stored level is ignored.
"""

from __future__ import annotations
from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidFieldException,
    StructuralCycleException,
    TraversalBudgetExceededException,
)

from . import rollup
from .entities import BOMComponentNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrphanReference:
    """A line whose parent is missing from the snapshot; it is kept as a root."""

    node_id: str
    missing_parent_id: str


@dataclass(frozen=True, eq=False)
class BOMTree:
    """
    Validated, immutable BOM tree.

    ``total_items`` and ``total_cost`` cover the in-scope lines (active ones
    unless the tree was built with ``include_inactive_items``); ``len(tree)``
    counts every line.
    """

    nodes: Tuple[BOMComponentNode, ...]
    children: Tuple[Tuple[int, ...], ...]
    parents: Tuple[Optional[int], ...]
    roots: Tuple[int, ...]
    orphans: Tuple[OrphanReference, ...] = ()
    total_items: int = 0
    total_cost: Decimal = Decimal(0)
    max_level: int = 0
    include_inactive_items: bool = False
    _index: Mapping[str, int] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __iter__(self):
        return iter(self.nodes)

    @property
    def product_id(self) -> Optional[str]:
        return self.nodes[0].product_id if self.nodes else None

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def index_of(self, node_id: str) -> int:
        try:
            return self._index[node_id]
        except KeyError:
            raise EntityNotFoundException("BOMComponentNode", node_id) from None

    def get(self, node_id: str) -> BOMComponentNode:
        return self.nodes[self.index_of(node_id)]

    def root_nodes(self) -> Tuple[BOMComponentNode, ...]:
        return tuple(self.nodes[i] for i in self.roots)

    def children_of(self, node_id: Optional[str]) -> Tuple[BOMComponentNode, ...]:
        """Direct children in sequence order; ``None`` returns the roots."""
        if node_id is None:
            return self.root_nodes()
        return tuple(self.nodes[i] for i in self.children[self.index_of(node_id)])

    def has_children(self, node_id: str) -> bool:
        return bool(self.children[self.index_of(node_id)])

    def parent_of(self, node_id: str) -> Optional[BOMComponentNode]:
        parent = self.parents[self.index_of(node_id)]
        return None if parent is None else self.nodes[parent]

    def ancestors_of(self, node_id: str) -> Tuple[BOMComponentNode, ...]:
        """Ancestors from the root down to the direct parent."""
        chain: List[BOMComponentNode] = []
        parent = self.parents[self.index_of(node_id)]
        while parent is not None:
            chain.append(self.nodes[parent])
            parent = self.parents[parent]
        return tuple(reversed(chain))

    def descendants_of(self, node_id: str) -> Tuple[BOMComponentNode, ...]:
        """All lines below ``node_id`` in depth-first pre-order."""
        start = self.index_of(node_id)
        return tuple(self.nodes[i] for i in self._preorder(self.children[start]))

    def component_path(self, node_id: str) -> Tuple[str, ...]:
        """Component ids of the ancestors, root first."""
        return tuple(n.component_id for n in self.ancestors_of(node_id))

    def preorder_indices(self) -> List[int]:
        return self._preorder(self.roots)

    def preorder(self) -> List[BOMComponentNode]:
        return [self.nodes[i] for i in self.preorder_indices()]

    def nested(self) -> List[Dict[str, Any]]:
        """Nested ``{"node", "children"}`` form, roots first."""

        def build(index: int) -> Dict[str, Any]:
            return {
                "node": self.nodes[index],
                "children": [build(c) for c in self.children[index]],
            }

        return [build(r) for r in self.roots]

    def _preorder(self, start: Sequence[int]) -> List[int]:
        order: List[int] = []
        stack = list(reversed(start))
        while stack:
            index = stack.pop()
            order.append(index)
            stack.extend(reversed(self.children[index]))
        return order


# =============================================================================
# BUILDER
# =============================================================================

def _by_sequence(node: BOMComponentNode) -> int:
    return node.sequence


def _check_sibling_sequences(parent_id: Optional[str], siblings: Iterable[BOMComponentNode]) -> None:
    seen: Dict[int, str] = {}
    for node in siblings:
        if node.sequence in seen:
            raise BusinessRuleViolationException(
                "DUPLICATE_SEQUENCE",
                f"Lines '{seen[node.sequence]}' and '{node.id}' share sequence "
                f"{node.sequence} under parent '{parent_id}'",
                parent_id=parent_id,
                sequence=node.sequence,
            )
        seen[node.sequence] = node.id


def _find_cycle(start: BOMComponentNode, by_id: Mapping[str, BOMComponentNode]) -> List[str]:
    """Follow parent links from ``start`` until a line repeats."""
    order: List[str] = []
    position: Dict[str, int] = {}
    current: Optional[BOMComponentNode] = start
    while current is not None and current.id not in position:
        position[current.id] = len(order)
        order.append(current.id)
        current = by_id.get(current.parent_id) if current.parent_id else None
    if current is None:
        return order
    cycle = order[position[current.id]:]
    return list(reversed(cycle)) + [cycle[-1]]


def build_tree(
    records: Iterable[BOMComponentNode],
    *,
    include_inactive_items: bool = False,
    settings: Optional[EngineSettings] = None,
) -> BOMTree:
    """
    Assemble flat lines into a validated ``BOMTree``.

    Raises:
        InvalidFieldException: duplicate line ids.
        StructuralCycleException: a parent chain that never reaches a root.
        TraversalBudgetExceededException: depth or node budget exhausted.
        BusinessRuleViolationException: duplicate sibling sequence, or a
            leaf-only component owning children.
    """
    cfg = resolve(settings)
    records = list(records)

    by_id: Dict[str, BOMComponentNode] = {}
    for record in records:
        if record.id in by_id:
            raise InvalidFieldException(f"Duplicate component line id '{record.id}'", "id", record.id)
        by_id[record.id] = record

    root_records: List[BOMComponentNode] = []
    orphan_records: List[BOMComponentNode] = []
    orphans: List[OrphanReference] = []
    children_by_parent: Dict[str, List[BOMComponentNode]] = defaultdict(list)

    for record in records:
        if record.parent_id is None:
            root_records.append(record)
        elif record.parent_id == record.id:
            raise StructuralCycleException([record.id, record.id])
        elif record.parent_id not in by_id:
            logger.warning(
                f"Line {record.id} references missing parent {record.parent_id}; treating it as a root"
            )
            orphans.append(OrphanReference(record.id, record.parent_id))
            orphan_records.append(record)
        else:
            children_by_parent[record.parent_id].append(record)

    _check_sibling_sequences(None, root_records)
    for parent_id, siblings in children_by_parent.items():
        _check_sibling_sequences(parent_id, siblings)

    nodes: List[BOMComponentNode] = []
    parents: List[Optional[int]] = []
    children: List[List[int]] = []
    index: Dict[str, int] = {}

    def append(record: BOMComponentNode, level: int, parent: Optional[int]) -> int:
        if len(nodes) >= cfg.max_traversal_nodes:
            raise TraversalBudgetExceededException("nodes", cfg.max_traversal_nodes)
        position = len(nodes)
        nodes.append(record if record.level == level else replace(record, level=level))
        parents.append(parent)
        children.append([])
        index[record.id] = position
        return position

    queue: deque = deque()
    roots: List[int] = []
    for record in sorted(root_records + orphan_records, key=_by_sequence):
        position = append(record, cfg.root_level, None)
        roots.append(position)
        queue.append(position)

    while queue:
        position = queue.popleft()
        node = nodes[position]
        kids = children_by_parent.get(node.id)
        if not kids:
            continue
        if node.component_type.is_leaf_only:
            raise BusinessRuleViolationException(
                "LEAF_COMPONENT_HAS_CHILDREN",
                f"{node.component_type.value} line '{node.id}' cannot own child lines",
                node_id=node.id,
            )
        depth = node.level - cfg.root_level + 1
        if depth > cfg.max_traversal_depth:
            raise TraversalBudgetExceededException(
                "depth", cfg.max_traversal_depth, [nodes[i].id for i in _chain(parents, position)]
            )
        for kid in sorted(kids, key=_by_sequence):
            child = append(kid, node.level + 1, position)
            children[position].append(child)
            queue.append(child)

    if len(nodes) < len(records):
        unreached = next(r for r in records if r.id not in index)
        raise StructuralCycleException(_find_cycle(unreached, by_id))

    tree_nodes = tuple(nodes)
    in_scope = [n for n in tree_nodes if rollup.in_scope(n, include_inactive_items)]
    tree = BOMTree(
        nodes=tree_nodes,
        children=tuple(tuple(c) for c in children),
        parents=tuple(parents),
        roots=tuple(roots),
        orphans=tuple(orphans),
        total_items=len(in_scope),
        total_cost=rollup.grand_total(in_scope, True, cfg),
        max_level=max((n.level for n in tree_nodes), default=cfg.root_level),
        include_inactive_items=include_inactive_items,
        _index=index,
    )
    logger.debug(
        f"Built BOM tree: {len(tree_nodes)} lines, {len(roots)} roots, "
        f"max level {tree.max_level}, total cost {tree.total_cost}"
    )
    return tree


def _chain(parents: Sequence[Optional[int]], position: int) -> List[int]:
    chain = [position]
    while parents[chain[-1]] is not None:
        chain.append(parents[chain[-1]])
    return list(reversed(chain))
