"""
BOM query service.

Read-only use cases over the Node Store: tree view with statistics, version
comparison and structure validation reports.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.bom.cycle_guard import AttachRequest, ProductGraph, can_attach
from bomgraph.domain.bom.diff import DiffResult, diff
from bomgraph.domain.bom.entities import BOMComponentNode, BOMHeader
from bomgraph.domain.bom.filters import DEFAULT_FILTER, FilterOptions
from bomgraph.domain.bom.repositories import NodeStore
from bomgraph.domain.bom.statistics import BOMStatistics, aggregate
from bomgraph.domain.bom.tree import BOMTree, build_tree
from bomgraph.domain.shared.exceptions import DomainException

logger = logging.getLogger(__name__)

# The tree still builds with these, so graph checks can run
TOLERATED_ISSUES = frozenset({"orphan", "incorrect_level"})


@dataclass(frozen=True)
class BOMTreeView:
    header: BOMHeader
    tree: BOMTree
    statistics: BOMStatistics


@dataclass(frozen=True)
class StructureIssue:
    type: str
    item_id: Optional[str]
    message: str


@dataclass(frozen=True)
class StructureReport:
    bom_id: str
    items_count: int
    issues: Tuple[StructureIssue, ...]

    @property
    def valid(self) -> bool:
        return not self.issues


class BOMQueryService:
    """Read side of the BOM engine."""

    def __init__(self, store: NodeStore, settings: Optional[EngineSettings] = None):
        self.store = store
        self.settings = resolve(settings)

    def product_graph(self) -> ProductGraph:
        return ProductGraph(lookup=self.store.list_product_graph_edges)

    def get_tree(self, bom_id: str, options: Optional[FilterOptions] = None) -> BOMTreeView:
        options = options or DEFAULT_FILTER
        header = self.store.get_bom(bom_id)
        tree = build_tree(
            self.store.list_items(bom_id),
            include_inactive_items=options.include_inactive_items,
            settings=self.settings,
        )
        return BOMTreeView(header, tree, aggregate(tree, options, self.settings))

    def compare(
        self,
        source_bom_id: str,
        target_bom_id: str,
        options: Optional[FilterOptions] = None,
        *,
        ignore_fields: Iterable[str] = (),
        minor_cost_threshold: Optional[Decimal] = None,
    ) -> DiffResult:
        logger.info(f"Comparing BOM {source_bom_id} against {target_bom_id}")
        return diff(
            self.store.list_items(source_bom_id),
            self.store.list_items(target_bom_id),
            options,
            ignore_fields=ignore_fields,
            minor_cost_threshold=minor_cost_threshold,
            graph=self.product_graph(),
            settings=self.settings,
        )

    def validate_structure(self, bom_id: str) -> StructureReport:
        """
        Validate BOM structure integrity.

        Checks:
        - No duplicate line ids
        - No circular references, in the lines or through sub-assembly BOMs
        - All parent references valid
        - Stored levels match the hierarchy
        - Sibling sequences unique, leaf-only lines childless
        """
        self.store.get_bom(bom_id)
        items = self.store.list_items(bom_id)
        issues = _record_issues(items, self.settings.root_level)

        if all(i.type in TOLERATED_ISSUES for i in issues):
            issues.extend(self._graph_issues(items))

        logger.info(f"BOM {bom_id} validation: {len(issues)} issues found")
        return StructureReport(bom_id, len(items), tuple(issues))

    def _graph_issues(self, items: List[BOMComponentNode]) -> List[StructureIssue]:
        try:
            tree = build_tree(items, include_inactive_items=True, settings=self.settings)
        except DomainException as exc:
            return [StructureIssue(exc.code.lower(), None, exc.message)]

        graph = self.product_graph()
        issues = []
        for node in tree.preorder():
            if not node.is_active:
                continue
            request = AttachRequest(node.product_id, node.parent_id, node.component_id)
            result = can_attach(request, tree, graph if node.component_type.has_own_bom else None, self.settings)
            if not result.ok:
                issues.append(StructureIssue("circular_reference", node.id, result.error.message))
        return issues


def _expected_levels(
    items: List[BOMComponentNode],
    by_id: Dict[str, BOMComponentNode],
    cyclic: set,
    root_level: int,
) -> Dict[str, int]:
    """Level of every acyclic line, walking each parent chain once."""
    expected: Dict[str, int] = {}
    for item in items:
        if item.id in cyclic:
            continue
        chain = []
        current: Optional[BOMComponentNode] = item
        while current is not None and current.id not in expected:
            chain.append(current)
            current = by_id.get(current.parent_id) if current.parent_id else None
        level = root_level - 1 if current is None else expected[current.id]
        for node in reversed(chain):
            level += 1
            expected[node.id] = level
    return expected


def _record_issues(items: List[BOMComponentNode], root_level: int) -> List[StructureIssue]:
    issues: List[StructureIssue] = []
    by_id: Dict[str, BOMComponentNode] = {}
    for item in items:
        if item.id in by_id:
            issues.append(StructureIssue("duplicate_id", item.id, f"Line id {item.id} is used more than once"))
        by_id[item.id] = item

    # Check parent references and cycles
    cyclic = set()
    for item in items:
        visited = set()
        current = item
        while current.parent_id is not None and current.id not in visited:
            visited.add(current.id)
            parent = by_id.get(current.parent_id)
            if parent is None:
                break
            current = parent
        else:
            if current.parent_id is not None:
                cyclic.add(item.id)
                issues.append(StructureIssue(
                    "circular_reference", item.id, f"Circular reference detected for line {item.id}"
                ))
        if item.parent_id is not None and item.parent_id not in by_id:
            issues.append(StructureIssue(
                "orphan", item.id, f"Parent line {item.parent_id} does not exist"
            ))

    # Check levels
    expected = _expected_levels(items, by_id, cyclic, root_level)
    for item in items:
        if item.id in cyclic:
            continue
        if item.level != expected[item.id]:
            issues.append(StructureIssue(
                "incorrect_level", item.id, f"Level mismatch: expected {expected[item.id]}, got {item.level}"
            ))

    # Check siblings
    siblings: Dict[Optional[str], List[BOMComponentNode]] = defaultdict(list)
    for item in items:
        siblings[item.parent_id].append(item)
    for parent_id, group in siblings.items():
        for sequence, count in Counter(n.sequence for n in group).items():
            if count > 1:
                issues.append(StructureIssue(
                    "duplicate_sequence", parent_id, f"Sequence {sequence} is used {count} times under {parent_id}"
                ))
        parent = by_id.get(parent_id) if parent_id else None
        if parent is not None and parent.component_type.is_leaf_only:
            issues.append(StructureIssue(
                "leaf_has_children", parent.id,
                f"{parent.component_type.value} line {parent.id} cannot own child lines",
            ))
    return issues
