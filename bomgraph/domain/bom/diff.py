"""
BOM Domain - Diff Engine.

Compares two BOM snapshots. Lines are matched by where they sit (the
component ids of their ancestors) and what they are (their component id);
several lines sharing one key are paired in tree order.
"""

from __future__ import annotations
from collections import defaultdict, deque
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
import logging
from typing import Any, Deque, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.exceptions import InvalidFieldException
from bomgraph.domain.shared.value_objects import quantize, to_decimal

from . import rollup
from .cycle_guard import ProductGraph, check_structure
from .entities import BOMComponentNode
from .filters import DEFAULT_FILTER, FilterOptions
from .tree import BOMTree, build_tree

logger = logging.getLogger(__name__)

# Compared in this order; the first changed one decides the difference type
COMPARED_FIELDS = (
    "quantity",
    "unit_cost",
    "is_optional",
    "scrap_rate",
    "position",
    "process_step",
)
NUMERIC_FIELDS = frozenset({"quantity", "unit_cost", "scrap_rate"})

MatchKey = Tuple[Tuple[str, ...], str]


class DifferenceType(str, Enum):
    ADDED = "ADDED"
    REMOVED = "REMOVED"
    QUANTITY_CHANGED = "QUANTITY_CHANGED"
    COST_CHANGED = "COST_CHANGED"
    PROPERTIES_CHANGED = "PROPERTIES_CHANGED"


class Significance(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ChangeDirection(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    CHANGE = "CHANGE"


class StructuralChangeType(str, Enum):
    SEQUENCE_CHANGE = "SEQUENCE_CHANGE"


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any
    direction: ChangeDirection
    percentage_change: Optional[Decimal] = None  # Numeric fields only


@dataclass(frozen=True)
class Difference:
    type: DifferenceType
    component_id: str
    component_path: Tuple[str, ...]
    source: Optional[BOMComponentNode]
    target: Optional[BOMComponentNode]
    changes: Tuple[FieldChange, ...] = ()
    cost_impact: Decimal = Decimal(0)
    significance: Significance = Significance.LOW

    @property
    def node(self) -> BOMComponentNode:
        return self.target if self.target is not None else self.source


@dataclass(frozen=True)
class StructuralChange:
    type: StructuralChangeType
    component_id: str
    component_path: Tuple[str, ...]
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class DiffStatistics:
    total_items: int = 0
    added_items: int = 0
    removed_items: int = 0
    modified_items: int = 0
    unchanged_items: int = 0
    source_total_cost: Decimal = Decimal(0)
    target_total_cost: Decimal = Decimal(0)
    cost_difference: Decimal = Decimal(0)
    cost_change_percentage: Decimal = Decimal(0)
    major_changes: int = 0


@dataclass(frozen=True)
class DiffResult:
    differences: Tuple[Difference, ...]
    structural_changes: Tuple[StructuralChange, ...]
    statistics: DiffStatistics

    def of_type(self, kind: DifferenceType) -> List[Difference]:
        return [d for d in self.differences if d.type is kind]

    @property
    def added(self) -> List[Difference]:
        return self.of_type(DifferenceType.ADDED)

    @property
    def removed(self) -> List[Difference]:
        return self.of_type(DifferenceType.REMOVED)

    @property
    def modified(self) -> List[Difference]:
        return [d for d in self.differences if d.type not in (DifferenceType.ADDED, DifferenceType.REMOVED)]

    @property
    def has_changes(self) -> bool:
        return bool(self.differences or self.structural_changes)


# =============================================================================
# HELPERS
# =============================================================================

def _percentage(old: Decimal, new: Decimal) -> Decimal:
    if old == 0:
        return Decimal(0)
    return quantize((new - old) / old * 100, 2)


def _significance(cost_impact: Decimal, removal: bool, cfg: EngineSettings) -> Significance:
    impact = abs(cost_impact)
    if removal and impact > cfg.significance_removal_high_threshold:
        return Significance.HIGH
    if impact > cfg.significance_high_threshold:
        return Significance.HIGH
    if impact > cfg.significance_medium_threshold:
        return Significance.MEDIUM
    return Significance.LOW


def _field_changes(
    source: BOMComponentNode,
    target: BOMComponentNode,
    ignore_fields: Iterable[str],
    minor_cost_threshold: Optional[Decimal],
) -> List[FieldChange]:
    changes = []
    for name in COMPARED_FIELDS:
        if name in ignore_fields:
            continue
        old, new = getattr(source, name), getattr(target, name)
        if old == new:
            continue
        if name == "unit_cost" and minor_cost_threshold is not None and abs(new - old) <= minor_cost_threshold:
            continue
        if name in NUMERIC_FIELDS:
            direction = ChangeDirection.INCREASE if new > old else ChangeDirection.DECREASE
            changes.append(FieldChange(name, old, new, direction, _percentage(old, new)))
        else:
            changes.append(FieldChange(name, old, new, ChangeDirection.CHANGE))
    return changes


def _classify(changes: Sequence[FieldChange]) -> DifferenceType:
    names = {c.field for c in changes}
    if "quantity" in names:
        return DifferenceType.QUANTITY_CHANGED
    if "unit_cost" in names:
        return DifferenceType.COST_CHANGED
    return DifferenceType.PROPERTIES_CHANGED


def _snapshot(
    source: Union[BOMTree, Iterable[BOMComponentNode]],
    options: FilterOptions,
    cfg: EngineSettings,
) -> BOMTree:
    if isinstance(source, BOMTree):
        source = source.nodes
    return build_tree(source, include_inactive_items=options.include_inactive_items, settings=cfg)


def _population(tree: BOMTree, options: FilterOptions, cfg: EngineSettings) -> List[Tuple[MatchKey, BOMComponentNode]]:
    # paths come from the full tree so filtering never shifts a line's key
    return [
        ((tree.component_path(n.id), n.component_id), n)
        for n in tree.preorder()
        if options.matches(n, cfg)
    ]


# =============================================================================
# DIFF
# =============================================================================

def diff(
    source: Union[BOMTree, Iterable[BOMComponentNode]],
    target: Union[BOMTree, Iterable[BOMComponentNode]],
    options: Optional[FilterOptions] = None,
    *,
    ignore_fields: Iterable[str] = (),
    minor_cost_threshold: Optional[Decimal] = None,
    graph: Optional[ProductGraph] = None,
    settings: Optional[EngineSettings] = None,
) -> DiffResult:
    """
    Classified difference from ``source`` to ``target``.

    Differences are ordered: additions in target tree order, then removals
    in source tree order, then modifications in source tree order.

    Raises:
        StructuralCycleException, TraversalBudgetExceededException,
        BusinessRuleViolationException, InvalidFieldException: either
            snapshot is not a valid tree.
    """
    cfg = resolve(settings)
    options = options or DEFAULT_FILTER
    ignore_fields = frozenset(ignore_fields)
    if minor_cost_threshold is not None:
        minor_cost_threshold = to_decimal(minor_cost_threshold, "minor_cost_threshold")
        if minor_cost_threshold < 0:
            raise InvalidFieldException(
                "Minor cost threshold cannot be negative", "minor_cost_threshold", minor_cost_threshold
            )

    source_tree = _snapshot(source, options, cfg)
    target_tree = _snapshot(target, options, cfg)
    check_structure(source_tree, graph, cfg)
    check_structure(target_tree, graph, cfg)

    source_items = _population(source_tree, options, cfg)
    target_items = _population(target_tree, options, cfg)

    waiting: Dict[MatchKey, Deque[BOMComponentNode]] = defaultdict(deque)
    for key, node in target_items:
        waiting[key].append(node)

    removed: List[Difference] = []
    modified: List[Difference] = []
    structural: List[StructuralChange] = []
    matched_targets = set()
    unchanged = 0

    for key, old in source_items:
        path, component_id = key
        if not waiting[key]:
            impact = -rollup.total_cost(old, cfg)
            removed.append(Difference(
                DifferenceType.REMOVED, component_id, path, old, None,
                cost_impact=impact, significance=_significance(impact, True, cfg),
            ))
            continue

        new = waiting[key].popleft()
        matched_targets.add(new.id)
        if old.sequence != new.sequence:
            structural.append(StructuralChange(
                StructuralChangeType.SEQUENCE_CHANGE, component_id, path, old.sequence, new.sequence,
            ))
        changes = _field_changes(old, new, ignore_fields, minor_cost_threshold)
        if not changes:
            unchanged += 1
            continue
        impact = rollup.total_cost(new, cfg) - rollup.total_cost(old, cfg)
        modified.append(Difference(
            _classify(changes), component_id, path, old, new, tuple(changes),
            cost_impact=impact, significance=_significance(impact, False, cfg),
        ))

    added: List[Difference] = []
    for (path, component_id), new in target_items:
        if new.id in matched_targets:
            continue
        impact = rollup.total_cost(new, cfg)
        added.append(Difference(
            DifferenceType.ADDED, component_id, path, None, new,
            cost_impact=impact, significance=_significance(impact, False, cfg),
        ))

    differences = tuple(added + removed + modified)
    source_total = rollup.grand_total((n for _, n in source_items), True, cfg)
    target_total = rollup.grand_total((n for _, n in target_items), True, cfg)
    cost_difference = target_total - source_total

    statistics = DiffStatistics(
        total_items=len(added) + len(removed) + len(modified) + unchanged,
        added_items=len(added),
        removed_items=len(removed),
        modified_items=len(modified),
        unchanged_items=unchanged,
        source_total_cost=source_total,
        target_total_cost=target_total,
        cost_difference=cost_difference,
        cost_change_percentage=_percentage(source_total, target_total),
        major_changes=sum(1 for d in differences if d.significance is Significance.HIGH),
    )
    logger.info(
        f"BOM diff: {statistics.added_items} added, {statistics.removed_items} removed, "
        f"{statistics.modified_items} modified, {statistics.unchanged_items} unchanged, "
        f"cost difference {cost_difference}"
    )
    return DiffResult(differences, tuple(structural), statistics)
