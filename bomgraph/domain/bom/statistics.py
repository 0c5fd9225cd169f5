"""
BOM Domain - Statistics Aggregator.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Optional, Union

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.value_objects import ComponentType, quantize

from . import rollup
from .entities import BOMComponentNode
from .filters import DEFAULT_FILTER, FilterOptions
from .tree import BOMTree, build_tree

UNSPECIFIED_PROCESS_STEP = "UNSPECIFIED"


@dataclass(frozen=True)
class BOMStatistics:
    total_items: int = 0
    active_items: int = 0
    component_type_count: Dict[ComponentType, int] = field(default_factory=dict)
    process_step_count: Dict[str, int] = field(default_factory=dict)
    level_count: Dict[int, int] = field(default_factory=dict)
    cost_by_level: Dict[int, Decimal] = field(default_factory=dict)
    optional_items_count: int = 0
    critical_items_count: int = 0
    total_cost: Decimal = Decimal(0)
    average_cost_per_item: Decimal = Decimal(0)
    max_level: int = 0


def aggregate(
    nodes: Union[BOMTree, Iterable[BOMComponentNode]],
    options: Optional[FilterOptions] = None,
    settings: Optional[EngineSettings] = None,
) -> BOMStatistics:
    """
    Summarize the filtered population in a single pass.

    Plain iterables are built into a tree first, inactive lines kept, so
    levels always come from the hierarchy and never from the stored value.
    Structural errors from the Tree Builder propagate.
    """
    cfg = resolve(settings)
    options = options or DEFAULT_FILTER
    if not isinstance(nodes, BOMTree):
        nodes = build_tree(nodes, include_inactive_items=True, settings=cfg)
    population = nodes.nodes

    types: Counter = Counter()
    steps: Counter = Counter()
    levels: Counter = Counter()
    cost_by_level: Dict[int, Decimal] = {}
    total_items = active_items = optional_count = critical_count = 0
    total_cost = Decimal(0)
    max_level: Optional[int] = None

    for node in population:
        if not options.matches(node, cfg):
            continue
        cost = rollup.total_cost(node, cfg)
        total_items += 1
        types[node.component_type] += 1
        steps[node.process_step or UNSPECIFIED_PROCESS_STEP] += 1
        levels[node.level] += 1
        max_level = node.level if max_level is None else max(max_level, node.level)
        if node.is_optional:
            optional_count += 1
        if not node.is_optional or cost > cfg.critical_cost_threshold:
            critical_count += 1
        if node.is_active:
            active_items += 1
            total_cost += cost
        if rollup.in_scope(node, options.include_inactive_items):
            cost_by_level[node.level] = cost_by_level.get(node.level, Decimal(0)) + cost

    average = (
        quantize(total_cost / active_items, cfg.money_decimal_places)
        if active_items else Decimal(0)
    )
    return BOMStatistics(
        total_items=total_items,
        active_items=active_items,
        component_type_count=dict(types),
        process_step_count=dict(steps),
        level_count=dict(sorted(levels.items())),
        cost_by_level=dict(sorted(cost_by_level.items())),
        optional_items_count=optional_count,
        critical_items_count=critical_count,
        total_cost=total_cost,
        average_cost_per_item=average,
        max_level=max_level if max_level is not None else cfg.root_level,
    )
