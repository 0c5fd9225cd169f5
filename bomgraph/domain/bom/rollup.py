"""
BOM Domain - Roll-up calculations.

Scrap is applied per line: each line's actual quantity only reflects its own
scrap rate. ``extended_quantity`` is the separate, compounding requirement
along the ancestor chain.

All amounts are Decimal and quantized on every derived value, so sums over
large trees do not drift.
"""

from __future__ import annotations
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.value_objects import quantize

if TYPE_CHECKING:
    from .entities import BOMComponentNode
    from .tree import BOMTree

HUNDRED = Decimal(100)
ZERO = Decimal(0)


def scrap_adjusted(quantity: Decimal, scrap_rate: Decimal, places: int) -> Decimal:
    return quantize(quantity * (1 + scrap_rate / HUNDRED), places)


def actual_quantity(node: BOMComponentNode, settings: Optional[EngineSettings] = None) -> Decimal:
    cfg = resolve(settings)
    return scrap_adjusted(node.quantity, node.scrap_rate, cfg.quantity_decimal_places)


def total_cost(node: BOMComponentNode, settings: Optional[EngineSettings] = None) -> Decimal:
    cfg = resolve(settings)
    return quantize(actual_quantity(node, cfg) * node.unit_cost, cfg.money_decimal_places)


def in_scope(node: BOMComponentNode, include_inactive_items: bool = False) -> bool:
    return include_inactive_items or node.is_active


def grand_total(
    nodes: Iterable[BOMComponentNode],
    include_inactive_items: bool = False,
    settings: Optional[EngineSettings] = None,
) -> Decimal:
    cfg = resolve(settings)
    return sum(
        (total_cost(n, cfg) for n in nodes if in_scope(n, include_inactive_items)),
        ZERO,
    )


def cost_by_level(
    nodes: Iterable[BOMComponentNode],
    include_inactive_items: bool = False,
    settings: Optional[EngineSettings] = None,
) -> Dict[int, Decimal]:
    """
    Sum of line cost per level.

    Levels are read from the nodes as given; pass nodes from a built tree so
    they reflect the actual hierarchy.
    """
    cfg = resolve(settings)
    result: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    for node in nodes:
        if in_scope(node, include_inactive_items):
            result[node.level] += total_cost(node, cfg)
    return dict(sorted(result.items()))


def extended_quantity(
    tree: BOMTree,
    node_id: str,
    root_quantity: Decimal = Decimal(1),
    settings: Optional[EngineSettings] = None,
) -> Decimal:
    """
    Quantity of a line needed to build ``root_quantity`` of the owning product.

    Example: if A contains 2 of B, and B contains 3 of C, then C needed
    for 1 A is 2 * 3 = 6 (each factor scrap-adjusted).
    """
    cfg = resolve(settings)
    total = root_quantity
    for node in (*tree.ancestors_of(node_id), tree.get(node_id)):
        total *= actual_quantity(node, cfg)
    return quantize(total, cfg.quantity_decimal_places)


def subtree_costs(
    tree: BOMTree,
    include_inactive_items: bool = False,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Decimal]:
    """Cost of every line plus everything below it, keyed by line id."""
    cfg = resolve(settings)
    totals: Dict[str, Decimal] = {}
    # reverse pre-order visits children before their parent
    for index in reversed(tree.preorder_indices()):
        node = tree.nodes[index]
        own = total_cost(node, cfg) if in_scope(node, include_inactive_items) else ZERO
        totals[node.id] = own + sum(
            (totals[tree.nodes[c].id] for c in tree.children[index]), ZERO
        )
    return totals
