"""
BOM Domain - Filter options shared by statistics, diff and tree views.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from bomgraph.config.engine import EngineSettings
from bomgraph.domain.shared.value_objects import ComponentType, CostRange, LevelRange

from . import rollup
from .entities import BOMComponentNode


@dataclass(frozen=True)
class FilterOptions:
    """
    Population filter. Every criterion left at its default lets all lines
    through, except inactive lines which are excluded unless asked for.
    """

    include_inactive_items: bool = False
    include_optional_items: bool = True
    component_type_filter: Optional[FrozenSet[ComponentType]] = None  # None means all types
    level_range: LevelRange = field(default_factory=LevelRange)
    cost_range: CostRange = field(default_factory=CostRange)
    process_step: Optional[str] = None

    def __post_init__(self):
        if self.component_type_filter is not None:
            object.__setattr__(
                self,
                "component_type_filter",
                frozenset(ComponentType(t) for t in self.component_type_filter),
            )

    def matches(self, node: BOMComponentNode, settings: Optional[EngineSettings] = None) -> bool:
        if not rollup.in_scope(node, self.include_inactive_items):
            return False
        if not self.include_optional_items and node.is_optional:
            return False
        if self.component_type_filter is not None and node.component_type not in self.component_type_filter:
            return False
        if not self.level_range.contains(node.level):
            return False
        if self.process_step is not None and node.process_step != self.process_step:
            return False
        if not self.cost_range.is_unbounded and not self.cost_range.contains(rollup.total_cost(node, settings)):
            return False
        return True

    def apply(
        self,
        nodes: Iterable[BOMComponentNode],
        settings: Optional[EngineSettings] = None,
    ) -> List[BOMComponentNode]:
        return [n for n in nodes if self.matches(n, settings)]


DEFAULT_FILTER = FilterOptions()
