"""
BOM command service.

Each command loads a fresh snapshot, runs the aggregate command and commits
with the snapshot's revision. A concurrent writer makes the commit fail with
VersionConflictException; the caller decides whether to retry.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Any, Callable, Optional, Tuple
from uuid import uuid4

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.bom.aggregates import BOMStructure
from bomgraph.domain.bom.cycle_guard import ProductGraph
from bomgraph.domain.bom.entities import BOMComponentNode, BOMHeader
from bomgraph.domain.bom.filters import FilterOptions
from bomgraph.domain.bom.repositories import NodeStore
from bomgraph.domain.bom.statistics import BOMStatistics, aggregate
from bomgraph.domain.bom.tree import build_tree
from bomgraph.domain.shared.events import DomainEvent
from bomgraph.domain.shared.exceptions import BusinessRuleViolationException, InvalidFieldException
from bomgraph.domain.shared.value_objects import ComponentType, quantize, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    header: BOMHeader
    events: Tuple[DomainEvent, ...]
    item: Optional[BOMComponentNode] = None
    item_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CopyResult:
    """Outcome of copying one BOM into a new BOM version."""

    header: BOMHeader
    events: Tuple[DomainEvent, ...]
    copied_ids: Tuple[str, ...]
    skipped_ids: Tuple[str, ...]
    statistics: BOMStatistics
    source_total_cost: Decimal
    adjusted_items_count: int = 0
    warnings: Tuple[str, ...] = ()

    @property
    def cost_difference(self) -> Decimal:
        return self.statistics.total_cost - self.source_total_cost

    @property
    def cost_change_percentage(self) -> Decimal:
        if self.source_total_cost == 0:
            return Decimal(0)
        return quantize(self.cost_difference / self.source_total_cost * 100, 2)


class BOMCommandService:
    """Write side of the BOM engine."""

    def __init__(self, store: NodeStore, settings: Optional[EngineSettings] = None):
        self.store = store
        self.settings = resolve(settings)

    def load(self, bom_id: str) -> BOMStructure:
        header = self.store.get_bom(bom_id)
        return BOMStructure(header, self.store.list_items(bom_id), settings=self.settings)

    def _graph(self) -> ProductGraph:
        return ProductGraph(lookup=self.store.list_product_graph_edges)

    def _execute(
        self,
        bom_id: str,
        command: Callable[[BOMStructure], Any],
        graph: Optional[ProductGraph] = None,
    ) -> Tuple[BOMHeader, Any, Tuple[DomainEvent, ...]]:
        structure = self.load(bom_id)
        outcome = command(structure)
        events = tuple(structure.clear_domain_events())
        if not events:
            return structure.header, outcome, events
        structure.validate(graph if graph is not None else self._graph())
        header = self.store.commit_items(bom_id, structure.items, structure.header.revision)
        for event in events:
            logger.info(f"{event.event_type} on BOM {bom_id} (revision {header.revision})")
        return header, outcome, events

    def attach_component(
        self,
        bom_id: str,
        component_id: str,
        component_type: ComponentType,
        parent_id: Optional[str] = None,
        **fields: Any,
    ) -> CommandResult:
        graph = self._graph()
        header, item, events = self._execute(
            bom_id,
            lambda s: s.attach_component(component_id, component_type, parent_id, graph=graph, **fields),
            graph,
        )
        return CommandResult(header, events, item=item, item_ids=(item.id,))

    def update_component(self, bom_id: str, item_id: str, **changes: Any) -> CommandResult:
        header, item, events = self._execute(bom_id, lambda s: s.update_component(item_id, **changes))
        return CommandResult(header, events, item=item, item_ids=(item.id,))

    def deactivate_component(self, bom_id: str, item_id: str, include_descendants: bool = False) -> CommandResult:
        header, ids, events = self._execute(
            bom_id, lambda s: s.deactivate_component(item_id, include_descendants)
        )
        return CommandResult(header, events, item_ids=ids)

    def move_component(
        self,
        bom_id: str,
        item_id: str,
        new_parent_id: Optional[str],
        sequence: Optional[int] = None,
    ) -> CommandResult:
        graph = self._graph()
        header, item, events = self._execute(
            bom_id,
            lambda s: s.move_component(item_id, new_parent_id, sequence, graph=graph),
            graph,
        )
        return CommandResult(header, events, item=item, item_ids=(item.id,))

    def copy_bom(
        self,
        source_bom_id: str,
        target_product_id: str,
        new_version: str,
        options: Optional[FilterOptions] = None,
        *,
        cost_adjustment_rate: Optional[Decimal] = None,
        bom_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CopyResult:
        """
        Copy the lines of one BOM into a new active BOM of ``target_product_id``.

        The new BOM replaces the target product's active BOM. Nothing is
        stored if the copy would close a structural cycle.
        """
        source_header = self.store.get_bom(source_bom_id)
        if not source_header.is_active:
            logger.warning(f"Copying from inactive BOM {source_bom_id}")
        if not new_version or not new_version.strip():
            raise InvalidFieldException("Version is required", "new_version", new_version)
        if any(h.version == new_version for h in self.store.list_boms(target_product_id)):
            raise BusinessRuleViolationException(
                "DUPLICATE_VERSION",
                f"Product {target_product_id} already has BOM version {new_version}",
                product_id=target_product_id,
                version=new_version,
            )

        source = build_tree(self.store.list_items(source_bom_id), include_inactive_items=True, settings=self.settings)
        header = BOMHeader(
            id=bom_id or uuid4().hex,
            product_id=target_product_id,
            version=new_version,
            description=description if description is not None else source_header.description,
        )
        structure = BOMStructure(header, settings=self.settings)
        copied, skipped = structure.copy_from(source, options, cost_adjustment_rate, graph=self._graph())
        events = tuple(structure.clear_domain_events())
        header = self.store.add_bom(header, copied)

        adjusted = 0
        if cost_adjustment_rate is not None and to_decimal(cost_adjustment_rate, "cost_adjustment_rate") != 0:
            adjusted = sum(1 for n in copied if n.unit_cost != 0)
        warnings = []
        if skipped:
            warnings.append(f"{len(skipped)} lines were filtered out of the copy")
        if adjusted:
            warnings.append(f"Unit costs of {adjusted} lines adjusted by {cost_adjustment_rate}%")
        for event in events:
            logger.info(f"{event.event_type} on BOM {header.id} from BOM {source_bom_id}")

        return CopyResult(
            header=header,
            events=events,
            copied_ids=tuple(n.id for n in copied),
            skipped_ids=tuple(n.id for n in skipped),
            statistics=aggregate(copied, settings=self.settings),
            source_total_cost=aggregate(source, settings=self.settings).total_cost,
            adjusted_items_count=adjusted,
            warnings=tuple(warnings),
        )
