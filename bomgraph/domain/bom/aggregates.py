"""
BOM Domain - Aggregates.

BOMStructure is the aggregate root that manages the component lines of one
BOM version. Every command validates against a freshly built tree, so the
stored lines never drift from what the Tree Builder accepts.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from bomgraph.config.engine import EngineSettings, resolve
from bomgraph.domain.shared.base_aggregate import AggregateRoot
from bomgraph.domain.shared.events import (
    BOMCopied,
    BOMItemAttached,
    BOMItemDeactivated,
    BOMItemMoved,
    BOMItemUpdated,
)
from bomgraph.domain.shared.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidFieldException,
    StructuralCycleException,
)
from bomgraph.domain.shared.value_objects import ComponentType, to_decimal

from .cycle_guard import AttachRequest, ProductGraph, can_attach, check_structure
from .entities import MUTABLE_FIELDS, BOMComponentNode, BOMHeader
from .filters import DEFAULT_FILTER, FilterOptions
from .tree import BOMTree, build_tree


@dataclass
class BOMStructure(AggregateRoot):
    """
    Aggregate root for the lines of one BOM.

    Key responsibilities:
    - Attach, update, deactivate and move component lines
    - Fill a new BOM with lines copied from another one
    - Keep sibling sequences unique and leaf-only components childless
    - Prevent structural cycles through the Cycle Guard
    """

    header: BOMHeader
    _items: List[BOMComponentNode] = field(default_factory=list)
    settings: Optional[EngineSettings] = field(default=None, repr=False)

    def __post_init__(self):
        self._items = list(self._items)
        for item in self._items:
            if item.bom_id != self.header.id:
                raise InvalidFieldException(
                    f"Line {item.id} belongs to BOM {item.bom_id}, not {self.header.id}",
                    "bom_id",
                    item.bom_id,
                )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def bom_id(self) -> str:
        return self.header.id

    @property
    def product_id(self) -> str:
        return self.header.product_id

    @property
    def items(self) -> Tuple[BOMComponentNode, ...]:
        return tuple(self._items)

    def get_item(self, item_id: str) -> BOMComponentNode:
        for item in self._items:
            if item.id == item_id:
                return item
        raise EntityNotFoundException("BOMComponentNode", item_id)

    def snapshot_tree(self) -> BOMTree:
        """Tree over every line, inactive ones included."""
        return build_tree(self._items, include_inactive_items=True, settings=self.settings)

    def validate(self, graph: Optional[ProductGraph] = None) -> BOMTree:
        """
        Re-check the whole BOM before it is committed.

        Builds the tree over every line and runs the Cycle Guard on each of
        them against this BOM's product, through ``graph`` when given.
        Returns the validated tree.
        """
        tree = self.snapshot_tree()
        check_structure(tree, graph, resolve(self.settings))
        return tree

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def attach_component(
        self,
        component_id: str,
        component_type: ComponentType,
        parent_id: Optional[str] = None,
        quantity: Decimal = Decimal("1"),
        scrap_rate: Decimal = Decimal("0"),
        unit_cost: Decimal = Decimal("0"),
        unit: str = "EA",
        is_optional: bool = False,
        position: Optional[str] = None,
        process_step: Optional[str] = None,
        remarks: Optional[str] = None,
        sequence: Optional[int] = None,
        graph: Optional[ProductGraph] = None,
        item_id: Optional[str] = None,
    ) -> BOMComponentNode:
        """
        Attach a component line under ``parent_id`` (a root line when None).

        Validates:
        - BOM is active
        - Parent exists, is active and may own children
        - No structural cycle, locally or through ``graph``
        - Component is not already attached under this parent
        - Sequence is free among the siblings
        """
        self._check_active()
        cfg = resolve(self.settings)
        tree = self.snapshot_tree()

        level = cfg.root_level
        if parent_id is not None:
            parent = tree.get(parent_id)
            self._check_parent(parent)
            level = parent.level + 1

        result = can_attach(AttachRequest(self.product_id, parent_id, component_id), tree, graph, cfg)
        if not result.ok:
            raise result.error

        siblings = [n for n in tree.children_of(parent_id) if n.is_active]
        if any(n.component_id == component_id for n in siblings):
            raise BusinessRuleViolationException(
                "DUPLICATE_COMPONENT",
                f"Component {component_id} already exists under parent {parent_id}",
                component_id=component_id,
            )

        node = BOMComponentNode(
            id=item_id or uuid4().hex,
            bom_id=self.bom_id,
            product_id=self.product_id,
            component_id=component_id,
            component_type=component_type,
            parent_id=parent_id,
            level=level,
            sequence=self._resolve_sequence(tree, parent_id, sequence),
            quantity=quantity,
            scrap_rate=scrap_rate,
            unit_cost=unit_cost,
            unit=unit,
            is_optional=is_optional,
            position=position,
            process_step=process_step,
            remarks=remarks,
        )
        if node.id in tree:
            raise InvalidFieldException(f"Duplicate component line id '{node.id}'", "id", node.id)

        self._items.append(node)
        self.add_domain_event(BOMItemAttached(
            bom_id=self.bom_id,
            item_id=node.id,
            parent_id=parent_id,
            component_id=component_id,
            quantity=str(node.quantity),
        ))
        return node

    def update_component(self, item_id: str, **changes: Any) -> BOMComponentNode:
        """Change mutable fields of an active line. Returns the new line."""
        self._check_active()
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise InvalidFieldException(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                sorted(unknown)[0],
            )

        item = self.get_item(item_id)
        if not item.is_active:
            raise BusinessRuleViolationException(
                "ITEM_INACTIVE", f"Line {item_id} is inactive", item_id=item_id
            )

        updated = item.with_changes(**changes)
        applied = item.diff_fields(updated)
        if not applied:
            return item

        items = self._replaced({item_id: updated})
        build_tree(items, include_inactive_items=True, settings=self.settings)
        self._items = items
        self.add_domain_event(BOMItemUpdated(
            bom_id=self.bom_id,
            item_id=item_id,
            changes={k: _event_value(v) for k, v in applied.items()},
        ))
        return updated

    def deactivate_component(self, item_id: str, include_descendants: bool = False) -> Tuple[str, ...]:
        """
        Logically remove a line.

        If include_descendants is True, also deactivates every active line
        below it. Otherwise, raises an error if it has active children.
        """
        self._check_active()
        tree = self.snapshot_tree()
        item = tree.get(item_id)
        if not item.is_active:
            raise BusinessRuleViolationException(
                "ITEM_INACTIVE", f"Line {item_id} is already inactive", item_id=item_id
            )

        below = [n for n in tree.descendants_of(item_id) if n.is_active]
        if below and not include_descendants:
            raise BusinessRuleViolationException(
                "HAS_CHILDREN",
                "Cannot deactivate a line with active children. "
                "Set include_descendants=True to deactivate them all.",
                item_id=item_id,
            )

        deactivated = (item, *below)
        self._items = self._replaced({n.id: n.with_changes(is_active=False) for n in deactivated})
        ids = tuple(n.id for n in deactivated)
        self.add_domain_event(BOMItemDeactivated(bom_id=self.bom_id, item_ids=ids))
        return ids

    def move_component(
        self,
        item_id: str,
        new_parent_id: Optional[str],
        sequence: Optional[int] = None,
        graph: Optional[ProductGraph] = None,
    ) -> BOMComponentNode:
        """Reparent a line with its subtree; levels below it are recomputed."""
        self._check_active()
        cfg = resolve(self.settings)
        tree = self.snapshot_tree()
        item = tree.get(item_id)
        if not item.is_active:
            raise BusinessRuleViolationException(
                "ITEM_INACTIVE", f"Line {item_id} is inactive", item_id=item_id
            )

        if new_parent_id is not None:
            subtree = {item_id} | {n.id for n in tree.descendants_of(item_id)}
            if new_parent_id in subtree:
                raise StructuralCycleException(
                    [*tree.component_path(new_parent_id), tree.get(new_parent_id).component_id, item.component_id],
                    f"Cannot move line {item_id} under its own subtree",
                )
            self._check_parent(tree.get(new_parent_id))

        result = can_attach(AttachRequest(self.product_id, new_parent_id, item.component_id), tree, graph, cfg)
        if not result.ok:
            raise result.error

        moved = item.with_changes(
            parent_id=new_parent_id,
            sequence=self._resolve_sequence(tree, new_parent_id, sequence, exclude=item_id),
        )
        candidate = self._replaced({item_id: moved})
        new_tree = build_tree(candidate, include_inactive_items=True, settings=cfg)
        check_structure(new_tree, graph, cfg)

        levels = {n.id: n.level for n in new_tree.nodes}
        self._items = [n if n.level == levels[n.id] else n.with_changes(level=levels[n.id]) for n in candidate]
        self.add_domain_event(BOMItemMoved(
            bom_id=self.bom_id,
            item_id=item_id,
            old_parent_id=item.parent_id,
            new_parent_id=new_parent_id,
        ))
        return new_tree.get(item_id)

    def copy_from(
        self,
        source: BOMTree,
        options: Optional[FilterOptions] = None,
        cost_adjustment_rate: Optional[Decimal] = None,
        graph: Optional[ProductGraph] = None,
    ) -> Tuple[Tuple[BOMComponentNode, ...], Tuple[BOMComponentNode, ...]]:
        """
        Fill this empty BOM with the lines of ``source`` that pass ``options``.

        Copied lines get new ids and keep their order; a line whose parent
        was filtered out hangs from its nearest copied ancestor, taking the
        next free sequence there if its own is already used. Unit costs are
        scaled by ``cost_adjustment_rate`` percent (-100 to 1000). The result
        is checked by the Cycle Guard against this BOM's product, so nothing
        is copied when any line would close a cycle.

        Returns (copied lines, skipped source lines).
        """
        self._check_active()
        if self._items:
            raise BusinessRuleViolationException(
                "BOM_NOT_EMPTY", f"BOM {self.bom_id} already has lines", bom_id=self.bom_id
            )
        cfg = resolve(self.settings)
        options = options or DEFAULT_FILTER

        factor = None
        if cost_adjustment_rate is not None:
            cost_adjustment_rate = to_decimal(cost_adjustment_rate, "cost_adjustment_rate")
            if cost_adjustment_rate < -100 or cost_adjustment_rate > 1000:
                raise InvalidFieldException(
                    "Cost adjustment rate must be within -100% and 1000%",
                    "cost_adjustment_rate",
                    cost_adjustment_rate,
                )
            factor = 1 + cost_adjustment_rate / 100

        kept = {n.id for n in options.apply(source.nodes, cfg)}
        if not kept:
            raise BusinessRuleViolationException(
                "NOTHING_TO_COPY", "No line of the source BOM matches the copy options"
            )

        anchors: Dict[str, Optional[str]] = {}  # source id -> new parent id for its children
        taken: Dict[Optional[str], Set[int]] = {}
        copied: List[BOMComponentNode] = []
        skipped: List[BOMComponentNode] = []
        for node in source.preorder():
            parent_id = anchors.get(node.parent_id) if node.parent_id else None
            if node.id not in kept:
                anchors[node.id] = parent_id
                skipped.append(node)
                continue
            sequences = taken.setdefault(parent_id, set())
            sequence = node.sequence if node.sequence not in sequences else max(sequences) + 1
            sequences.add(sequence)
            line = replace(
                node,
                id=uuid4().hex,
                bom_id=self.bom_id,
                product_id=self.product_id,
                parent_id=parent_id,
                sequence=sequence,
                unit_cost=node.unit_cost * factor if factor is not None else node.unit_cost,
            )
            anchors[node.id] = line.id
            copied.append(line)

        tree = build_tree(copied, include_inactive_items=True, settings=cfg)
        check_structure(tree, graph, cfg)

        self._items = [tree.get(n.id) for n in copied]
        self.add_domain_event(BOMCopied(
            bom_id=self.bom_id,
            source_bom_id=source.nodes[0].bom_id,
            copied_count=len(copied),
            skipped_count=len(skipped),
            cost_adjustment_rate=None if cost_adjustment_rate is None else str(cost_adjustment_rate),
        ))
        return self.items, tuple(skipped)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _check_active(self) -> None:
        if not self.header.is_active:
            raise BusinessRuleViolationException(
                "BOM_INACTIVE", f"BOM {self.bom_id} is inactive and cannot be modified"
            )

    def _check_parent(self, parent: BOMComponentNode) -> None:
        if not parent.is_active:
            raise BusinessRuleViolationException(
                "INACTIVE_PARENT", f"Parent line {parent.id} is inactive", parent_id=parent.id
            )
        if parent.component_type.is_leaf_only:
            raise BusinessRuleViolationException(
                "LEAF_COMPONENT_HAS_CHILDREN",
                f"{parent.component_type.value} line '{parent.id}' cannot own child lines",
                parent_id=parent.id,
            )

    def _resolve_sequence(
        self,
        tree: BOMTree,
        parent_id: Optional[str],
        sequence: Optional[int],
        exclude: Optional[str] = None,
    ) -> int:
        taken = {n.sequence for n in tree.children_of(parent_id) if n.id != exclude}
        if sequence is None:
            return max(taken, default=0) + 1
        if sequence in taken:
            raise BusinessRuleViolationException(
                "DUPLICATE_SEQUENCE",
                f"Sequence {sequence} is already used under parent {parent_id}",
                parent_id=parent_id,
                sequence=sequence,
            )
        return sequence

    def _replaced(self, updates: Dict[str, BOMComponentNode]) -> List[BOMComponentNode]:
        return [updates.get(n.id, n) for n in self._items]


def _event_value(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    return str(getattr(value, "value", value))
