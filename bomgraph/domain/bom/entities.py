"""
BOM Domain - Entities.

BOMComponentNode is a single flat component record as supplied by the
Node Store. Records are immutable snapshots; changes produce new records.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Optional

from bomgraph.domain.shared.exceptions import InvalidFieldException
from bomgraph.domain.shared.value_objects import ComponentType, to_decimal

from . import rollup


# Fields a caller may change through an update command
MUTABLE_FIELDS = (
    "quantity",
    "scrap_rate",
    "unit_cost",
    "is_optional",
    "position",
    "process_step",
    "remarks",
    "unit",
    "component_type",
)


@dataclass(frozen=True)
class BOMComponentNode:
    """
    A single component line in a BOM.

    ``level`` is whatever the store recorded; the tree builder recomputes it
    and never trusts the stored value.
    """

    id: str
    bom_id: str
    product_id: str  # Product owning the BOM
    component_id: str  # Product used as the component
    component_type: ComponentType
    parent_id: Optional[str] = None  # None for root lines
    level: int = 0
    sequence: int = 0

    quantity: Decimal = field(default=Decimal("1"))
    scrap_rate: Decimal = field(default=Decimal("0"))  # Percent, 0-100
    unit_cost: Decimal = field(default=Decimal("0"))
    unit: str = "EA"

    is_optional: bool = False
    is_active: bool = True

    position: Optional[str] = None  # Assembly location, e.g. "PCB-U1"
    process_step: Optional[str] = None  # Process the part is consumed in, e.g. "SMT"
    remarks: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise InvalidFieldException("Component line id is required", "id")
        if not self.component_id:
            raise InvalidFieldException("Component is required", "component_id")

        try:
            component_type = ComponentType(self.component_type)
        except ValueError as exc:
            raise InvalidFieldException(
                f"Unknown component type {self.component_type!r}",
                "component_type",
                self.component_type,
            ) from exc
        object.__setattr__(self, "component_type", component_type)

        for name in ("quantity", "scrap_rate", "unit_cost"):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))

        if self.quantity <= 0:
            raise InvalidFieldException("Quantity must be greater than zero", "quantity", self.quantity)
        if self.scrap_rate < 0 or self.scrap_rate > 100:
            raise InvalidFieldException("Scrap rate must be within 0-100%", "scrap_rate", self.scrap_rate)
        if self.unit_cost < 0:
            raise InvalidFieldException("Unit cost cannot be negative", "unit_cost", self.unit_cost)
        if self.sequence < 0:
            raise InvalidFieldException("Sequence cannot be negative", "sequence", self.sequence)
        if self.level < 0:
            raise InvalidFieldException("Level cannot be negative", "level", self.level)
        if self.parent_id == "":
            object.__setattr__(self, "parent_id", None)

    @property
    def is_root(self) -> bool:
        """Check if this line sits directly under the owning product."""
        return self.parent_id is None

    @property
    def actual_quantity(self) -> Decimal:
        """Quantity including expected scrap."""
        return rollup.actual_quantity(self)

    @property
    def total_cost(self) -> Decimal:
        return rollup.total_cost(self)

    def with_changes(self, **changes: Any) -> BOMComponentNode:
        """Return a copy with changes applied and re-validated."""
        return replace(self, **changes)

    def diff_fields(self, other: BOMComponentNode, names=MUTABLE_FIELDS) -> Dict[str, Any]:
        return {
            name: getattr(other, name)
            for name in names
            if getattr(self, name) != getattr(other, name)
        }


@dataclass(frozen=True)
class BOMHeader:
    """
    One BOM version of a product.

    ``revision`` increases on every committed change and is the optimistic
    concurrency token.
    """

    id: str
    product_id: str
    version: str = "1.0"
    revision: int = 1
    is_active: bool = True
    description: Optional[str] = None
