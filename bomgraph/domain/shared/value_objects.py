"""
Shared Value Objects used across the BOM domain.

Value Objects are immutable objects that describe characteristics of a thing.
Two value objects are equal if all their properties are equal.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from .exceptions import InvalidFieldException


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ComponentType(str, Enum):
    """Classification of a BOM component."""

    RAW_MATERIAL = "RAW_MATERIAL"
    SEMI_FINISHED = "SEMI_FINISHED"
    PURCHASED_PART = "PURCHASED_PART"
    SUB_ASSEMBLY = "SUB_ASSEMBLY"
    CONSUMABLE = "CONSUMABLE"

    @property
    def is_leaf_only(self) -> bool:
        """Leaf-only components may not own children."""
        return self in (
            ComponentType.RAW_MATERIAL,
            ComponentType.PURCHASED_PART,
            ComponentType.CONSUMABLE,
        )

    @property
    def has_own_bom(self) -> bool:
        """Check if the component is a manufactured product with its own BOM."""
        return self is ComponentType.SUB_ASSEMBLY


# =============================================================================
# DECIMAL HELPERS
# =============================================================================

def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert ints, strings and floats to Decimal without binary drift.

    Raises InvalidFieldException naming ``field`` for non-numeric input.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidFieldException(f"{field} must be numeric, got {value!r}", field, value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidFieldException(f"{field} must be numeric, got {value!r}", field, value) from exc


def quantize(value: Decimal, places: int) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# =============================================================================
# VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class LevelRange:
    """
    Inclusive level window. ``None`` on either side means unbounded.
    """

    min: Optional[int] = None
    max: Optional[int] = None

    def __post_init__(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvalidFieldException("Level range min cannot exceed max", "level_range", f"{self.min}-{self.max}")

    def contains(self, level: int) -> bool:
        if self.min is not None and level < self.min:
            return False
        if self.max is not None and level > self.max:
            return False
        return True

    @property
    def is_unbounded(self) -> bool:
        return self.min is None and self.max is None


@dataclass(frozen=True)
class CostRange:
    """
    Inclusive total-cost window. ``None`` on either side means unbounded.
    """

    min: Optional[Decimal] = None
    max: Optional[Decimal] = None

    def __post_init__(self):
        if self.min is not None:
            object.__setattr__(self, "min", to_decimal(self.min, "cost_range.min"))
        if self.max is not None:
            object.__setattr__(self, "max", to_decimal(self.max, "cost_range.max"))
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvalidFieldException("Cost range min cannot exceed max", "cost_range", f"{self.min}-{self.max}")

    def contains(self, amount: Decimal) -> bool:
        if self.min is not None and amount < self.min:
            return False
        if self.max is not None and amount > self.max:
            return False
        return True

    @property
    def is_unbounded(self) -> bool:
        return self.min is None and self.max is None
