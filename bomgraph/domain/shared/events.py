"""
Domain Events.

Domain events are records of significant business occurrences.
They are collected on the aggregate and handed to the caller after commit.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Base class for all domain events.

    Domain events are immutable records of something that happened in the domain.
    """

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__


# =============================================================================
# BOM EVENTS
# =============================================================================

@dataclass(frozen=True, kw_only=True)
class BOMItemAttached(DomainEvent):
    """Event raised when a component is attached to a BOM."""

    bom_id: str
    item_id: str
    parent_id: Optional[str]
    component_id: str
    quantity: str


@dataclass(frozen=True, kw_only=True)
class BOMItemUpdated(DomainEvent):
    """Event raised when component fields change."""

    bom_id: str
    item_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class BOMItemDeactivated(DomainEvent):
    """Event raised when components are logically removed."""

    bom_id: str
    item_ids: tuple = ()


@dataclass(frozen=True, kw_only=True)
class BOMItemMoved(DomainEvent):
    """Event raised when a component is reparented."""

    bom_id: str
    item_id: str
    old_parent_id: Optional[str]
    new_parent_id: Optional[str]


@dataclass(frozen=True, kw_only=True)
class BOMCopied(DomainEvent):
    """Event raised when a BOM is filled with lines copied from another BOM."""

    bom_id: str
    source_bom_id: str
    copied_count: int
    skipped_count: int
    cost_adjustment_rate: Optional[str] = None
