"""
Base Aggregate Root class.

An aggregate root owns a consistency boundary: commands go through it, it
records what happened as domain events, and it can re-check its invariants
before the caller commits.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List

from .events import DomainEvent


@dataclass
class AggregateRoot:
    """Collects domain events raised by commands until the caller drains them."""

    _domain_events: List[DomainEvent] = field(default_factory=list, repr=False, kw_only=True)

    def add_domain_event(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def clear_domain_events(self) -> List[DomainEvent]:
        """Return the pending events and forget them."""
        events, self._domain_events = self._domain_events, []
        return events

    @property
    def domain_events(self) -> List[DomainEvent]:
        return list(self._domain_events)

    def validate(self, **context: Any) -> Any:
        """Re-check every invariant; raise DomainException on the first breach."""
        raise NotImplementedError(f"{type(self).__name__} does not define its invariants")
