"""
Typed view over the ``BOM_ENGINE`` settings block.

The engine never reads Django settings directly; it receives an
``EngineSettings`` instance (or builds the default one here). When Django is
not configured the built-in defaults apply, so the domain layer stays usable
from plain scripts.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings as django_settings


@dataclass(frozen=True)
class EngineSettings:
    root_level: int = 0
    max_traversal_depth: int = 50
    max_traversal_nodes: int = 10_000
    quantity_decimal_places: int = 4
    money_decimal_places: int = 2
    critical_cost_threshold: Decimal = Decimal("10000")
    significance_high_threshold: Decimal = Decimal("100000")
    significance_medium_threshold: Decimal = Decimal("10000")
    significance_removal_high_threshold: Decimal = Decimal("50000")

    def __post_init__(self):
        if self.max_traversal_depth < 1 or self.max_traversal_nodes < 1:
            raise ValueError("Traversal budgets must be positive")
        if self.root_level < 0:
            raise ValueError("Root level cannot be negative")

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> EngineSettings:
        """Build from a ``BOM_ENGINE``-style dict (upper-case keys)."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = key.lower()
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)


def get_engine_settings() -> EngineSettings:
    """Return engine settings from Django if configured, defaults otherwise."""
    if not (django_settings.configured or os.environ.get("DJANGO_SETTINGS_MODULE")):
        return EngineSettings()
    return EngineSettings.from_mapping(getattr(django_settings, "BOM_ENGINE", {}))


def resolve(settings: EngineSettings | None) -> EngineSettings:
    return settings if settings is not None else get_engine_settings()
