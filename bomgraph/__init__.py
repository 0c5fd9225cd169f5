"""
bomgraph - Bill of Materials graph engine.

The engine operations are importable from the package root::

    from bomgraph import build_tree, can_attach, project, aggregate, diff
"""

import os

from bomgraph.domain.bom.cycle_guard import AttachRequest, AttachResult, ProductGraph, can_attach
from bomgraph.domain.bom.diff import DiffResult, diff
from bomgraph.domain.bom.entities import BOMComponentNode, BOMHeader
from bomgraph.domain.bom.filters import FilterOptions
from bomgraph.domain.bom.projector import project
from bomgraph.domain.bom.statistics import BOMStatistics, aggregate
from bomgraph.domain.bom.tree import BOMTree, build_tree

__version__ = "0.1.0"


def setup(settings_module: str = "bomgraph.config.settings") -> None:
    """Configure Django for standalone use (scripts, shells)."""
    import django

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", settings_module)
    django.setup()


__all__ = [
    "AttachRequest",
    "AttachResult",
    "BOMComponentNode",
    "BOMHeader",
    "BOMStatistics",
    "BOMTree",
    "DiffResult",
    "FilterOptions",
    "ProductGraph",
    "aggregate",
    "build_tree",
    "can_attach",
    "diff",
    "project",
    "setup",
]
