from .commands import BOMCommandService, CommandResult, CopyResult
from .queries import BOMQueryService, BOMTreeView, StructureIssue, StructureReport

__all__ = [
    "BOMCommandService",
    "BOMQueryService",
    "BOMTreeView",
    "CommandResult",
    "CopyResult",
    "StructureIssue",
    "StructureReport",
]
