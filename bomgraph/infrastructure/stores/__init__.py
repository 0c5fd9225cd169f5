from .memory import InMemoryNodeStore

__all__ = ["InMemoryNodeStore"]
