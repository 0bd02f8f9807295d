"""Repository capability: predicate algebra, protocol and in-memory store."""
from .filters import Filter, resolve_path
from .memory import InMemoryRepository
from .repository import Repository

__all__ = [
    "Filter",
    "resolve_path",
    "InMemoryRepository",
    "Repository",
]
