"""Repository capability consumed by the container services.

The persistent object store lives outside this package; services only depend
on this protocol. ``InMemoryRepository`` is the bundled implementation used in
demo mode and in tests.
"""
from __future__ import annotations
from typing import Any, Iterator, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from .filters import Filter

T = TypeVar("T")


@runtime_checkable
class Repository(Protocol):
    """Collection-like access to persisted domain objects."""

    def get_by_id(self, cls: type[T], object_id: Optional[str]) -> Optional[T]:
        """Return the object with the given id, or None."""
        ...

    def get_by_name(self, cls: type[T], name: Optional[str]) -> Optional[T]:
        """Return the object with the given name, or None."""
        ...

    def search(
        self,
        cls: type,
        filter: Optional[Filter] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
    ) -> Iterator[Any]:
        """Iterate matching objects, or tuples of ``columns`` when given."""
        ...

    def count(self, cls: type, filter: Optional[Filter] = None) -> int:
        """Count distinct matching objects."""
        ...

    def save(self, obj: T) -> T:
        """Persist an object, assigning an id when it has none."""
        ...

    def commit(self) -> None:
        """Commit pending changes."""
        ...
