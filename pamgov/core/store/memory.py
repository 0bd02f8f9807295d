"""Dict-backed Repository that evaluates ``Filter`` predicates in process."""
from __future__ import annotations
import itertools
from collections import defaultdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from .filters import Filter, Subquery, resolve_path


class _Evaluation:
    """Row source for a single query; uncorrelated subqueries are computed once."""

    def __init__(self, repository: "InMemoryRepository"):
        self._repository = repository
        self._projections: Dict[int, set] = {}

    def rows(self, entity: type) -> Iterable[Any]:
        return self._repository._table(entity).values()

    def projection(self, query: Subquery) -> set:
        key = id(query)
        if key not in self._projections:
            self._projections[key] = {
                resolve_path(row, query.entity_prop)
                for row in self.rows(query.entity)
                if query.where is None or query.where.matches(row, self)
            }
        return self._projections[key]


class InMemoryRepository:
    """In-memory object store keyed by class and id.
    
    Usage:
        repo = InMemoryRepository()
        app = repo.save(Application(name="Finance-PAM"))
        repo.count(Identity, Filter.eq("name", "alice"))
    """

    def __init__(self):
        self._objects: Dict[type, Dict[str, Any]] = defaultdict(dict)
        self._sequence = itertools.count(1)
        self.commit_count = 0

    def _table(self, cls: type) -> Dict[str, Any]:
        return self._objects[cls]

    def save(self, obj: Any) -> Any:
        if not getattr(obj, "id", None):
            obj.id = f"{type(obj).__name__.lower()}-{next(self._sequence)}"
        self._table(type(obj))[obj.id] = obj
        return obj

    def save_all(self, objects: Iterable[Any]) -> List[Any]:
        return [self.save(obj) for obj in objects]

    def commit(self) -> None:
        self.commit_count += 1

    def get_by_id(self, cls: type, object_id: Optional[str]) -> Optional[Any]:
        if object_id is None:
            return None
        return self._table(cls).get(object_id)

    def get_by_name(self, cls: type, name: Optional[str]) -> Optional[Any]:
        if name is None:
            return None
        for obj in sorted(self._table(cls).values(), key=lambda o: o.id):
            if getattr(obj, "name", None) == name:
                return obj
        return None

    def _matching(self, cls: type, filter: Optional[Filter], order_by: Optional[str]) -> List[Any]:
        evaluation = _Evaluation(self)
        found = [obj for obj in self._table(cls).values() if filter is None or filter.matches(obj, evaluation)]
        sort_key = order_by or "id"
        found.sort(key=lambda obj: (resolve_path(obj, sort_key) is None, str(resolve_path(obj, sort_key))))
        return found

    def search(
        self,
        cls: type,
        filter: Optional[Filter] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
    ) -> Iterator[Any]:
        found = self._matching(cls, filter, order_by)
        if columns:
            return iter([tuple(resolve_path(obj, column) for column in columns) for obj in found])
        return iter(found)

    def count(self, cls: type, filter: Optional[Filter] = None) -> int:
        return len(self._matching(cls, filter, None))
