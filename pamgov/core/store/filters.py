"""Predicate algebra understood by Repository implementations.

Filters are plain value objects describing a query. A backend may translate
them into its own query language; the in-memory store evaluates them directly
through ``Filter.matches``.

Usage:
    Filter.and_(
        Filter.eq("application_id", app.id),
        Filter.subquery("id", TargetAssociation, "object_id",
                        Filter.eq("target_id", target.id)),
    )
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Protocol


class RowSource(Protocol):
    """What a filter needs from its evaluator to follow subqueries and joins."""

    def rows(self, entity: type) -> Iterable[Any]:
        ...

    def projection(self, query: "Subquery") -> set:
        ...


def resolve_path(obj: Any, path: str) -> Any:
    """Read a dotted property path; a step into a dict reads the key.

    Dict keys may themselves contain dots (e.g. ``attributes.privilegedData.value``),
    so once a dict is reached the remainder of the path is tried as a single key first.
    """
    current = obj
    parts = path.split(".")
    for index, part in enumerate(parts):
        if current is None:
            return None
        if isinstance(current, dict):
            remainder = ".".join(parts[index:])
            if remainder in current:
                return current[remainder]
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


class Filter:
    """Base predicate. Subclasses implement ``matches``."""

    def matches(self, obj: Any, source: RowSource) -> bool:
        raise NotImplementedError

    # ── constructors ────────────────────────────────────────────────────────

    @staticmethod
    def eq(prop: str, value: Any) -> "Filter":
        return Comparison(prop, "eq", value)

    @staticmethod
    def ne(prop: str, value: Any) -> "Filter":
        return Comparison(prop, "ne", value)

    @staticmethod
    def in_(prop: str, values: Iterable[Any]) -> "Filter":
        return In(prop, values)

    @staticmethod
    def starts_with(prop: str, value: str, ignore_case: bool = False) -> "Filter":
        return StartsWith(prop, value, ignore_case)

    @staticmethod
    def is_null(prop: str) -> "Filter":
        return IsNull(prop)

    @staticmethod
    def not_null(prop: str) -> "Filter":
        return Not(IsNull(prop))

    @staticmethod
    def not_(inner: "Filter") -> "Filter":
        return Not(inner)

    @staticmethod
    def and_(*filters: Optional["Filter"]) -> "Filter":
        return And([f for f in filters if f is not None])

    @staticmethod
    def or_(*filters: Optional["Filter"]) -> "Filter":
        return Or([f for f in filters if f is not None])

    @staticmethod
    def subquery(prop: str, entity: type, entity_prop: str, where: Optional["Filter"] = None) -> "Filter":
        return Subquery(prop, entity, entity_prop, where)

    @staticmethod
    def join(entity: type, on: Dict[str, str], where: Optional["Filter"] = None) -> "Filter":
        return Join(entity, on, where)

    def __and__(self, other: "Filter") -> "Filter":
        return And([self, other])

    def __or__(self, other: "Filter") -> "Filter":
        return Or([self, other])

    def __invert__(self) -> "Filter":
        return Not(self)


class Comparison(Filter):
    def __init__(self, prop: str, op: str, value: Any):
        self.prop = prop
        self.op = op
        self.value = value

    def matches(self, obj: Any, source: RowSource) -> bool:
        actual = resolve_path(obj, self.prop)
        if self.op == "eq":
            return actual == self.value
        return actual != self.value

    def __repr__(self) -> str:
        return f"{self.prop} {self.op} {self.value!r}"


class In(Filter):
    def __init__(self, prop: str, values: Iterable[Any]):
        self.prop = prop
        self.values = list(values)

    def matches(self, obj: Any, source: RowSource) -> bool:
        return resolve_path(obj, self.prop) in self.values

    def __repr__(self) -> str:
        return f"{self.prop} in {self.values!r}"


class StartsWith(Filter):
    def __init__(self, prop: str, value: str, ignore_case: bool = False):
        self.prop = prop
        self.value = value
        self.ignore_case = ignore_case

    def matches(self, obj: Any, source: RowSource) -> bool:
        actual = resolve_path(obj, self.prop)
        if not isinstance(actual, str):
            return False
        if self.ignore_case:
            return actual.lower().startswith(self.value.lower())
        return actual.startswith(self.value)

    def __repr__(self) -> str:
        suffix = " (ignore case)" if self.ignore_case else ""
        return f"{self.prop} starts with {self.value!r}{suffix}"


class IsNull(Filter):
    def __init__(self, prop: str):
        self.prop = prop

    def matches(self, obj: Any, source: RowSource) -> bool:
        return resolve_path(obj, self.prop) is None

    def __repr__(self) -> str:
        return f"{self.prop} is null"


class Not(Filter):
    def __init__(self, inner: Filter):
        self.inner = inner

    def matches(self, obj: Any, source: RowSource) -> bool:
        return not self.inner.matches(obj, source)

    def __repr__(self) -> str:
        return f"not ({self.inner!r})"


class And(Filter):
    def __init__(self, filters: List[Filter]):
        self.filters = filters

    def matches(self, obj: Any, source: RowSource) -> bool:
        return all(f.matches(obj, source) for f in self.filters)

    def __repr__(self) -> str:
        return "(" + " and ".join(repr(f) for f in self.filters) + ")"


class Or(Filter):
    def __init__(self, filters: List[Filter]):
        self.filters = filters

    def matches(self, obj: Any, source: RowSource) -> bool:
        return any(f.matches(obj, source) for f in self.filters)

    def __repr__(self) -> str:
        return "(" + " or ".join(repr(f) for f in self.filters) + ")"


class Subquery(Filter):
    """``prop IN (SELECT entity_prop FROM entity WHERE where)``. Uncorrelated."""

    def __init__(self, prop: str, entity: type, entity_prop: str, where: Optional[Filter] = None):
        self.prop = prop
        self.entity = entity
        self.entity_prop = entity_prop
        self.where = where

    def matches(self, obj: Any, source: RowSource) -> bool:
        return resolve_path(obj, self.prop) in source.projection(self)

    def __repr__(self) -> str:
        return f"{self.prop} in ({self.entity.__name__}.{self.entity_prop} where {self.where!r})"


class Join(Filter):
    """Exists a row of ``entity`` whose columns equal ours pairwise (``on``) and matching ``where``.

    ``on`` maps a property of the filtered object to a property of the joined row.
    """

    def __init__(self, entity: type, on: Dict[str, str], where: Optional[Filter] = None):
        self.entity = entity
        self.on = dict(on)
        self.where = where

    def matches(self, obj: Any, source: RowSource) -> bool:
        expected = {foreign: resolve_path(obj, local) for local, foreign in self.on.items()}
        # null never joins
        if any(value is None for value in expected.values()):
            return False
        for row in source.rows(self.entity):
            if all(resolve_path(row, foreign) == value for foreign, value in expected.items()):
                if self.where is None or self.where.matches(row, source):
                    return True
        return False

    def __repr__(self) -> str:
        return f"join {self.entity.__name__} on {self.on!r} where {self.where!r}"
