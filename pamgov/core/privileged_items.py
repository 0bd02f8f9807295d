"""Privileged data lists stored on a container managed attribute.

The container keeps its privileged items denormalized as four parallel lists
(value, display, type, $ref). Every mutation goes through ``PrivilegedItemLists``
so the lists stay index aligned.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .constants import PD_DISPLAY, PD_REF, PD_TYPE, PD_VALUE
from .models import ManagedAttribute, PrivilegedItem


def _as_list(value: Any) -> List[str]:
    """Copy a list-valued attribute; missing means empty, a scalar means one element."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class PrivilegedItemLists:
    values: List[str] = field(default_factory=list)
    displays: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    refs: List[str] = field(default_factory=list)

    @classmethod
    def from_attributes(cls, attributes: Optional[Dict[str, Any]]) -> "PrivilegedItemLists":
        attributes = attributes or {}
        return cls(
            values=_as_list(attributes.get(PD_VALUE)),
            displays=_as_list(attributes.get(PD_DISPLAY)),
            types=_as_list(attributes.get(PD_TYPE)),
            refs=_as_list(attributes.get(PD_REF)),
        )

    @classmethod
    def from_managed_attribute(cls, container: ManagedAttribute) -> "PrivilegedItemLists":
        return cls.from_attributes(container.attributes)

    def __contains__(self, value: str) -> bool:
        return value in self.values

    def __len__(self) -> int:
        return len(self.values)

    def items(self) -> List[PrivilegedItem]:
        """Zip the lists by index; a shorter trailing list leaves that field None."""
        def at(values: List[str], index: int) -> Optional[str]:
            return values[index] if index < len(values) else None

        return [
            PrivilegedItem(
                value=value,
                name=at(self.displays, index),
                type=at(self.types, index),
                ref=at(self.refs, index),
            )
            for index, value in enumerate(self.values)
        ]

    def add(self, value: str, display: Optional[str], item_type: Optional[str], ref: Optional[str]) -> None:
        """Append one item; short trailing lists are padded with None first so the new entry shares its index."""
        for other in (self.displays, self.types, self.refs):
            other.extend([None] * (len(self.values) - len(other)))
        self.values.append(value)
        self.displays.append(display)
        self.types.append(item_type)
        self.refs.append(ref)

    def remove(self, value: str) -> bool:
        """Remove ``value`` and the entries at its index. Returns False if absent."""
        if value not in self.values:
            return False
        index = self.values.index(value)
        del self.values[index]
        for other in (self.displays, self.types, self.refs):
            if len(other) > index:
                del other[index]
        return True

    def remove_all(self, values: Iterable[str]) -> List[str]:
        return [value for value in values if self.remove(value)]

    def clear(self) -> None:
        self.values, self.displays, self.types, self.refs = [], [], [], []

    def to_attributes(self) -> Dict[str, List[str]]:
        return {
            PD_VALUE: list(self.values),
            PD_DISPLAY: list(self.displays),
            PD_TYPE: list(self.types),
            PD_REF: list(self.refs),
        }
