"""Merge raw permission grants into one display entry per right."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .models import GrantingSource, Link, ManagedAttribute

Grant = Tuple[str, GrantingSource]


@dataclass
class MergedPermission:
    """A right and every account or group that grants it (deduplicated, first-seen order)."""
    right: str
    sources: Tuple[GrantingSource, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "right": self.right,
            "sources": [
                {"application": s.application, "nativeIdentity": s.native_identity, "group": s.group}
                for s in self.sources
            ],
        }


def link_source(link: Link) -> GrantingSource:
    """Granting source for a direct (account level) grant."""
    return GrantingSource(application=link.application_name, native_identity=link.native_identity)


def group_source(group: ManagedAttribute, display_name: Optional[str] = None) -> GrantingSource:
    """Granting source for a grant inherited through group membership."""
    return GrantingSource(application=group.application_name, group=display_name or group.displayable_name)


class PermissionAggregator:
    """Group grants by right name.

    Usage:
        merged = PermissionAggregator.merge_by_right([("read", a), ("read", b), ("write", a)])
        # -> [MergedPermission("read", (a, b)), MergedPermission("write", (a,))]
    """

    @staticmethod
    def merge_by_right(grants: Iterable[Union[Grant, MergedPermission]]) -> List[MergedPermission]:
        """Merge grants; already merged entries are accepted so merging is idempotent."""
        by_right: Dict[str, Dict[GrantingSource, None]] = {}
        for grant in grants:
            if isinstance(grant, MergedPermission):
                sources = by_right.setdefault(grant.right, {})
                for source in grant.sources:
                    sources[source] = None
            else:
                right, source = grant
                by_right.setdefault(right, {})[source] = None
        return [MergedPermission(right=right, sources=tuple(sources)) for right, sources in by_right.items()]

    @classmethod
    def merge(cls, direct: Iterable[Grant], effective: Iterable[Grant]) -> List[MergedPermission]:
        """Merge direct grants first, then group-derived ones."""
        return cls.merge_by_right(list(direct) + list(effective))
