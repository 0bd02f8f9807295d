"""Unit tests for merging permission grants per right."""
from pamgov.core.models import GrantingSource, Link, ManagedAttribute
from pamgov.core.permissions import MergedPermission, PermissionAggregator, group_source, link_source

A = GrantingSource("Finance-PAM", native_identity="alice")
B = GrantingSource("Finance-PAM", group="Finance-Admins")


def test_merge_by_right_groups_sources_in_first_seen_order():
    merged = PermissionAggregator.merge_by_right([("read", A), ("read", B), ("write", A)])
    assert merged == [
        MergedPermission("read", (A, B)),
        MergedPermission("write", (A,)),
    ]


def test_merge_by_right_is_idempotent():
    once = PermissionAggregator.merge_by_right([("read", A), ("read", B), ("write", A)])
    assert PermissionAggregator.merge_by_right(once) == once


def test_sources_deduplicated_structurally():
    copy_of_a = GrantingSource("Finance-PAM", native_identity="alice")
    merged = PermissionAggregator.merge_by_right([("read", A), ("read", copy_of_a)])
    assert merged == [MergedPermission("read", (A,))]


def test_merge_puts_direct_before_effective():
    merged = PermissionAggregator.merge(direct=[("checkin", A)], effective=[("checkout", B), ("checkin", B)])
    assert [m.right for m in merged] == ["checkin", "checkout"]
    assert merged[0].sources == (A, B)


def test_source_helpers():
    link = Link("i-1", "app-1", "Finance-PAM", "alice")
    group = ManagedAttribute("app-1", "Finance-PAM", "Finance-Admins")
    assert link_source(link) == A
    assert group_source(group) == B
    assert group_source(group, "Admins").group == "Admins"


def test_to_dict():
    data = MergedPermission("read", (A,)).to_dict()
    assert data == {
        "right": "read",
        "sources": [{"application": "Finance-PAM", "nativeIdentity": "alice", "group": None}],
    }
