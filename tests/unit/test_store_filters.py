"""Unit tests for the Filter algebra evaluated by the in-memory repository."""
import pytest

from pamgov.core.models import Identity, IdentityEntitlement, ManagedAttribute
from pamgov.core.store import Filter, InMemoryRepository, Repository, resolve_path


@pytest.fixture
def repo():
    repo = InMemoryRepository()
    repo.save_all([
        Identity("alice", id="i-1", display_name="Alice Liddell"),
        Identity("bob", id="i-2"),
        Identity("Carol", id="i-3"),
    ])
    repo.save(ManagedAttribute("app-1", "Finance-PAM", "Admins", attribute="memberOf", id="g-1"))
    repo.save(IdentityEntitlement("i-1", "app-1", "memberOf", "Admins", id="e-1"))
    repo.save(IdentityEntitlement("i-2", "app-1", "memberOf", "Readers", id="e-2"))
    return repo


def names(rows):
    return [row.name for row in rows]


def test_in_memory_repository_satisfies_protocol(repo):
    assert isinstance(repo, Repository)


def test_save_assigns_ids():
    repo = InMemoryRepository()
    identity = repo.save(Identity("zoe"))
    assert identity.id == "identity-1"
    assert repo.get_by_id(Identity, "identity-1") is identity
    assert repo.get_by_name(Identity, "zoe") is identity


def test_eq_ne_and_in(repo):
    assert names(repo.search(Identity, Filter.eq("name", "bob"))) == ["bob"]
    assert names(repo.search(Identity, Filter.ne("name", "bob"))) == ["alice", "Carol"]
    assert names(repo.search(Identity, Filter.in_("id", ["i-1", "i-3"]))) == ["alice", "Carol"]


def test_not_and_or_operators(repo):
    query = ~Filter.eq("name", "bob") & (Filter.eq("id", "i-1") | Filter.eq("id", "i-2"))
    assert names(repo.search(Identity, query)) == ["alice"]


def test_and_ignores_missing_clauses(repo):
    assert repo.count(Identity, Filter.and_(Filter.eq("name", "alice"), None)) == 1
    assert repo.count(Identity, Filter.or_(None, Filter.eq("name", "bob"))) == 1


def test_starts_with_ignore_case(repo):
    assert names(repo.search(Identity, Filter.starts_with("name", "car"))) == []
    assert names(repo.search(Identity, Filter.starts_with("name", "car", ignore_case=True))) == ["Carol"]


def test_null_checks(repo):
    assert names(repo.search(Identity, Filter.not_null("display_name"))) == ["alice"]
    assert repo.count(Identity, Filter.is_null("display_name")) == 2


def test_subquery_projects_related_entity(repo):
    members = Filter.subquery("id", IdentityEntitlement, "identity_id", Filter.eq("value", "Admins"))
    assert names(repo.search(Identity, members)) == ["alice"]


def test_join_requires_every_column_pair(repo):
    to_group = Filter.join(ManagedAttribute, {"name": "attribute", "value": "value", "application_id": "application_id"})
    assert [e.id for e in repo.search(IdentityEntitlement, to_group)] == ["e-1"]


def test_join_never_matches_null_columns(repo):
    repo.save(ManagedAttribute("app-1", "Finance-PAM", "Orphans", id="g-2"))
    repo.save(IdentityEntitlement("i-3", "app-1", None, "Orphans", id="e-3"))
    to_group = Filter.join(ManagedAttribute, {"name": "attribute", "value": "value"})
    assert [e.id for e in repo.search(IdentityEntitlement, to_group)] == ["e-1"]


def test_search_columns_and_order(repo):
    rows = list(repo.search(Identity, columns=["id", "name"], order_by="name"))
    assert rows == [("i-3", "Carol"), ("i-1", "alice"), ("i-2", "bob")]


def test_resolve_path_reads_dotted_dict_keys():
    group = ManagedAttribute("app-1", "Finance-PAM", "Admins", attributes={"privilegedData.value": ["x"], "name": "n"})
    assert resolve_path(group, "attributes.privilegedData.value") == ["x"]
    assert resolve_path(group, "attributes.name") == "n"
    assert resolve_path(group, "attributes.missing") is None
