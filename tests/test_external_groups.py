"""Tests for bridging external groups and accounts to their PAM stubs."""
import pytest

from pamgov.core.exceptions import ConfigurationError, InvalidStateError, NotFoundError
from pamgov.core.external_groups import ExternalGroupBridge
from pamgov.core.models import Link, ManagedAttribute

from conftest import TREASURY_DN


@pytest.fixture
def bridge(estate):
    return ExternalGroupBridge(estate.repo, estate.target)


def test_requires_container(estate):
    with pytest.raises(InvalidStateError):
        ExternalGroupBridge(estate.repo, None)


def test_is_external(bridge, estate):
    assert bridge.is_external(estate.treasury) is True
    assert bridge.is_external(estate.admins) is False


def test_round_trip_bridging(bridge, estate):
    assert bridge.find_stub_for_external(estate.treasury) is estate.treasury_stub
    assert bridge.resolve_membership_group(estate.treasury_stub.id) is estate.treasury


def test_local_group_resolves_to_itself(bridge, estate):
    assert bridge.resolve_membership_group(estate.admins.id) is estate.admins


def test_unknown_group(bridge):
    with pytest.raises(NotFoundError):
        bridge.resolve_membership_group("missing")


def test_no_stub_for_unbridged_group(bridge, estate):
    other = estate.repo.save(ManagedAttribute(estate.ad.id, estate.ad.name, "CN=Sales", attribute="memberOf"))
    assert bridge.find_stub_for_external(other) is None


def test_no_bridge_without_correlation_keys(estate):
    estate.pam.schemas["group"].attributes = []
    bridge = ExternalGroupBridge(estate.repo, estate.target)
    assert bridge.find_stub_for_external(estate.treasury) is None


def test_multiple_stubs_prefer_pam_application(bridge, estate):
    estate.repo.save(ManagedAttribute(
        estate.hr_pam.id, estate.hr_pam.name, "Treasury (HR)", key1=TREASURY_DN, key2=estate.ad.name,
    ))
    assert bridge.find_stub_for_external(estate.treasury) is estate.treasury_stub


def test_ambiguous_external_group_is_fatal(bridge, estate):
    estate.repo.save(ManagedAttribute(estate.ad.id, estate.ad.name, TREASURY_DN, attribute="memberOf"))
    with pytest.raises(ConfigurationError):
        bridge.resolve_membership_group(estate.treasury_stub.id)


def test_missing_external_group_returns_stub(bridge, estate):
    estate.treasury_stub.attributes["nativeIdentifier"] = "CN=Gone"
    assert bridge.resolve_membership_group(estate.treasury_stub.id) is estate.treasury_stub


def test_missing_source_application(bridge, estate):
    estate.treasury_stub.attributes["source"] = "Retired-LDAP"
    with pytest.raises(NotFoundError):
        bridge.resolve_membership_group(estate.treasury_stub.id)


def test_external_link_for(bridge, estate):
    dave_link = estate.links["dave"]
    stub_account = estate.repo.save(Link(
        estate.people["dave"].id, estate.pam.id, estate.pam.name, "dave-stub",
        attributes={"nativeIdentifier": dave_link.native_identity, "source": estate.ad.name},
    ))
    assert bridge.external_link_for(stub_account) is dave_link
    assert bridge.external_link_for(estate.links["bob"]) is None

    stub_account.attributes["source"] = "Retired-LDAP"
    with pytest.raises(NotFoundError):
        bridge.external_link_for(stub_account)
