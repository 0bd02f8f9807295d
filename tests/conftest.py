"""Pytest shared fixtures: an in-memory Finance-PAM estate and workflow doubles."""
import os
import pathlib
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any pamgov imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest

from pamgov.config.settings import PamConfig
from pamgov.core.constants import (
    AGGREGATION_STATE_DISCONNECTED,
    OBJECT_TYPE_CONTAINER,
    OBJECT_TYPE_PRIVILEGED_DATA,
    OWNER_TYPE_ATTRIBUTE,
    OWNER_TYPE_LINK,
    PD_DISPLAY,
    PD_REF,
    PD_TYPE,
    PD_VALUE,
)
from pamgov.core.models import (
    Application,
    AttributeDefinition,
    Identity,
    IdentityEntitlement,
    Link,
    ManagedAttribute,
    Schema,
    Target,
    TargetAssociation,
)
from pamgov.core.provisioning_service import ContainerProvisioningService
from pamgov.core.store import InMemoryRepository
from pamgov.core.workflow import WorkflowSession, WorkItemRef

TREASURY_DN = "CN=Treasury,OU=Groups,DC=corp"


def correlated_schema(object_type):
    """Schema whose nativeIdentifier/source attributes live in key1/key2."""
    return Schema(object_type, [
        AttributeDefinition("nativeIdentifier", correlation_key=1),
        AttributeDefinition("source", correlation_key=2),
        AttributeDefinition("description"),
    ])


# ─────────────────────────────────────────────────────────────────────────────
# Estate
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def estate():
    """Finance-Safe on Finance-PAM with direct, local group and external group access.

    Access:
        alice  member of local group Finance-Admins
        bob    direct grant on his PAM account
        carol  direct grant AND member of Finance-Admins
        dave   member of Corp-AD group Treasury (bridged by a PAM stub group)
        erin   disconnected Finance-Admins entitlement (no access)
        frank  PAM account without any grant (no access)
    """
    repo = InMemoryRepository()

    pam = repo.save(Application(
        "Finance-PAM",
        owner="pam-admins",
        schemas={"account": correlated_schema("account"), "group": correlated_schema("group")},
        target_sources=["Finance-PAM Collector"],
    ))
    ad = repo.save(Application(
        "Corp-AD",
        schemas={"account": Schema("account", []), "group": Schema("group", [])},
    ))
    hr_pam = repo.save(Application(
        "HR-PAM",
        schemas={"account": correlated_schema("account"), "group": correlated_schema("group")},
    ))

    target = repo.save(Target("Finance-Safe", pam.id, native_object_id="Finance-Safe"))
    container = repo.save(ManagedAttribute(
        pam.id, pam.name, "Finance-Safe",
        type=OBJECT_TYPE_CONTAINER,
        display_name="Finance Safe",
        owner="carol",
        attributes={
            "name": "Finance-Safe",
            PD_VALUE: ["db-root"],
            PD_DISPLAY: ["Database root"],
            PD_TYPE: ["Account"],
            PD_REF: ["privdata-db-root"],
        },
    ))
    db_root = repo.save(ManagedAttribute(
        pam.id, pam.name, "db-root", type=OBJECT_TYPE_PRIVILEGED_DATA,
        display_name="Database root", attributes={"type": "Account"},
    ))
    db_admin = repo.save(ManagedAttribute(
        pam.id, pam.name, "db-admin", type=OBJECT_TYPE_PRIVILEGED_DATA,
        display_name="Database admin", attributes={"type": "Account"},
    ))

    admins = repo.save(ManagedAttribute(pam.id, pam.name, "Finance-Admins", attribute="memberOf"))
    treasury = repo.save(ManagedAttribute(
        ad.id, ad.name, TREASURY_DN, attribute="memberOf", display_name="Treasury",
    ))
    treasury_stub = repo.save(ManagedAttribute(
        pam.id, pam.name, "Treasury (Corp-AD)", attribute="memberOf",
        key1=TREASURY_DN, key2=ad.name,
        attributes={"nativeIdentifier": TREASURY_DN, "source": ad.name},
    ))
    repo.save(TargetAssociation(target.id, admins.id, OWNER_TYPE_ATTRIBUTE, ["checkout", "checkin"],
                                application_name=pam.name, target_name=target.name))
    repo.save(TargetAssociation(target.id, treasury_stub.id, OWNER_TYPE_ATTRIBUTE, ["checkout"],
                                application_name=pam.name, target_name=target.name))

    people = {name: repo.save(Identity(name, display_name=name.capitalize()))
              for name in ("alice", "bob", "carol", "dave", "erin", "frank")}
    links = {name: repo.save(Link(people[name].id, pam.id, pam.name, name))
             for name in ("bob", "carol", "frank", "alice")}
    links["dave"] = repo.save(Link(people["dave"].id, ad.id, ad.name, f"CN=dave,{TREASURY_DN}"))

    repo.save(TargetAssociation(target.id, links["bob"].id, OWNER_TYPE_LINK, ["checkout", "show"],
                                application_name=pam.name, target_name=target.name,
                                aggregation_source="Finance-PAM Collector"))
    repo.save(TargetAssociation(target.id, links["carol"].id, OWNER_TYPE_LINK, ["checkout"],
                                application_name=pam.name, target_name=target.name,
                                aggregation_source="Finance-PAM Collector"))

    for name in ("alice", "carol"):
        repo.save(IdentityEntitlement(people[name].id, pam.id, "memberOf", "Finance-Admins"))
    repo.save(IdentityEntitlement(people["dave"].id, ad.id, "memberOf", TREASURY_DN))
    repo.save(IdentityEntitlement(people["erin"].id, pam.id, "memberOf", "Finance-Admins",
                                  aggregation_state=AGGREGATION_STATE_DISCONNECTED))

    return SimpleNamespace(
        repo=repo,
        pam=pam,
        ad=ad,
        hr_pam=hr_pam,
        target=target,
        container=container,
        db_root=db_root,
        db_admin=db_admin,
        admins=admins,
        treasury=treasury,
        treasury_stub=treasury_stub,
        people=people,
        links=links,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Workflow doubles
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def runner():
    """WorkflowRunner double returning an approval work item."""
    mock = MagicMock()
    mock.launch.return_value = WorkflowSession(
        status="approving",
        work_item=WorkItemRef(type="Approval", id="wi-1"),
        request_name="0000000042",
    )
    return mock


@pytest.fixture
def mock_audit(monkeypatch):
    """Mock scripts.audit module"""
    mock = MagicMock()
    monkeypatch.setattr("pamgov.core.provisioning_service.audit", mock)
    return mock


@pytest.fixture
def pam_config():
    return PamConfig(demo_mode=True)


@pytest.fixture
def service(estate, runner, mock_audit, pam_config):
    return ContainerProvisioningService(estate.repo, runner, requester="admin", config=pam_config)
