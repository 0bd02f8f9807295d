"""Provisioning plan model submitted to the workflow engine."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Operation(str, Enum):
    """Operation on an attribute or permission value."""
    ADD = "Add"
    REMOVE = "Remove"
    SET = "Set"
    REVOKE = "Revoke"
    RETAIN = "Retain"


class AccountOperation(str, Enum):
    CREATE = "Create"
    MODIFY = "Modify"
    DELETE = "Delete"


class ObjectOperation(str, Enum):
    CREATE = "Create"
    MODIFY = "Modify"
    DELETE = "Delete"


class PlanSource(str, Enum):
    LCM = "LCM"
    GROUP_MANAGEMENT = "GroupManagement"


@dataclass
class PermissionRequest:
    target: str
    operation: Operation
    rights: List[str] = field(default_factory=list)
    aggregation_source: Optional[str] = None
    args: Dict[str, Any] = field(default_factory=dict)

    def put(self, key: str, value: Any) -> None:
        self.args[key] = value

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "op": self.operation.value,
            "rights": list(self.rights),
            "aggregationSource": self.aggregation_source,
            "arguments": dict(self.args),
        }


@dataclass
class AccountRequest:
    operation: AccountOperation
    application: str
    native_identity: str
    instance: Optional[str] = None
    permission_requests: List[PermissionRequest] = field(default_factory=list)

    def add(self, request: PermissionRequest) -> None:
        self.permission_requests.append(request)

    def to_dict(self) -> dict:
        return {
            "op": self.operation.value,
            "application": self.application,
            "instance": self.instance,
            "nativeIdentity": self.native_identity,
            "permissionRequests": [req.to_dict() for req in self.permission_requests],
        }


@dataclass
class AttributeRequest:
    name: str
    operation: Operation
    value: Any = None

    def to_dict(self) -> dict:
        return {"name": self.name, "op": self.operation.value, "value": self.value}


@dataclass
class ObjectRequest:
    """Create or modify a managed attribute (e.g. a container)."""
    application: Optional[str]
    type: str
    operation: ObjectOperation
    native_identity: Optional[str] = None
    attribute_requests: List[AttributeRequest] = field(default_factory=list)

    def add_all(self, requests: List[AttributeRequest]) -> None:
        self.attribute_requests.extend(requests)

    def get_attribute_request(self, name: str) -> Optional[AttributeRequest]:
        for request in self.attribute_requests:
            if request.name == name:
                return request
        return None

    def to_dict(self) -> dict:
        return {
            "application": self.application,
            "type": self.type,
            "op": self.operation.value,
            "nativeIdentity": self.native_identity,
            "attributeRequests": [req.to_dict() for req in self.attribute_requests],
        }


@dataclass
class ProvisioningPlan:
    identity_id: Optional[str] = None
    identity_name: Optional[str] = None
    source: PlanSource = PlanSource.LCM
    requesters: List[str] = field(default_factory=list)
    account_requests: List[AccountRequest] = field(default_factory=list)
    object_requests: List[ObjectRequest] = field(default_factory=list)

    def add(self, request: AccountRequest) -> None:
        self.account_requests.append(request)

    def add_request(self, request: ObjectRequest) -> None:
        self.object_requests.append(request)

    def add_requester(self, requester_name: Optional[str]) -> None:
        if requester_name and requester_name not in self.requesters:
            self.requesters.append(requester_name)

    def is_empty(self) -> bool:
        return not self.account_requests and not self.object_requests

    def to_dict(self) -> dict:
        return {
            "identity": self.identity_name,
            "identityId": self.identity_id,
            "source": self.source.value,
            "requesters": list(self.requesters),
            "accountRequests": [req.to_dict() for req in self.account_requests],
            "objectRequests": [req.to_dict() for req in self.object_requests],
        }
