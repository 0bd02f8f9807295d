"""Provisioning request carried through an approval work item.

A ``PamRequest`` records the intent of one access change (identity, container,
per-account right deltas). It is stored in the work item's attribute bag and
only the approval decision mutates it afterwards.

States:
    Drafted ──submit──> Submitted ──approve──> Approved
       │                    └─────reject──> Rejected
       └──approve (auto-approval)──> Approved
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import InvalidStateError


class RequestState(str, Enum):
    DRAFTED = "Drafted"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestState.APPROVED, RequestState.REJECTED)


_TRANSITIONS = {
    RequestState.DRAFTED: {RequestState.SUBMITTED, RequestState.APPROVED, RequestState.REJECTED},
    RequestState.SUBMITTED: {RequestState.APPROVED, RequestState.REJECTED},
}


@dataclass
class AccountDelta:
    """Rights to add and remove on one account."""
    application: str
    native_identity: str
    add_rights: List[str] = field(default_factory=list)
    remove_rights: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "application": self.application,
            "nativeIdentity": self.native_identity,
            "addRights": list(self.add_rights),
            "removeRights": list(self.remove_rights),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountDelta":
        return cls(
            application=data["application"],
            native_identity=data["nativeIdentity"],
            add_rights=list(data.get("addRights") or []),
            remove_rights=list(data.get("removeRights") or []),
        )


@dataclass
class PamRequest:
    identity_name: str
    container_name: str
    deltas: List[AccountDelta] = field(default_factory=list)
    state: RequestState = RequestState.DRAFTED
    approver: Optional[str] = None
    comment: Optional[str] = None

    def add_delta(self, delta: AccountDelta) -> None:
        self._ensure_mutable()
        self.deltas.append(delta)

    def submit(self) -> None:
        self._transition(RequestState.SUBMITTED)

    def approve(self, approver: str, comment: Optional[str] = None) -> None:
        self._transition(RequestState.APPROVED)
        self.approver = approver
        self.comment = comment

    def reject(self, approver: str, comment: Optional[str] = None) -> None:
        self._transition(RequestState.REJECTED)
        self.approver = approver
        self.comment = comment

    def _ensure_mutable(self) -> None:
        if self.state.is_terminal:
            raise InvalidStateError(f"Request for '{self.identity_name}' is already {self.state.value}")

    def _transition(self, new_state: RequestState) -> None:
        self._ensure_mutable()
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateError(f"Cannot move request from {self.state.value} to {new_state.value}")
        self.state = new_state

    # Work item attribute bag

    def to_attributes(self) -> Dict[str, Any]:
        return {
            "identityName": self.identity_name,
            "containerName": self.container_name,
            "accountDeltas": [delta.to_dict() for delta in self.deltas],
            "state": self.state.value,
            "approver": self.approver,
            "comment": self.comment,
        }

    def to_dict(self) -> dict:
        return self.to_attributes()

    @classmethod
    def from_attributes(cls, attributes: Dict[str, Any]) -> "PamRequest":
        return cls(
            identity_name=attributes["identityName"],
            container_name=attributes["containerName"],
            deltas=[AccountDelta.from_dict(d) for d in attributes.get("accountDeltas") or []],
            state=RequestState(attributes.get("state", RequestState.DRAFTED.value)),
            approver=attributes.get("approver"),
            comment=attributes.get("comment"),
        )
