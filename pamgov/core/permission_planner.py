"""Diff a requested permission change against the grant an account or group already holds.

The PAM system stores one permission object per (container, account-or-group).
A request either creates that object, updates its rights, deletes it when every
held right is removed, or is a no-op when nothing would change.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .exceptions import ValidationError
from .workflow.plan import Operation


class ChangeType(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    NONE = "None"


@dataclass
class PermissionChange:
    change: ChangeType
    operation: Operation
    rights: List[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return self.change == ChangeType.NONE


def _ordered_unique(rights: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(rights))


def plan_permission_change(existing_rights: Optional[Iterable[str]], operation: Optional[Operation],
                           rights: Iterable[str]) -> PermissionChange:
    """Decide how a permission request applies to an existing grant.

    Args:
        existing_rights: Rights currently held, or None when no grant exists
        operation: Requested operation (None means Set)
        rights: Rights named in the request

    Returns:
        The change to perform and the rights it carries

    Raises:
        ValidationError: For operations a container permission cannot take
    """
    operation = operation or Operation.SET
    requested = _ordered_unique(rights)

    if operation not in (Operation.ADD, Operation.REMOVE, Operation.REVOKE, Operation.SET):
        raise ValidationError(f"Unknown operation type: {operation.value}", "invalidValue")

    if existing_rights is None:
        if operation in (Operation.REMOVE, Operation.REVOKE) or not requested:
            return PermissionChange(ChangeType.NONE, operation)
        return PermissionChange(ChangeType.CREATE, operation, requested)

    held = _ordered_unique(existing_rights)

    if operation == Operation.ADD:
        missing = [right for right in requested if right not in held]
        if not missing:
            return PermissionChange(ChangeType.NONE, operation)
        return PermissionChange(ChangeType.UPDATE, operation, missing)

    if operation in (Operation.REMOVE, Operation.REVOKE):
        present = [right for right in requested if right in held]
        if not present:
            return PermissionChange(ChangeType.NONE, operation)
        if set(present) == set(held):
            return PermissionChange(ChangeType.DELETE, operation, present)
        return PermissionChange(ChangeType.UPDATE, operation, present)

    # Set
    if set(requested) == set(held):
        return PermissionChange(ChangeType.NONE, operation)
    if not requested:
        return PermissionChange(ChangeType.DELETE, operation, held)
    return PermissionChange(ChangeType.UPDATE, operation, requested)
