"""Domain objects read and written through the Repository.

Entities compare by reference (``eq=False``) so they can be used as dict keys,
mirroring how the persistent store hands back a single instance per row.
Value objects (``PrivilegedItem``, ``GrantingSource``) compare structurally.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import (
    AGGREGATION_STATE_CONNECTED,
    OBJECT_TYPE_GROUP,
)


@dataclass
class AttributeDefinition:
    """Schema attribute. ``correlation_key`` > 0 marks a correlation key column."""
    name: str
    correlation_key: int = 0


@dataclass
class Schema:
    object_type: str
    attributes: List[AttributeDefinition] = field(default_factory=list)

    def get_attribute_definition(self, name: str) -> Optional[AttributeDefinition]:
        for definition in self.attributes:
            if definition.name == name:
                return definition
        return None


@dataclass(eq=False)
class Application:
    name: str
    id: Optional[str] = None
    owner: Optional[str] = None
    schemas: Dict[str, Schema] = field(default_factory=dict)
    target_sources: List[str] = field(default_factory=list)

    def get_schema(self, object_type: str) -> Optional[Schema]:
        return self.schemas.get(object_type)


@dataclass(eq=False)
class Identity:
    name: str
    id: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def displayable_name(self) -> str:
        return self.display_name or self.name


@dataclass(eq=False)
class Link:
    """An identity's account on an application."""
    identity_id: str
    application_id: str
    application_name: str
    native_identity: str
    id: Optional[str] = None
    instance: Optional[str] = None
    display_name: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    key1: Optional[str] = None
    key2: Optional[str] = None
    key3: Optional[str] = None
    key4: Optional[str] = None

    def get_attribute(self, name: str) -> Any:
        return self.attributes.get(name)


@dataclass(eq=False)
class ManagedAttribute:
    """Group, container or privileged data object owned by an application."""
    application_id: str
    application_name: str
    value: str
    type: str = OBJECT_TYPE_GROUP
    attribute: Optional[str] = None
    id: Optional[str] = None
    display_name: Optional[str] = None
    owner: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    key1: Optional[str] = None
    key2: Optional[str] = None
    key3: Optional[str] = None
    key4: Optional[str] = None

    @property
    def displayable_name(self) -> str:
        return self.display_name or self.value

    def get_attribute(self, name: str) -> Any:
        return self.attributes.get(name)


@dataclass(eq=False)
class Target:
    """A container (safe) as collected from the PAM target source."""
    name: str
    application_id: str
    id: Optional[str] = None
    display_name: Optional[str] = None
    native_object_id: Optional[str] = None

    @property
    def displayable_name(self) -> str:
        return self.display_name or self.name


@dataclass(eq=False)
class TargetAssociation:
    """Permission grant linking a link (``L``) or group (``A``) to a target."""
    target_id: str
    object_id: str
    owner_type: str
    rights: List[str] = field(default_factory=list)
    id: Optional[str] = None
    application_name: Optional[str] = None
    target_name: Optional[str] = None
    aggregation_source: Optional[str] = None

    @property
    def rights_list(self) -> List[str]:
        return list(self.rights)


@dataclass(eq=False)
class IdentityEntitlement:
    identity_id: str
    application_id: str
    name: str
    value: str
    id: Optional[str] = None
    aggregation_state: str = AGGREGATION_STATE_CONNECTED


@dataclass(eq=False)
class WorkflowCase:
    name: str
    target_id: Optional[str] = None
    target_class: Optional[str] = None
    complete: bool = False
    id: Optional[str] = None


@dataclass(frozen=True)
class PrivilegedItem:
    """One entry of the container's privileged data lists.

    Fields missing from a shorter trailing list are ``None``.
    """
    value: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    ref: Optional[str] = None


@dataclass(frozen=True)
class GrantingSource:
    """Account or group a permission was granted through."""
    application: Optional[str]
    native_identity: Optional[str] = None
    group: Optional[str] = None


@dataclass
class Container:
    """Read model of a container with its derived counts."""
    id: str
    name: str
    display_name: str
    application: Optional[str] = None
    owner: Optional[str] = None
    identity_count: int = 0
    privileged_item_count: int = 0
    group_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name,
            "application": self.application,
            "owner": self.owner,
            "identityTotalCount": self.identity_count,
            "privilegedItemCount": self.privileged_item_count,
            "groupCount": self.group_count,
        }
