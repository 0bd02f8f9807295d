"""Container access resolution.

Answers who can reach a container (safe) and how:

- *direct* access: the identity's PAM account holds a permission on the container
  (target association with owner type ``L``).
- *effective* access: the identity is a connected member of a group that holds a
  permission on the container (owner type ``A``). The group is either a local PAM
  group, or an external group whose PAM stub holds the permission.

Every method builds ``Filter`` predicates and runs them through the Repository;
nothing here writes, so one resolver per container may be shared by readers.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from .constants import (
    AGGREGATION_STATE_CONNECTED,
    ATTR_EXTERNAL_NATIVE_IDENTIFIER,
    ATTR_EXTERNAL_SOURCE,
    OBJECT_TYPE_CONTAINER,
    OBJECT_TYPE_GROUP,
    OWNER_TYPE_ATTRIBUTE,
    OWNER_TYPE_LINK,
)
from .correlation import CorrelationKeyResolver
from .exceptions import InvalidStateError, NotFoundError
from .external_groups import ExternalGroupBridge
from .models import (
    Application,
    Container,
    Identity,
    IdentityEntitlement,
    Link,
    ManagedAttribute,
    PrivilegedItem,
    Target,
    TargetAssociation,
)
from .permissions import Grant, MergedPermission, PermissionAggregator, group_source, link_source
from .privileged_items import PrivilegedItemLists
from .store import Filter, Repository

# Entitlement columns joined to the group they reference
_ENTITLEMENT_TO_GROUP = {"name": "attribute", "value": "value", "application_id": "application_id"}


def get_target_display_name(target: Target, container: Optional[ManagedAttribute]) -> str:
    """Display name fallback: managed attribute display name, then its value, then the target."""
    if container is not None:
        if container.display_name:
            return container.display_name
        if container.value:
            return container.value
    return target.displayable_name


class ContainerAccessResolver:
    """Query construction and reads for one container.

    Usage:
        resolver = ContainerAccessResolver(repo, target)
        resolver.total_access_count()
        repo.count(Identity, Filter.and_(resolver.effective_access_filter(), Filter.eq("id", alice.id)))
    """

    def __init__(self, repository: Repository, target: Optional[Target] = None,
                 key_resolver: Optional[CorrelationKeyResolver] = None):
        self.repository = repository
        self.key_resolver = key_resolver or CorrelationKeyResolver()
        self._target: Optional[Target] = None
        self._bridge: Optional[ExternalGroupBridge] = None
        if target is not None:
            self.set_target(target)

    # ── context ─────────────────────────────────────────────────────────────

    @property
    def target(self) -> Optional[Target]:
        return self._target

    def set_target(self, target: Optional[Target]) -> None:
        self._target = target
        self._bridge = None

    def _require_target(self) -> Target:
        if self._target is None:
            raise InvalidStateError("No container set on the access resolver")
        return self._target

    @property
    def bridge(self) -> ExternalGroupBridge:
        target = self._require_target()
        if self._bridge is None:
            self._bridge = ExternalGroupBridge(self.repository, target, self.key_resolver)
        return self._bridge

    @property
    def pam_application(self) -> Application:
        return self.bridge.pam_application

    def container_managed_attribute(self) -> Optional[ManagedAttribute]:
        """The container's managed attribute on the PAM application, if aggregated."""
        target = self._require_target()
        return next(self.repository.search(
            ManagedAttribute,
            Filter.and_(
                Filter.eq("application_id", target.application_id),
                Filter.eq("type", OBJECT_TYPE_CONTAINER),
                Filter.eq("value", target.native_object_id or target.name),
            ),
        ), None)

    def display_name(self) -> str:
        return get_target_display_name(self._require_target(), self.container_managed_attribute())

    # ── predicates ──────────────────────────────────────────────────────────

    def _association_filter(self, owner_type: str) -> Filter:
        target = self._require_target()
        return Filter.and_(
            Filter.eq("target_id", target.id),
            Filter.eq("owner_type", owner_type),
        )

    def _holds_container_permission(self, owner_type: str) -> Filter:
        return Filter.subquery("id", TargetAssociation, "object_id", self._association_filter(owner_type))

    def direct_access_filter(self) -> Filter:
        """Identities whose PAM account holds a permission on the container."""
        return Filter.subquery("id", Link, "identity_id", Filter.and_(
            Filter.eq("application_id", self.pam_application.id),
            self._holds_container_permission(OWNER_TYPE_LINK),
        ))

    def local_group_filter(self) -> Filter:
        """Entitlements to a group that itself holds a permission on the container."""
        return Filter.join(ManagedAttribute, _ENTITLEMENT_TO_GROUP, Filter.and_(
            Filter.eq("type", OBJECT_TYPE_GROUP),
            self._holds_container_permission(OWNER_TYPE_ATTRIBUTE),
        ))

    def external_group_filter(self) -> Optional[Filter]:
        """Entitlements to an external group whose PAM stub holds a permission on the container.

        None when the PAM group schema has no native identifier correlation attribute.
        """
        pam_app = self.pam_application
        native_key = self.key_resolver.resolve_key(pam_app, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False)
        if not native_key:
            return None

        external_to_stub = {"value": native_key}
        source_key = self.key_resolver.resolve_key(pam_app, ATTR_EXTERNAL_SOURCE, False)
        if source_key:
            external_to_stub["application_name"] = source_key

        stub = Filter.join(ManagedAttribute, external_to_stub, Filter.and_(
            Filter.eq("type", OBJECT_TYPE_GROUP),
            Filter.eq("application_id", pam_app.id),
            self._holds_container_permission(OWNER_TYPE_ATTRIBUTE),
        ))
        return Filter.join(ManagedAttribute, _ENTITLEMENT_TO_GROUP, Filter.and_(
            Filter.eq("type", OBJECT_TYPE_GROUP),
            Filter.ne("application_id", pam_app.id),
            stub,
        ))

    def effective_entitlement_filter(self) -> Filter:
        """Connected entitlements granting access through a local or external group."""
        return Filter.and_(
            Filter.eq("aggregation_state", AGGREGATION_STATE_CONNECTED),
            Filter.or_(self.local_group_filter(), self.external_group_filter()),
        )

    def effective_access_filter(self, entity: type = Identity) -> Filter:
        """Effective access predicate over ``Identity`` or ``IdentityEntitlement``."""
        entitlements = self.effective_entitlement_filter()
        if entity is IdentityEntitlement:
            return entitlements
        if entity is Identity:
            return Filter.subquery("id", IdentityEntitlement, "identity_id", entitlements)
        raise ValueError(f"Effective access cannot be expressed over {entity.__name__}")

    def total_access_filter(self) -> Filter:
        return Filter.or_(self.direct_access_filter(), self.effective_access_filter())

    # ── reads ───────────────────────────────────────────────────────────────

    def total_access_count(self) -> int:
        """Distinct identities with direct or effective access (counted once)."""
        return self.repository.count(Identity, self.total_access_filter())

    def direct_identity_ids(self, exclude: Optional[Iterable[str]] = None) -> List[str]:
        query = self.direct_access_filter()
        excluded = list(exclude or [])
        if excluded:
            query = Filter.and_(query, Filter.not_(Filter.in_("id", excluded)))
        return [row[0] for row in self.repository.search(Identity, query, columns=["id"])]

    def has_effective_access(self, identity_id: str) -> bool:
        query = Filter.and_(self.effective_access_filter(), Filter.eq("id", identity_id))
        return self.repository.count(Identity, query) > 0

    def group_count(self) -> int:
        return self.repository.count(ManagedAttribute, self._holds_container_permission(OWNER_TYPE_ATTRIBUTE))

    def privileged_item_lists(self) -> PrivilegedItemLists:
        container = self.container_managed_attribute()
        if container is None:
            return PrivilegedItemLists()
        return PrivilegedItemLists.from_managed_attribute(container)

    def privileged_items(self) -> List[PrivilegedItem]:
        return self.privileged_item_lists().items()

    def privileged_item_count(self) -> int:
        return len(self.privileged_item_lists())

    def direct_permissions_for_identity(self, identity_id: str) -> Dict[Link, List[TargetAssociation]]:
        """Permission grants on the container held by each of the identity's PAM accounts."""
        target = self._require_target()
        links = self.repository.search(Link, Filter.and_(
            Filter.eq("identity_id", identity_id),
            Filter.eq("application_id", self.pam_application.id),
        ))
        permissions: Dict[Link, List[TargetAssociation]] = {}
        for link in links:
            grants = list(self.repository.search(TargetAssociation, Filter.and_(
                Filter.eq("target_id", target.id),
                Filter.eq("owner_type", OWNER_TYPE_LINK),
                Filter.eq("object_id", link.id),
            )))
            if grants:
                permissions[link] = grants
        return permissions

    def _membership_groups(self, identity_id: str) -> List[ManagedAttribute]:
        """Groups granting the identity effective access, as named by the entitlement."""
        entitlements = self.repository.search(IdentityEntitlement, Filter.and_(
            self.effective_access_filter(IdentityEntitlement),
            Filter.eq("identity_id", identity_id),
        ))
        groups: Dict[str, ManagedAttribute] = {}
        for entitlement in entitlements:
            group = next(self.repository.search(ManagedAttribute, Filter.and_(
                Filter.eq("type", OBJECT_TYPE_GROUP),
                Filter.eq("application_id", entitlement.application_id),
                Filter.eq("attribute", entitlement.name),
                Filter.eq("value", entitlement.value),
            )), None)
            if group is not None:
                groups.setdefault(group.id, group)
        return list(groups.values())

    def effective_groups_for_identity(self, identity_id: str) -> List[str]:
        """Display names of the groups through which the identity still reaches the container."""
        return [group.displayable_name for group in self._membership_groups(identity_id)]

    def effective_permissions_for_identity(self, identity_id: str) -> List[Grant]:
        """(right, source) pairs inherited through group membership."""
        target = self._require_target()
        grants: List[Grant] = []
        for group in self._membership_groups(identity_id):
            holder = self.bridge.find_stub_for_external(group) if self.bridge.is_external(group) else group
            if holder is None:
                continue
            associations = self.repository.search(TargetAssociation, Filter.and_(
                Filter.eq("target_id", target.id),
                Filter.eq("owner_type", OWNER_TYPE_ATTRIBUTE),
                Filter.eq("object_id", holder.id),
            ))
            source = group_source(group)
            for association in associations:
                grants.extend((right, source) for right in association.rights)
        return grants

    def identity_permissions(self, identity_id: str) -> List[MergedPermission]:
        """Direct then group-derived rights of one identity, merged per right."""
        direct: List[Grant] = []
        for link, associations in self.direct_permissions_for_identity(identity_id).items():
            source = link_source(link)
            for association in associations:
                direct.extend((right, source) for right in association.rights)
        return PermissionAggregator.merge(direct, self.effective_permissions_for_identity(identity_id))

    def summary(self) -> Container:
        target = self._require_target()
        container = self.container_managed_attribute()
        return Container(
            id=target.id,
            name=target.name,
            display_name=get_target_display_name(target, container),
            application=self.pam_application.name,
            owner=container.owner if container is not None else None,
            identity_count=self.total_access_count(),
            privileged_item_count=self.privileged_item_count(),
            group_count=self.group_count(),
        )


def load_container(repository: Repository, container_id: str) -> Target:
    """Fetch a container by id.

    Raises:
        NotFoundError: If no container has that id
    """
    target = repository.get_by_id(Target, container_id)
    if target is None:
        raise NotFoundError(f"Container '{container_id}' not found")
    return target
