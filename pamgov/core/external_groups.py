"""Bridge between external groups/accounts and their PAM-side stubs.

External group membership lives on an external identity store (e.g. a
directory). The PAM application only knows a *stub* group carrying the
external group's native identifier and source application name; container
permissions are always granted to the stub, never to the external group.

Architecture:
    ContainerAccessResolver ──> ExternalGroupBridge ──> CorrelationKeyResolver
                                        │
                                        └──> Repository (ManagedAttribute, Link, Application)
"""
from __future__ import annotations
import logging
from typing import List, Optional

from .constants import (
    ATTR_EXTERNAL_NATIVE_IDENTIFIER,
    ATTR_EXTERNAL_SOURCE,
    OBJECT_TYPE_GROUP,
)
from .correlation import CorrelationKeyResolver
from .exceptions import ConfigurationError, InvalidStateError, NotFoundError
from .models import Application, Link, ManagedAttribute, Target
from .store import Filter, Repository

logger = logging.getLogger(__name__)


class ExternalGroupBridge:
    """Resolve external groups to stubs and back, for one container's PAM application."""

    def __init__(self, repository: Repository, target: Optional[Target],
                 key_resolver: Optional[CorrelationKeyResolver] = None):
        if target is None:
            raise InvalidStateError("No container set for external group resolution")
        self.repository = repository
        self.target = target
        self.key_resolver = key_resolver or CorrelationKeyResolver()
        self.pam_application = repository.get_by_id(Application, target.application_id)
        if self.pam_application is None:
            raise NotFoundError(f"No application found for container '{target.name}'")

    def is_external(self, group: ManagedAttribute) -> bool:
        """True when the group is owned by an application other than the container's PAM application."""
        return group.application_id != self.pam_application.id

    def stub_key_columns(self) -> tuple[Optional[str], Optional[str]]:
        """Columns holding (native identifier, source) on PAM groups; either may be None."""
        native_key = self.key_resolver.resolve_key(self.pam_application, ATTR_EXTERNAL_NATIVE_IDENTIFIER, False)
        source_key = self.key_resolver.resolve_key(self.pam_application, ATTR_EXTERNAL_SOURCE, False)
        return native_key, source_key

    def find_stub_for_external(self, external_group: ManagedAttribute) -> Optional[ManagedAttribute]:
        """Return the PAM stub group that proxies ``external_group``, or None if there is no bridge."""
        native_key, source_key = self.stub_key_columns()
        if not native_key or not source_key:
            return None

        stubs: List[ManagedAttribute] = list(self.repository.search(
            ManagedAttribute,
            Filter.and_(
                Filter.eq("type", OBJECT_TYPE_GROUP),
                Filter.eq(native_key, external_group.value),
                Filter.eq(source_key, external_group.application_name),
            ),
        ))
        if not stubs:
            return None
        if len(stubs) == 1:
            return stubs[0]

        on_pam_app = [stub for stub in stubs if stub.application_id == self.pam_application.id]
        if not on_pam_app:
            logger.warning(
                "Found %d stub groups for external group '%s' but none on '%s'",
                len(stubs), external_group.value, self.pam_application.name,
            )
            return None
        if len(on_pam_app) > 1:
            logger.warning(
                "Found %d stub groups for external group '%s' on '%s'; using %s",
                len(on_pam_app), external_group.value, self.pam_application.name, on_pam_app[0].id,
            )
        return on_pam_app[0]

    def resolve_membership_group(self, group_id: str) -> ManagedAttribute:
        """Return the group whose membership counts: the external group for a stub, else the group itself.

        Raises:
            NotFoundError: If the group or the stub's source application does not exist
            ConfigurationError: If more than one external group matches the stub
        """
        group = self.repository.get_by_id(ManagedAttribute, group_id)
        if group is None:
            raise NotFoundError(f"Group '{group_id}' not found")

        native_identifier = group.get_attribute(ATTR_EXTERNAL_NATIVE_IDENTIFIER)
        if not native_identifier:
            return group

        source = group.get_attribute(ATTR_EXTERNAL_SOURCE)
        external_app = self.repository.get_by_name(Application, source)
        if external_app is None:
            raise NotFoundError(f"External source application '{source}' not found for group '{group.value}'")

        matches = list(self.repository.search(
            ManagedAttribute,
            Filter.and_(
                Filter.eq("application_id", external_app.id),
                Filter.eq("type", OBJECT_TYPE_GROUP),
                Filter.eq("value", native_identifier),
            ),
        ))
        if len(matches) > 1:
            raise ConfigurationError(
                f"Multiple groups on '{external_app.name}' match native identifier '{native_identifier}'"
            )
        if not matches:
            logger.warning("Stub group '%s' points at missing external group '%s' on '%s'",
                           group.value, native_identifier, external_app.name)
            return group
        return matches[0]

    def external_link_for(self, local_link: Link) -> Optional[Link]:
        """Return the real external account behind a local/stub account, or None.

        Raises:
            NotFoundError: If the configured source application cannot be found
        """
        native_identifier = local_link.get_attribute(ATTR_EXTERNAL_NATIVE_IDENTIFIER)
        source = local_link.get_attribute(ATTR_EXTERNAL_SOURCE)
        if not native_identifier or not source:
            return None

        external_app = self.repository.get_by_name(Application, source)
        if external_app is None:
            raise NotFoundError(f"External source application '{source}' not found")

        links = self.repository.search(
            Link,
            Filter.and_(
                Filter.eq("application_id", external_app.id),
                Filter.eq("native_identity", native_identifier),
            ),
        )
        return next(links, None)
