"""
Container Provisioning Service: PAM access change orchestration

Builds provisioning plans for container access changes and submits them to the
workflow engine. Callers get back the initial workflow session state; the
service never waits for workflow completion.

Architecture:
    Service layer ──> provisioning_service.py ──> ContainerAccessResolver ──> Repository
                                │
                                └──> WorkflowRunner ──> workflow engine

Operations:
    - Add/remove identities (account-level permission grants)
    - Add/remove privileged items on the container managed attribute
    - Create containers
    - Pending-request guard on every container managed attribute update
    - Authenticated workflow runner built from settings
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from pamgov.config.settings import PamConfig, settings
from scripts import audit

from .constants import (
    ARG_ASSIGNMENT,
    ARG_CONTAINER_DISPLAY_NAME,
    ARG_CONTAINER_NAME,
    ARG_CONTAINER_OWNER_NAME,
    ATT_APPLICATION,
    ATT_ATTRIBUTES,
    ATT_DISPLAY_NAME,
    ATT_ID,
    ATT_NAME,
    ATT_NATIVE_IDENTITY,
    ATT_TYPE,
    OBJECT_TYPE_CONTAINER,
    OBJECT_TYPE_PRIVILEGED_DATA,
    PROV_DISPLAY_NAME,
    PROV_MANAGED_ATTRIBUTE_TYPE,
    WORKFLOW_CASE_TARGET_CLASS,
)
from .container_service import ContainerAccessResolver, get_target_display_name, load_container
from .correlation import CorrelationKeyResolver
from .exceptions import ConfigurationError, ConflictError, NotFoundError, PamError, ValidationError
from .models import Application, Identity, Link, ManagedAttribute, Target, WorkflowCase
from .pam_request import AccountDelta, PamRequest
from .permission_planner import plan_permission_change
from .privileged_items import PrivilegedItemLists
from .store import Filter, Repository
from .workflow import (
    AccountOperation,
    AccountRequest,
    AttributeRequest,
    HttpWorkflowRunner,
    Message,
    ObjectOperation,
    ObjectRequest,
    Operation,
    PermissionRequest,
    PlanSource,
    ProvisioningPlan,
    WorkflowClient,
    WorkflowError,
    WorkflowRunner,
    WorkflowSession,
)

logger = logging.getLogger(__name__)

STATUS_NOOP = "noop"
STATUS_FAILED = "failed"
NEW_OBJECT_ID = "new"


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class WorkflowResult:
    """Initial state of one submission, as reported back to the caller."""
    status: Optional[str] = None
    request_name: Optional[str] = None
    work_item_type: Optional[str] = None
    work_item_id: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    identity_id: Optional[str] = None
    error: Optional[str] = None

    @staticmethod
    def strip_padding(request_name: Optional[str]) -> Optional[str]:
        """Drop the zero padding of numeric request names ("0000000042" -> "42")."""
        if not request_name or not request_name.isdigit():
            return request_name
        return request_name.lstrip("0") or "0"

    @classmethod
    def from_session(cls, session: WorkflowSession, identity_id: Optional[str] = None) -> "WorkflowResult":
        work_item = session.work_item
        return cls(
            status=session.status,
            request_name=cls.strip_padding(session.request_name),
            work_item_type=work_item.type if work_item else None,
            work_item_id=work_item.id if work_item else None,
            messages=list(session.launch_messages),
            identity_id=identity_id,
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "requestName": self.request_name,
            "workItemType": self.work_item_type,
            "workItemId": self.work_item_id,
            "messages": [message.to_dict() for message in self.messages],
            "identityId": self.identity_id,
            "error": self.error,
        }


@dataclass
class DeprovisionResult(WorkflowResult):
    """Removal result; flags identities that keep access through group membership."""
    has_effective_access: bool = False
    identity_display_name: Optional[str] = None
    groups: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "hasEffectiveAccess": self.has_effective_access,
            "identityDisplayName": self.identity_display_name,
            "groups": list(self.groups),
        })
        return data


# ─────────────────────────────────────────────────────────────────────────────
# Privileged data suggestions
# ─────────────────────────────────────────────────────────────────────────────

class PrivilegedDataSuggester(Protocol):
    """Source of the privileged data items that may be assigned to a container."""

    def privileged_items_for_container(self, target: Target) -> Iterable[ManagedAttribute]:
        ...


class ApplicationPrivilegedDataSuggester:
    """Every privileged data object aggregated from the container's application."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def privileged_items_for_container(self, target: Target) -> Iterable[ManagedAttribute]:
        return self.repository.search(
            ManagedAttribute,
            Filter.and_(
                Filter.eq("application_id", target.application_id),
                Filter.eq("type", OBJECT_TYPE_PRIVILEGED_DATA),
            ),
            order_by="value",
        )


def _item_value(item: Union[str, Mapping[str, Any]]) -> Optional[str]:
    if isinstance(item, Mapping):
        return item.get("id") or item.get("value")
    return item


def _trim_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


# ─────────────────────────────────────────────────────────────────────────────
# Workflow Runner
# ─────────────────────────────────────────────────────────────────────────────

def create_workflow_runner(config: Optional[PamConfig] = None) -> HttpWorkflowRunner:
    """Build an authenticated HTTP runner from settings.

    Raises:
        ConfigurationError: If no service client secret is available
        WorkflowAPIError: If the token endpoint rejects the credentials
        WorkflowConnectionError: If the token endpoint cannot be reached
    """
    config = config or settings
    try:
        secret = config.service_client_secret_resolved
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    client = WorkflowClient(
        config.workflow_engine_url,
        timeout=config.request_timeout,
        token_path=config.workflow_token_path,
    )
    client.authenticate_service_account(
        config.workflow_auth_realm,
        config.workflow_service_client_id,
        secret,
    )
    logger.info("Workflow runner authenticated as %s on %s", config.workflow_service_client_id, config.workflow_engine_url)
    return HttpWorkflowRunner(client)


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator
# ─────────────────────────────────────────────────────────────────────────────

class ContainerProvisioningService:
    """Submit container access changes to the workflow engine.

    Usage:
        service = ContainerProvisioningService(repo, runner, requester="admin")
        results = service.add_identities(container_id, {alice_id: alice_link_id}, ["checkout"])
        service.remove_identities(container_id, [bob_id], select_all=True)
    """

    def __init__(
        self,
        repository: Repository,
        runner: WorkflowRunner,
        requester: str,
        config: Optional[PamConfig] = None,
        suggester: Optional[PrivilegedDataSuggester] = None,
        key_resolver: Optional[CorrelationKeyResolver] = None,
    ):
        self.repository = repository
        self.runner = runner
        self.requester = requester
        self.config = config or settings
        self.suggester = suggester or ApplicationPrivilegedDataSuggester(repository)
        self.key_resolver = key_resolver or CorrelationKeyResolver()

    def _resolver(self, target: Target) -> ContainerAccessResolver:
        return ContainerAccessResolver(self.repository, target, self.key_resolver)

    def _get_identity(self, identity_id: str) -> Identity:
        identity = self.repository.get_by_id(Identity, identity_id)
        if identity is None:
            raise NotFoundError(f"Identity '{identity_id}' not found")
        return identity

    # ── identities ──────────────────────────────────────────────────────────

    def add_identities(self, container_id: str, identity_accounts: Dict[str, str],
                       rights: List[str]) -> List[WorkflowResult]:
        """Grant ``rights`` on the container to each identity's chosen account.

        Each identity is submitted on its own; a failure is recorded in that
        identity's result and the remaining identities are still processed.
        """
        target = load_container(self.repository, container_id)
        results: List[WorkflowResult] = []
        for identity_id, link_id in identity_accounts.items():
            try:
                results.append(self.add_identity(identity_id, link_id, rights, target))
            except (PamError, WorkflowError) as exc:
                logger.warning("Failed to add identity %s to container '%s': %s", identity_id, target.name, exc)
                audit.safe_log_pam_event(
                    "pam_add_identity",
                    target.name,
                    operator=self.requester,
                    identity=identity_id,
                    details={"rights": list(rights), "error": str(exc)},
                    success=False,
                )
                results.append(WorkflowResult(status=STATUS_FAILED, identity_id=identity_id, error=str(exc)))
        return results

    def add_identity(self, identity_id: str, link_id: str, rights: List[str], target: Target) -> WorkflowResult:
        if not rights:
            raise ValidationError("At least one right is required", "invalidValue")

        resolver = self._resolver(target)
        plan = self.create_provisioning_plan(identity_id, link_id, rights, target)
        if plan.is_empty():
            logger.info("Identity %s already holds %s on '%s'; nothing to submit", identity_id, rights, target.name)
            return WorkflowResult(status=STATUS_NOOP, identity_id=identity_id)

        session = self._run_workflow(self.config.pam_provisioning_workflow, resolver, plan)
        result = WorkflowResult.from_session(session, identity_id)
        audit.safe_log_pam_event(
            "pam_add_identity",
            target.name,
            operator=self.requester,
            application=resolver.pam_application.name,
            identity=plan.identity_name,
            details={"rights": list(rights), "request_name": result.request_name, "status": result.status},
        )
        return result

    def create_provisioning_plan(self, identity_id: str, link_id: str, rights: List[str],
                                 target: Target) -> ProvisioningPlan:
        """Plan the rights the account is missing on the container.

        The plan is empty when the account already holds every requested right.
        """
        resolver = self._resolver(target)
        identity = self._get_identity(identity_id)
        link = self.repository.get_by_id(Link, link_id)
        if link is None:
            raise NotFoundError(f"Account '{link_id}' not found")
        if link.identity_id != identity.id:
            raise ValidationError(f"Account '{link.native_identity}' does not belong to '{identity.name}'", "invalidValue")

        existing_rights: Optional[List[str]] = None
        for held_link, associations in resolver.direct_permissions_for_identity(identity_id).items():
            if held_link.id == link.id:
                existing_rights = [right for association in associations for right in association.rights]

        plan = ProvisioningPlan(identity_id=identity.id, identity_name=identity.name)
        plan.add_requester(self.requester)

        change = plan_permission_change(existing_rights, Operation.ADD, rights)
        if change.is_noop:
            return plan

        application = resolver.pam_application
        account_request = AccountRequest(
            AccountOperation.MODIFY, link.application_name, link.native_identity, instance=link.instance,
        )
        permission_request = PermissionRequest(
            target.name,
            Operation.ADD,
            change.rights,
            aggregation_source=application.target_sources[0] if application.target_sources else None,
        )
        permission_request.put(ARG_ASSIGNMENT, "true")
        account_request.add(permission_request)
        plan.add(account_request)
        return plan

    def remove_identities(self, container_id: str, identity_ids: Optional[List[str]],
                          select_all: bool = False) -> List[DeprovisionResult]:
        """Remove direct access of the given identities.

        With ``select_all`` every identity with direct access is removed except
        the ones listed in ``identity_ids``.
        """
        target = load_container(self.repository, container_id)
        if select_all:
            identity_ids = self._resolver(target).direct_identity_ids(exclude=identity_ids)
        return [self.remove_identity(identity_id, target) for identity_id in identity_ids or []]

    def remove_identity(self, identity_id: str, target: Target) -> DeprovisionResult:
        resolver = self._resolver(target)
        identity = self._get_identity(identity_id)

        # Checked before submitting: the plan only removes direct grants
        has_effective_access = resolver.has_effective_access(identity_id)

        plan = self.create_deprovisioning_plan(identity_id, target)
        if plan.is_empty():
            result = DeprovisionResult(status=STATUS_NOOP, identity_id=identity_id)
        else:
            session = self._run_workflow(self.config.pam_provisioning_workflow, resolver, plan)
            base = WorkflowResult.from_session(session, identity_id)
            result = DeprovisionResult(**vars(base))
            audit.safe_log_pam_event(
                "pam_remove_identity",
                target.name,
                operator=self.requester,
                application=resolver.pam_application.name,
                identity=identity.name,
                details={"request_name": result.request_name, "status": result.status},
            )

        result.has_effective_access = has_effective_access
        if has_effective_access:
            result.identity_display_name = identity.displayable_name
            result.groups = resolver.effective_groups_for_identity(identity_id)
            logger.warning("Identity '%s' keeps access to '%s' through %s",
                           identity.name, target.name, ", ".join(result.groups))
        return result

    def create_deprovisioning_plan(self, identity_id: str, target: Target) -> ProvisioningPlan:
        """Plan removal of every direct permission the identity holds on the container."""
        resolver = self._resolver(target)
        identity = self._get_identity(identity_id)
        plan = ProvisioningPlan(identity_id=identity.id, identity_name=identity.name)
        plan.add_requester(self.requester)

        for link, associations in resolver.direct_permissions_for_identity(identity_id).items():
            account_request = AccountRequest(
                AccountOperation.MODIFY, link.application_name, link.native_identity, instance=link.instance,
            )
            for association in associations:
                permission_request = PermissionRequest(
                    target.name,
                    Operation.REMOVE,
                    association.rights_list,
                    aggregation_source=association.aggregation_source,
                )
                permission_request.put(ARG_ASSIGNMENT, "true")
                account_request.add(permission_request)
            plan.add(account_request)
        return plan

    def has_effective_access(self, container_id: str, identity_id: str) -> bool:
        target = load_container(self.repository, container_id)
        return self._resolver(target).has_effective_access(identity_id)

    def _run_workflow(self, workflow_name: str, resolver: ContainerAccessResolver,
                      plan: ProvisioningPlan) -> WorkflowSession:
        target = resolver.target
        container = resolver.container_managed_attribute()

        request = self._request_from_plan(plan, target.name)
        request.submit()

        args: Dict[str, Any] = {
            ARG_CONTAINER_NAME: target.name,
            ARG_CONTAINER_DISPLAY_NAME: get_target_display_name(target, container),
            "pamRequest": request,
        }
        if container is not None and container.owner:
            args[ARG_CONTAINER_OWNER_NAME] = container.owner
        return self.runner.launch(workflow_name, plan, args)

    @staticmethod
    def _request_from_plan(plan: ProvisioningPlan, container_name: str) -> PamRequest:
        request = PamRequest(identity_name=plan.identity_name, container_name=container_name)
        for account_request in plan.account_requests:
            delta = AccountDelta(account_request.application, account_request.native_identity)
            for permission_request in account_request.permission_requests:
                if permission_request.operation == Operation.ADD:
                    delta.add_rights.extend(permission_request.rights)
                else:
                    delta.remove_rights.extend(permission_request.rights)
            request.add_delta(delta)
        return request

    # ── container managed attribute ─────────────────────────────────────────

    def _container_context(self, container_id: str) -> tuple[Target, Application, ManagedAttribute]:
        target = load_container(self.repository, container_id)
        resolver = self._resolver(target)
        container = resolver.container_managed_attribute()
        if container is None:
            raise NotFoundError(f"Container managed attribute not found for '{target.name}'")
        return target, resolver.pam_application, container

    def add_privileged_items(self, container_id: str,
                             items: List[Union[str, Mapping[str, Any]]]) -> WorkflowResult:
        """Assign privileged data items to the container.

        Every item is validated before anything changes: items already on the
        container or not assignable to it are rejected with ``ValidationError``.
        """
        target, application, container = self._container_context(container_id)
        lists = PrivilegedItemLists.from_managed_attribute(container)
        legal = {pd.value: pd for pd in self.suggester.privileged_items_for_container(target)}

        additions: List[ManagedAttribute] = []
        for item in items:
            value = _item_value(item)
            if value in lists or any(pd.value == value for pd in additions):
                raise ValidationError(f"Privileged item '{value}' is already assigned to the container", "uniqueness")
            privileged_data = legal.get(value)
            if privileged_data is None:
                raise ValidationError(
                    "One or more of the requested privileged items can not be assigned to the container",
                    "invalidValue",
                )
            additions.append(privileged_data)

        if not additions:
            logger.info("No privileged items to add to '%s'; nothing to submit", target.name)
            return WorkflowResult(status=STATUS_NOOP)

        for privileged_data in additions:
            lists.add(
                privileged_data.value,
                privileged_data.display_name,
                privileged_data.get_attribute(ATT_TYPE),
                privileged_data.id,
            )
        return self._update_container_privileged_data(
            application, container, lists, "pam_add_privileged_items", [pd.value for pd in additions],
        )

    def remove_privileged_items(self, container_id: str, values: Optional[List[str]],
                                select_all: bool = False) -> WorkflowResult:
        """Remove privileged data items from the container (all of them with ``select_all``)."""
        _, application, container = self._container_context(container_id)
        lists = PrivilegedItemLists.from_managed_attribute(container)
        if select_all:
            removed = list(lists.values)
            lists.clear()
        else:
            removed = lists.remove_all(values or [])
        if not removed:
            logger.info("None of %s are assigned to '%s'; nothing to submit", values, container.value)
            return WorkflowResult(status=STATUS_NOOP)
        return self._update_container_privileged_data(
            application, container, lists, "pam_remove_privileged_items", removed,
        )

    def _update_container_privileged_data(self, application: Application, container: ManagedAttribute,
                                          lists: PrivilegedItemLists, event_type: audit.EventType,
                                          changed: List[str]) -> WorkflowResult:
        inner_attributes = dict(container.attributes)
        inner_attributes.update(lists.to_attributes())
        attributes = {
            ATT_APPLICATION: application.name,
            ATT_ID: container.id,
            ATT_NATIVE_IDENTITY: container.value,
            ATT_ATTRIBUTES: inner_attributes,
        }
        container_name = container.get_attribute(ATT_DISPLAY_NAME) or container.value

        self.check_no_conflicting_request(container, container_name)

        plan = self.build_container_plan(attributes)
        launch_args = {
            "applicationName": application.name,
            # Triggers a group aggregation of the container once provisioned
            "pamContainerToGroupAggregate": {
                "identity": container.value,
                "displayName": container_name,
                "objectType": OBJECT_TYPE_CONTAINER,
                "attributes": inner_attributes,
            },
            "containerTargetId": container.id,
            "owner": container.owner,
            "appOwner": application.owner,
        }
        session = self._launch_container_workflow(f"Update Container {container_name}", plan, launch_args)
        result = WorkflowResult.from_session(session)
        audit.safe_log_pam_event(
            event_type,
            container_name,
            operator=self.requester,
            application=application.name,
            details={"privileged_items": changed, "request_name": result.request_name},
        )
        return result

    def create_container(self, attributes: Dict[str, Any]) -> WorkflowResult:
        """Request a new container on an application.

        Raises:
            ValidationError: Missing name or application, or name already used on the application
            NotFoundError: Application does not exist
        """
        attribute_map = attributes.get(ATT_ATTRIBUTES) or {}
        container_name = _trim_to_none(attribute_map.get(ATT_NAME))
        if container_name is None:
            raise ValidationError("Container name is required", "invalidValue")
        application_name = _trim_to_none(attributes.get(ATT_APPLICATION))
        if application_name is None:
            raise ValidationError("Application is required", "invalidValue")
        application = self.repository.get_by_name(Application, application_name)
        if application is None:
            raise NotFoundError(f"Application '{application_name}' not found")

        duplicates = self.repository.count(ManagedAttribute, Filter.and_(
            Filter.eq("application_id", application.id),
            Filter.eq("type", OBJECT_TYPE_CONTAINER),
            Filter.eq(f"attributes.{ATT_NAME}", container_name),
        ))
        if duplicates:
            raise ValidationError(
                f"Container name '{container_name}' is not unique on '{application.name}'", "uniqueness",
            )

        plan = self.build_container_plan(attributes)
        launch_args = {
            "applicationName": application.name,
            # Triggers a target aggregation so the new container is collected
            "pamContainersToAggregate": container_name,
            "appOwner": application.owner,
        }
        session = self._launch_container_workflow(f"Create Container {container_name}", plan, launch_args)
        result = WorkflowResult.from_session(session)
        audit.safe_log_pam_event(
            "pam_create_container",
            container_name,
            operator=self.requester,
            application=application.name,
            details={"request_name": result.request_name},
        )
        return result

    def build_container_plan(self, attributes: Dict[str, Any]) -> ProvisioningPlan:
        """Plan creation (no id, blank id or ``"new"``) or update of a container managed attribute."""
        object_id = attributes.get(ATT_ID)
        if object_id is None or str(object_id).strip() in ("", NEW_OBJECT_ID):
            operation = ObjectOperation.CREATE
        else:
            operation = ObjectOperation.MODIFY

        request = ObjectRequest(
            application=attributes.get(ATT_APPLICATION),
            type=OBJECT_TYPE_CONTAINER,
            operation=operation,
            native_identity=_trim_to_none(attributes.get(ATT_NATIVE_IDENTITY)),
        )

        attribute_map = dict(attributes.get(ATT_ATTRIBUTES) or {})
        if attribute_map.get(PROV_DISPLAY_NAME) is None and attribute_map.get(ATT_DISPLAY_NAME) is not None:
            attribute_map[PROV_DISPLAY_NAME] = attribute_map[ATT_DISPLAY_NAME]

        attribute_requests = []
        for key, value in attribute_map.items():
            if key == PROV_MANAGED_ATTRIBUTE_TYPE:
                value = "null" if value is None else str(value)
            attribute_requests.append(AttributeRequest(key, Operation.SET, value))
        request.add_all(attribute_requests)

        plan = ProvisioningPlan(source=PlanSource.GROUP_MANAGEMENT)
        plan.add_requester(self.requester)
        plan.add_request(request)
        return plan

    def _launch_container_workflow(self, request_name: str, plan: ProvisioningPlan,
                                   launch_args: Dict[str, Any]) -> WorkflowSession:
        args = {"requestName": request_name, "launcher": self.requester}
        args.update(launch_args)
        logger.info("Submitting '%s' to workflow '%s'", request_name, self.config.managed_attribute_workflow)
        return self.runner.launch(self.config.managed_attribute_workflow, plan, args)

    def check_no_conflicting_request(self, container: ManagedAttribute, container_name: Optional[str] = None) -> None:
        """Refuse to submit while an incomplete workflow targets the container managed attribute.

        Advisory only: two submissions racing past this check are not prevented.

        Raises:
            ConflictError: If a pending request exists
        """
        name = container_name or container.displayable_name
        pending = self.repository.count(WorkflowCase, Filter.and_(
            Filter.eq("target_id", container.id),
            Filter.eq("target_class", WORKFLOW_CASE_TARGET_CLASS),
            Filter.eq("complete", False),
        ))
        if pending:
            logger.warning("Pending request exists for container '%s' (%d open)", name, pending)
            raise ConflictError(f"A pending request already exists for container '{name}'", name)
