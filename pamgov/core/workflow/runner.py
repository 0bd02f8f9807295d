"""WorkflowRunner capability: launch a named workflow with a plan and arguments.

Launches are asynchronous; the returned ``WorkflowSession`` reflects the
initial state only (launch status, messages, and any work item created for an
approval step).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from urllib.parse import quote

from .client import WorkflowClient
from .exceptions import WorkflowAPIError, WorkflowNotFoundError
from .plan import ProvisioningPlan

logger = logging.getLogger(__name__)


@dataclass
class Message:
    text: str
    type: str = "Info"

    @property
    def is_error(self) -> bool:
        return self.type.lower() == "error"

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass
class WorkItemRef:
    type: str
    id: str


@dataclass
class WorkflowSession:
    """Initial state of a launched workflow."""
    status: Optional[str] = None
    launch_messages: List[Message] = field(default_factory=list)
    work_item: Optional[WorkItemRef] = None
    request_name: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WorkflowSession":
        work_item = payload.get("workItem")
        return cls(
            status=payload.get("status"),
            launch_messages=[
                Message(text=msg.get("text", ""), type=msg.get("type", "Info"))
                for msg in payload.get("messages") or []
            ],
            work_item=WorkItemRef(type=work_item["type"], id=str(work_item["id"])) if work_item else None,
            request_name=payload.get("requestName"),
        )


@runtime_checkable
class WorkflowRunner(Protocol):
    def launch(self, workflow_name: str, plan: Optional[ProvisioningPlan], args: Dict[str, Any]) -> WorkflowSession:
        ...


def _jsonable(value: Any) -> Any:
    """Convert launch arguments (plans, request records, enums) to JSON types."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return value


class HttpWorkflowRunner:
    """WorkflowRunner backed by the workflow engine REST API.

    Usage:
        client = WorkflowClient(settings.workflow_engine_url)
        client.authenticate_service_account(realm, client_id, secret)
        runner = HttpWorkflowRunner(client)
        session = runner.launch("PAM Provisioning", plan, {"containerName": "Finance-Safe"})
    """

    def __init__(self, client: WorkflowClient):
        self.client = client

    def launch(self, workflow_name: str, plan: Optional[ProvisioningPlan], args: Dict[str, Any]) -> WorkflowSession:
        """Launch a workflow.

        Raises:
            WorkflowNotFoundError: If the engine does not know the workflow
            WorkflowAPIError: On any other HTTP error
        """
        payload = {
            "plan": plan.to_dict() if plan is not None else None,
            "arguments": _jsonable(args),
        }
        try:
            resp = self.client.post(f"/workflows/{quote(workflow_name, safe='')}/launch", json=payload)
        except WorkflowAPIError as exc:
            if exc.status_code == 404:
                raise WorkflowNotFoundError(f"Unknown workflow: {workflow_name}") from exc
            raise
        session = WorkflowSession.from_dict(resp.json() or {})
        logger.info("Launched workflow '%s' (status=%s, request=%s)", workflow_name, session.status, session.request_name)
        return session
