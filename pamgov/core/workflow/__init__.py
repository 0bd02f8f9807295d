"""Workflow engine integration.

Architecture:
- plan.py: Provisioning plan model (account, permission and object requests)
- client.py: HTTP client with client-credentials authentication and auto-refresh
- runner.py: WorkflowRunner protocol, WorkflowSession, HttpWorkflowRunner
- exceptions.py: Typed exceptions for error handling
"""
from .client import WorkflowClient, create_client_with_token, DEFAULT_TOKEN_PATH, REQUEST_TIMEOUT
from .exceptions import WorkflowError, WorkflowAPIError, WorkflowConnectionError, WorkflowNotFoundError
from .plan import (
    AccountOperation,
    AccountRequest,
    AttributeRequest,
    ObjectOperation,
    ObjectRequest,
    Operation,
    PermissionRequest,
    PlanSource,
    ProvisioningPlan,
)
from .runner import HttpWorkflowRunner, Message, WorkItemRef, WorkflowRunner, WorkflowSession

__all__ = [
    # Client
    "WorkflowClient",
    "create_client_with_token",
    "DEFAULT_TOKEN_PATH",
    "REQUEST_TIMEOUT",

    # Exceptions
    "WorkflowError",
    "WorkflowAPIError",
    "WorkflowConnectionError",
    "WorkflowNotFoundError",

    # Plan
    "AccountOperation",
    "AccountRequest",
    "AttributeRequest",
    "ObjectOperation",
    "ObjectRequest",
    "Operation",
    "PermissionRequest",
    "PlanSource",
    "ProvisioningPlan",

    # Runner
    "HttpWorkflowRunner",
    "Message",
    "WorkItemRef",
    "WorkflowRunner",
    "WorkflowSession",
]
