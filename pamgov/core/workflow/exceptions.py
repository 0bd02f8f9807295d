"""Workflow engine exceptions for error handling."""


class WorkflowError(Exception):
    """Base exception for all workflow engine operations."""
    pass


class WorkflowAPIError(WorkflowError):
    """HTTP error from the workflow engine API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class WorkflowConnectionError(WorkflowError):
    """Workflow engine unreachable (connection refused, timeout, DNS failure).

    Attributes:
        endpoint: URL that could not be reached
    """

    def __init__(self, message: str, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}")


class WorkflowNotFoundError(WorkflowError):
    """Workflow name is not defined on the engine."""
    pass
