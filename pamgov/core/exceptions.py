"""PAM container domain exceptions for error handling."""
from __future__ import annotations
from typing import Optional


class PamError(Exception):
    """Base exception for all PAM container operations."""
    pass


class NotFoundError(PamError):
    """Container, application, identity, managed attribute or link lookup failed."""
    pass


class ConfigurationError(PamError):
    """Schema or correlation-key misconfiguration. Always fatal."""
    pass


class ValidationError(PamError):
    """Caller input rejected (empty name, duplicate name, illegal privileged item...).
    
    Attributes:
        reason: Optional machine-readable reason (e.g. "uniqueness", "invalidValue")
    """
    
    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class ConflictError(PamError):
    """A pending workflow already targets the container.
    
    Attributes:
        container_name: Name of the container with the pending request
    """
    
    def __init__(self, message: str, container_name: Optional[str] = None):
        self.container_name = container_name
        self.reason = "pendingRequest"
        super().__init__(message)


class InvalidStateError(PamError):
    """Operation invoked without the state it needs (e.g. no container set)."""
    pass
