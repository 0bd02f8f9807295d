"""Low-level HTTP client for the workflow engine API.

Handles authentication, token management, and HTTP operations.
"""
from __future__ import annotations
import os
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import WorkflowAPIError, WorkflowConnectionError

REQUEST_TIMEOUT = 10
# Client-credentials token endpoint; {realm} is the service account realm
DEFAULT_TOKEN_PATH = "/realms/{realm}/protocol/openid-connect/token"


class WorkflowClient:
    """HTTP client for the workflow engine with automatic token management.

    Features:
    - Client-credentials authentication with automatic refresh
    - Centralized error handling

    Usage:
        client = WorkflowClient("http://workflows:8080")
        client.authenticate_service_account("demo", "automation-cli", "secret")
        response = client.post("/workflows/PAM%20Provisioning/launch", json={...})
    """

    def __init__(self, base_url: Optional[str] = None, timeout: int = REQUEST_TIMEOUT,
                 token_path: str = DEFAULT_TOKEN_PATH):
        """Initialize workflow client.

        Args:
            base_url: Workflow engine base URL (defaults to WORKFLOW_ENGINE_URL env var)
            timeout: Per-request timeout in seconds
            token_path: Token endpoint path on the base URL, formatted with the realm
        """
        self.base_url = (base_url or os.environ.get("WORKFLOW_ENGINE_URL", "http://workflows:8080")).rstrip("/")
        self.timeout = timeout
        self.token_path = token_path
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where the service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token
        """
        self._auth_params = {
            "auth_realm": auth_realm,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._token, expires_in = self._get_service_account_token(auth_realm, client_id, client_secret)
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
        return self._token

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            raise WorkflowAPIError(401, "Not authenticated - call authenticate_service_account first", "")

        # Refresh if token expired or expiring soon (within 10 seconds)
        if datetime.now() >= self._token_expires_at - timedelta(seconds=10) and self._auth_params:
            self._token, expires_in = self._get_service_account_token(
                self._auth_params["auth_realm"],
                self._auth_params["client_id"],
                self._auth_params["client_secret"],
            )
            self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication.

        Args:
            path: API endpoint path
            json: JSON payload
            **kwargs: Additional arguments for requests.post

        Returns:
            Response object

        Raises:
            WorkflowAPIError: On HTTP error
            WorkflowConnectionError: If the engine cannot be reached
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        url = f"{self.base_url}{path}"
        try:
            resp = requests.post(url, json=json, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise WorkflowConnectionError(str(exc), url) from exc
        self._handle_error(resp)
        return resp

    def _get_service_account_token(self, auth_realm: str, client_id: str, client_secret: str) -> tuple[str, int]:
        """Fetch a service account token using client credentials flow."""
        url = f"{self.base_url}{self.token_path.format(realm=auth_realm)}"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        try:
            resp = requests.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise WorkflowConnectionError(str(exc), url) from exc
        if resp.status_code != 200:
            raise WorkflowAPIError(resp.status_code, resp.text, url)
        payload = resp.json()
        # Conservative expiry when the server does not say
        return payload["access_token"], int(payload.get("expires_in", 60))

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            WorkflowAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            raise WorkflowAPIError(resp.status_code, resp.text, resp.url)


def create_client_with_token(base_url: str, token: str, expires_in: int = 3600) -> WorkflowClient:
    """Create a pre-authenticated WorkflowClient from an already obtained token.

    Args:
        base_url: Workflow engine base URL
        token: Pre-obtained access token
        expires_in: Token validity in seconds (default: 1 hour)

    Returns:
        WorkflowClient instance with token pre-set (no auto-refresh)
    """
    client = WorkflowClient(base_url)
    client._token = token
    client._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
    return client
