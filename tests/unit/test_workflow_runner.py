"""Unit tests for the HTTP workflow client and runner (requests is mocked)."""
import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from pamgov.config import settings as settings_module
from pamgov.config.settings import PamConfig
from pamgov.core.exceptions import ConfigurationError
from pamgov.core.provisioning_service import create_workflow_runner
from pamgov.core.workflow import client as client_module
from pamgov.core.workflow import (
    AccountOperation,
    AccountRequest,
    HttpWorkflowRunner,
    Operation,
    PermissionRequest,
    ProvisioningPlan,
    WorkflowAPIError,
    WorkflowClient,
    WorkflowConnectionError,
    WorkflowNotFoundError,
    create_client_with_token,
)
from pamgov.core.pam_request import PamRequest


class _StubResponse:
    def __init__(self, payload=None, status_code=200, url="http://workflows:8080"):
        self._payload = payload or {}
        self.status_code = status_code
        self.text = json.dumps(self._payload)
        self.url = url

    def json(self):
        return self._payload


@pytest.fixture
def mock_post(monkeypatch):
    mock = MagicMock()
    monkeypatch.setattr(client_module.requests, "post", mock)
    return mock


def test_authenticate_service_account_stores_token(mock_post):
    mock_post.return_value = _StubResponse({"access_token": "tok-1", "expires_in": 300})
    client = WorkflowClient("http://workflows:8080/")

    assert client.authenticate_service_account("demo", "pam-provisioning", "secret") == "tok-1"

    url = mock_post.call_args.args[0]
    assert url == "http://workflows:8080/realms/demo/protocol/openid-connect/token"
    assert mock_post.call_args.kwargs["data"]["grant_type"] == "client_credentials"


def test_authentication_failure_raises(mock_post):
    mock_post.return_value = _StubResponse({"error": "invalid_client"}, status_code=401)
    with pytest.raises(WorkflowAPIError) as exc_info:
        WorkflowClient("http://workflows:8080").authenticate_service_account("demo", "x", "bad")
    assert exc_info.value.status_code == 401


def test_post_requires_authentication(mock_post):
    with pytest.raises(WorkflowAPIError):
        WorkflowClient("http://workflows:8080").post("/workflows/x/launch", json={})
    mock_post.assert_not_called()


def test_expired_token_is_refreshed(mock_post):
    mock_post.side_effect = [
        _StubResponse({"access_token": "old", "expires_in": 300}),
        _StubResponse({"access_token": "new", "expires_in": 300}),
        _StubResponse({"status": "ok"}),
    ]
    client = WorkflowClient("http://workflows:8080")
    client.authenticate_service_account("demo", "pam-provisioning", "secret")
    client._token_expires_at = datetime.now() - timedelta(seconds=1)

    client.post("/ping", json={})

    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer new"


def test_launch_posts_plan_and_arguments(mock_post):
    mock_post.return_value = _StubResponse({
        "status": "approving",
        "requestName": "0000000042",
        "messages": [{"type": "Info", "text": "Request submitted"}],
        "workItem": {"type": "Approval", "id": 7},
    })
    plan = ProvisioningPlan(identity_id="i-1", identity_name="alice")
    account_request = AccountRequest(AccountOperation.MODIFY, "Finance-PAM", "alice")
    account_request.add(PermissionRequest("Finance-Safe", Operation.ADD, ["checkout"]))
    plan.add(account_request)
    runner = HttpWorkflowRunner(create_client_with_token("http://workflows:8080", "tok"))

    session = runner.launch("PAM Provisioning", plan, {
        "containerName": "Finance-Safe",
        "pamRequest": PamRequest("alice", "Finance-Safe"),
    })

    assert mock_post.call_args.args[0] == "http://workflows:8080/workflows/PAM%20Provisioning/launch"
    payload = mock_post.call_args.kwargs["json"]
    assert payload["plan"]["accountRequests"][0]["permissionRequests"][0]["op"] == "Add"
    assert payload["arguments"]["pamRequest"]["state"] == "Drafted"
    assert session.status == "approving"
    assert session.work_item.id == "7"
    assert session.launch_messages[0].text == "Request submitted"


def test_launch_unknown_workflow(mock_post):
    mock_post.return_value = _StubResponse({"error": "not found"}, status_code=404)
    runner = HttpWorkflowRunner(create_client_with_token("http://workflows:8080", "tok"))
    with pytest.raises(WorkflowNotFoundError):
        runner.launch("Missing", None, {})


def test_launch_server_error_propagates(mock_post):
    mock_post.return_value = _StubResponse({"error": "boom"}, status_code=500)
    runner = HttpWorkflowRunner(create_client_with_token("http://workflows:8080", "tok"))
    with pytest.raises(WorkflowAPIError) as exc_info:
        runner.launch("PAM Provisioning", None, {})
    assert exc_info.value.status_code == 500


def test_launch_connection_error_is_wrapped(mock_post):
    mock_post.side_effect = requests.ConnectionError("engine down")
    runner = HttpWorkflowRunner(create_client_with_token("http://workflows:8080", "tok"))

    with pytest.raises(WorkflowConnectionError) as exc_info:
        runner.launch("PAM Provisioning", None, {})

    assert exc_info.value.endpoint == "http://workflows:8080/workflows/PAM%20Provisioning/launch"
    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)


def test_token_request_timeout_is_wrapped(mock_post):
    mock_post.side_effect = requests.Timeout("read timed out")
    with pytest.raises(WorkflowConnectionError):
        WorkflowClient("http://workflows:8080").authenticate_service_account("demo", "x", "secret")


def test_custom_token_path(mock_post):
    mock_post.return_value = _StubResponse({"access_token": "tok-1"})
    client = WorkflowClient("http://workflows:8080", token_path="/oauth/{realm}/token")

    client.authenticate_service_account("pam", "pam-provisioning", "secret")

    assert mock_post.call_args.args[0] == "http://workflows:8080/oauth/pam/token"


def test_create_workflow_runner_from_settings(mock_post):
    mock_post.return_value = _StubResponse({"access_token": "tok-1", "expires_in": 300})
    cfg = PamConfig(
        workflow_engine_url="https://workflows.local",
        workflow_auth_realm="pam",
        workflow_service_client_id="pam-svc",
        workflow_service_client_secret="s3cret",
        request_timeout=25,
    )

    runner = create_workflow_runner(cfg)

    assert isinstance(runner, HttpWorkflowRunner)
    assert runner.client.base_url == "https://workflows.local"
    assert runner.client.timeout == 25
    assert mock_post.call_args.args[0] == "https://workflows.local/realms/pam/protocol/openid-connect/token"
    assert mock_post.call_args.kwargs["data"]["client_id"] == "pam-svc"
    assert mock_post.call_args.kwargs["data"]["client_secret"] == "s3cret"
    assert mock_post.call_args.kwargs["timeout"] == 25


def test_create_workflow_runner_without_secret(mock_post, monkeypatch, tmp_path):
    real_path = settings_module.Path
    monkeypatch.setattr(settings_module, "Path",
                        lambda target: tmp_path if str(target) == "/run/secrets" else real_path(target))
    monkeypatch.delenv("WORKFLOW_SERVICE_CLIENT_SECRET", raising=False)

    with pytest.raises(ConfigurationError):
        create_workflow_runner(PamConfig())
    mock_post.assert_not_called()
