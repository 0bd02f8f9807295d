"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PAM_PROVISIONING_WORKFLOW = "PAM Provisioning"
DEFAULT_MANAGED_ATTRIBUTE_WORKFLOW = "Entitlement Update"
DEFAULT_WORKFLOW_TOKEN_PATH = "/realms/{realm}/protocol/openid-connect/token"
DEMO_SERVICE_CLIENT_SECRET = "demo-service-secret"
DEMO_AUDIT_SIGNING_KEY = "demo-audit-signing-key-change-in-production"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).
    
    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)
    
    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name
    
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")
    
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value
    
    return None


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


@dataclass
class PamConfig:
    """PAM container services configuration."""
    demo_mode: bool = False
    
    # Workflow engine
    workflow_engine_url: str = "http://workflows:8080"
    workflow_auth_realm: str = "demo"
    workflow_token_path: str = DEFAULT_WORKFLOW_TOKEN_PATH
    workflow_service_client_id: str = "pam-provisioning"
    workflow_service_client_secret: str = ""
    request_timeout: int = 10
    
    # Workflow names
    pam_provisioning_workflow: str = DEFAULT_PAM_PROVISIONING_WORKFLOW
    managed_attribute_workflow: str = DEFAULT_MANAGED_ATTRIBUTE_WORKFLOW
    
    # Audit
    audit_log_signing_key: str = ""
    
    @property
    def service_client_secret_resolved(self) -> str:
        """Get the workflow engine service client secret.
        
        Priority:
        1. Demo mode: hardcoded "demo-service-secret"
        2. Configured value in workflow_service_client_secret
        3. Docker secrets: /run/secrets/workflow_service_client_secret
        4. Environment variable: WORKFLOW_SERVICE_CLIENT_SECRET
            
        Raises:
            ValueError: If secret not found in production mode
        """
        if self.demo_mode:
            return DEMO_SERVICE_CLIENT_SECRET
        
        if self.workflow_service_client_secret:
            return self.workflow_service_client_secret
        
        for secret_name in ["workflow_service_client_secret", "workflow-service-client-secret"]:
            secret_path = Path("/run/secrets") / secret_name
            if secret_path.exists():
                secret = secret_path.read_text().strip()
                if secret:
                    return secret
        
        secret = os.environ.get("WORKFLOW_SERVICE_CLIENT_SECRET")
        if secret:
            return secret
        
        raise ValueError(
            "WORKFLOW_SERVICE_CLIENT_SECRET not found. "
            "Set DEMO_MODE=true or provide secret via Docker secrets or environment variable."
        )


def load_settings() -> PamConfig:
    """Load settings from environment and /run/secrets."""
    demo_mode = _env_bool("DEMO_MODE")
    
    workflow_service_client_secret = _load_secret_from_file(
        "workflow_service_client_secret",
        "WORKFLOW_SERVICE_CLIENT_SECRET",
    ) or ""
    
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    elif demo_mode:
        audit_log_signing_key = os.environ.get("AUDIT_LOG_SIGNING_KEY_DEMO", DEMO_AUDIT_SIGNING_KEY)
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
        print(f"[demo-mode] Using demo AUDIT_LOG_SIGNING_KEY: {audit_log_signing_key[:20]}...")
    
    try:
        request_timeout = int(os.environ.get("WORKFLOW_REQUEST_TIMEOUT", "10"))
    except ValueError:
        print("[settings] WARNING: WORKFLOW_REQUEST_TIMEOUT is not an integer, using 10")
        request_timeout = 10
    
    config = PamConfig(
        demo_mode=demo_mode,
        workflow_engine_url=os.environ.get("WORKFLOW_ENGINE_URL", "http://workflows:8080").rstrip("/"),
        workflow_auth_realm=os.environ.get("WORKFLOW_AUTH_REALM", "demo"),
        workflow_token_path=os.environ.get("WORKFLOW_TOKEN_PATH", DEFAULT_WORKFLOW_TOKEN_PATH),
        workflow_service_client_id=os.environ.get("WORKFLOW_SERVICE_CLIENT_ID", "pam-provisioning"),
        workflow_service_client_secret=workflow_service_client_secret,
        request_timeout=request_timeout,
        pam_provisioning_workflow=os.environ.get("PAM_PROVISIONING_WORKFLOW", DEFAULT_PAM_PROVISIONING_WORKFLOW),
        managed_attribute_workflow=os.environ.get("MANAGED_ATTRIBUTE_WORKFLOW", DEFAULT_MANAGED_ATTRIBUTE_WORKFLOW),
        audit_log_signing_key=audit_log_signing_key or "",
    )
    
    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; workflow_engine={config.workflow_engine_url}; "
          f"client_id={config.workflow_service_client_id}")
    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")
    
    return config


settings: PamConfig = load_settings()
