"""Audit logging utilities for PAM container provisioning submissions."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Literal

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
_default_secret_paths: list[Path] = []
_env_secret_path_str = os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE")
_env_secret_path: Path | None = None
if _env_secret_path_str:
    _env_secret_path = Path(_env_secret_path_str)
    _default_secret_paths.append(_env_secret_path)
_default_secret_paths.extend([
    Path(".runtime/secrets/audit_log_signing_key"),
    Path(".runtime/audit/audit_log_signing_key"),
])
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "pam-events.jsonl"


def _get_signing_key() -> bytes:
    """Get the audit signing key: key file, then environment, then known paths, then demo default."""
    if _env_secret_path and _env_secret_path.exists():
        try:
            return _env_secret_path.read_text(encoding="utf-8").strip().encode("utf-8")
        except OSError:
            pass
    if "AUDIT_LOG_SIGNING_KEY" in os.environ:
        return os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip().encode("utf-8")
    for path in _default_secret_paths:
        if path.exists():
            try:
                return path.read_text(encoding="utf-8").strip().encode("utf-8")
            except OSError:
                continue
    demo_default = os.environ.get("AUDIT_LOG_SIGNING_KEY_DEMO", "demo-audit-signing-key-change-in-production")
    return demo_default.encode("utf-8")


EventType = Literal[
    "pam_add_identity", "pam_remove_identity",
    "pam_add_privileged_items", "pam_remove_privileged_items",
    "pam_create_container",
]


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_pam_event(
    event_type: EventType,
    container: str,
    *,
    operator: str = "system",
    application: str | None = None,
    identity: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append a signed provisioning event to the audit trail.
    
    Args:
        event_type: Type of container operation
        container: Container (safe) name the operation targets
        operator: Requester who submitted the operation
        application: PAM application owning the container
        identity: Identity affected, for identity add/remove
        details: Additional context (rights, privileged items, request name...)
        success: Whether the submission succeeded
    """
    _ensure_audit_dir()
    
    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "container": container,
        "operator": operator,
        "success": success,
        "details": details or {},
    }
    # Container creation and privileged item updates have no identity
    if application:
        event["application"] = application
    if identity:
        event["identity"] = identity
    
    signature = _sign_event(event)
    if signature:
        event["signature"] = signature
    
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")
    
    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_pam_event(
    event_type: EventType,
    container: str,
    *,
    operator: str = "system",
    application: str | None = None,
    identity: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log a PAM event without ever raising.
    
    Audit failures must not fail a submission that already reached the
    workflow engine; they are reported on stderr instead.
    
    Returns:
        True if event was logged successfully, False if logging failed
    """
    try:
        log_pam_event(
            event_type,
            container,
            operator=operator,
            application=application,
            identity=identity,
            details=details,
            success=success,
        )
        return True
    except Exception as e:
        print(
            f"[audit] Warning: Failed to log {event_type} event for {container}: {e}",
            file=sys.stderr
        )
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.
    
    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0
    
    total = 0
    valid = 0
    
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            stored_sig = event.pop("signature", "")
            if stored_sig and hmac.compare_digest(stored_sig, _sign_event(event)):
                valid += 1
    
    return total, valid


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
