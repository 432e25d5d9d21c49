# Overview: Fire-and-forget audit log emitter for the remote audit service.

"""
Audit emitter.

The vendor backend does not own the audit trail; it reports every mutation
to the audit service and moves on. emit_audit_log never raises: missing
configuration, transport errors and non-2xx responses are logged locally
and swallowed. There is no retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app

from .dispatch import IntegrationClient, RetryPolicy

AUDIT_SOURCE = "vendor-backend"


@dataclass(frozen=True)
class AuditContext:
    """Who/where a mutation came from, forwarded verbatim to the audit service."""
    user_id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    actor_email: str | None = None
    actor_name: str | None = None
    api_key_id: int | None = None


class AuditClient(IntegrationClient):
    name = "audit"
    requires_api_key = True

    @classmethod
    def from_config(cls, config) -> "AuditClient":
        return cls(
            base_url=config.get("AUDIT_API_URL"),
            api_key=config.get("AUDIT_API_KEY"),
            policy=RetryPolicy(attempts=1, timeout=config.get("AUDIT_TIMEOUT_SECONDS", 3.0)),
            transport=config.get("INTEGRATIONS_TRANSPORT"),
        )

    def send(self, payload: dict) -> bool:
        if not self.enabled:
            current_app.logger.warning(
                "Audit service not configured: skipping audit log %s", payload.get("action")
            )
            return False
        return self.dispatch("POST", "/audit-logs", payload=payload) is not None


def build_audit_payload(
    *,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    changes: dict | None = None,
    audit: AuditContext | None = None,
    metadata: dict | None = None,
) -> dict:
    audit = audit or AuditContext()

    meta: dict[str, Any] = {"source": AUDIT_SOURCE}
    if audit.actor_email:
        meta["actorEmail"] = audit.actor_email
    if audit.actor_name:
        meta["actorName"] = audit.actor_name
    if audit.api_key_id is not None:
        meta["apiKeyId"] = audit.api_key_id
    if metadata:
        meta.update(metadata)

    payload: dict[str, Any] = {
        "userId": audit.user_id,
        "action": action,
        "entityType": entity_type,
        "entityId": entity_id,
        "changes": changes or {},
        "metadata": meta,
    }
    if audit.ip_address:
        payload["ipAddress"] = audit.ip_address
    if audit.user_agent:
        payload["userAgent"] = audit.user_agent
    return payload


def emit_audit_log(
    *,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    changes: dict | None = None,
    audit: AuditContext | None = None,
    metadata: dict | None = None,
) -> bool:
    """
    Report a mutation to the audit service. Returns True when the service
    acknowledged it; False on any failure (already logged).
    """
    payload = build_audit_payload(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=changes,
        audit=audit,
        metadata=metadata,
    )
    try:
        return AuditClient.from_config(current_app.config).send(payload)
    except Exception:
        # Anything unexpected (bad config, serialization) still must not
        # reach the caller.
        current_app.logger.exception("Audit emitter failed for action %s", action)
        return False
