# Overview: Service-layer operations for API keys; generation, hashing, validation and lifecycle.

"""
API Key Service

SECURITY FEATURES:
- Keys are "pk_" + 32 random bytes (64 hex chars) from secrets
- Only the SHA-256 hash is stored; plaintext is returned once at creation
- Validation rejects unknown, inactive/revoked and expired keys with a reason
- last_used_at advances on every successful validation
- Deleting a key through the API revokes it (row kept for audit)
"""

import hashlib
import secrets
from dataclasses import dataclass

from ..extensions import db
from ..models import ApiKey
from ..integrations import AuditContext, emit_audit_log
from ..validation import NotFoundError
from ..time_utils import utcnow

KEY_PREFIX = "pk_"
WILDCARD_SCOPE = "*"
DEFAULT_RATE_LIMIT = 100


@dataclass
class ApiKeyValidation:
    valid: bool
    api_key: ApiKey | None = None
    error: str | None = None


def generate_api_key() -> str:
    """
    Generate a new plaintext API key.

    WHY secrets.token_hex: cryptographically secure PRNG.
    """
    return KEY_PREFIX + secrets.token_hex(32)


def hash_api_key(key: str) -> str:
    """
    Hash a key for storage using SHA-256.

    Keys are high-entropy, so a fast one-way hash is sufficient.
    """
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def create_api_key(
    *,
    name: str,
    scopes: list[str] | None = None,
    rate_limit: int | None = None,
    expires_at=None,
    created_by: int | None = None,
    audit: AuditContext | None = None,
) -> tuple[str, ApiKey]:
    """
    Returns (plaintext_key, record). The plaintext is never stored.
    """
    plaintext = generate_api_key()

    record = ApiKey(
        key_hash=hash_api_key(plaintext),
        name=name,
        scopes=list(scopes or []),
        rate_limit=rate_limit or DEFAULT_RATE_LIMIT,
        expires_at=expires_at,
        created_by=created_by,
        is_active="active",
    )
    db.session.add(record)
    db.session.commit()

    emit_audit_log(
        action="create",
        entity_type="api_keys",
        entity_id=record.id,
        changes={"after": record.to_dict()},
        audit=audit,
    )
    return plaintext, record


def validate_api_key(key: str) -> ApiKeyValidation:
    """
    Validate a plaintext key.

    Returns ApiKeyValidation(valid=False, error=...) when the key is
    unknown, not active, or expired. On success last_used_at is updated.
    """
    if not key:
        return ApiKeyValidation(valid=False, error="API key missing")

    record = db.session.query(ApiKey).filter_by(key_hash=hash_api_key(key)).first()
    if record is None:
        return ApiKeyValidation(valid=False, error="API key not found")

    if record.is_active != "active":
        return ApiKeyValidation(valid=False, api_key=record, error="API key inactive or revoked")

    now = utcnow()
    if record.expires_at is not None and record.expires_at < now:
        return ApiKeyValidation(valid=False, api_key=record, error="API key expired")

    record.last_used_at = now
    db.session.commit()

    return ApiKeyValidation(valid=True, api_key=record)


def has_scope(api_key: ApiKey, scope: str) -> bool:
    scopes = api_key.scopes
    if not scopes or not isinstance(scopes, list):
        return False
    return WILDCARD_SCOPE in scopes or scope in scopes


def list_api_keys() -> list[dict]:
    return [k.to_dict() for k in db.session.query(ApiKey).order_by(ApiKey.id.asc()).all()]


def require_api_key_record(api_key_id: int) -> ApiKey:
    record = db.session.get(ApiKey, api_key_id)
    if record is None:
        raise NotFoundError("API key not found")
    return record


def get_api_key(api_key_id: int) -> dict:
    return require_api_key_record(api_key_id).to_dict()


API_KEY_MUTABLE_FIELDS = {"name", "scopes", "rate_limit", "expires_at", "is_active"}


def update_api_key(*, api_key_id: int, patch: dict, audit: AuditContext | None = None) -> dict:
    record = require_api_key_record(api_key_id)
    before = record.to_dict()

    for k, v in patch.items():
        if k in API_KEY_MUTABLE_FIELDS:
            setattr(record, k, v)
    db.session.commit()

    after = record.to_dict()
    emit_audit_log(
        action="update",
        entity_type="api_keys",
        entity_id=record.id,
        changes={"before": before, "after": after},
        audit=audit,
    )
    return after


def revoke_api_key(*, api_key_id: int, audit: AuditContext | None = None) -> dict:
    record = require_api_key_record(api_key_id)
    previous = record.is_active
    record.is_active = "revoked"
    db.session.commit()

    revoked = record.to_dict()
    emit_audit_log(
        action="revoke",
        entity_type="api_keys",
        entity_id=record.id,
        changes={"before": {"isActive": previous}, "after": {"isActive": "revoked"}},
        audit=audit,
    )
    return revoked
