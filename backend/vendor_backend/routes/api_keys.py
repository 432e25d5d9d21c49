# Overview: Flask API routes for API key management.

# backend/vendor_backend/routes/api_keys.py
"""
API key management.

SECURITY: Requires a key with the api_keys:manage scope (or the legacy
static key). The plaintext secret is returned exactly once, by POST.
DELETE revokes the key; the row is kept so audit entries still resolve.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import api_key_service
from ..models import ApiKey
from ..models.security import API_KEY_STATES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_api_key,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_api_key, require_scope, current_audit_context

API_KEY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "scopes": "scopes",
        "rateLimit": "rate_limit",
        "expiresAt": "expires_at",
        "createdBy": "created_by",
    },
    required_on_create={"name"},
)

API_KEY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "scopes": "scopes",
        "rateLimit": "rate_limit",
        "expiresAt": "expires_at",
        "isActive": "is_active",
    },
    choices={"isActive": API_KEY_STATES},
)

api_keys_bp = Blueprint("api_keys", __name__)


@api_keys_bp.get("")
@require_api_key
@require_scope("api_keys:manage")
def list_api_keys():
    return jsonify(api_key_service.list_api_keys())


@api_keys_bp.get("/<int:api_key_id>")
@require_api_key
@require_scope("api_keys:manage")
def get_api_key_route(api_key_id: int):
    try:
        return api_key_service.get_api_key(api_key_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@api_keys_bp.post("")
@require_api_key
@require_scope("api_keys:manage")
def create_api_key_route():
    """
    Create a key. Response: {"key": <plaintext, shown once>, "apiKey": {...}}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ApiKey, payload=payload, policy=API_KEY_CREATE_POLICY, partial=False)
        enforce_rules_api_key(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        plaintext, record = api_key_service.create_api_key(
            name=patch["name"],
            scopes=patch.get("scopes"),
            rate_limit=patch.get("rate_limit"),
            expires_at=patch.get("expires_at"),
            created_by=patch.get("created_by"),
            audit=current_audit_context(),
        )
    except Exception:
        current_app.logger.exception("Failed to create API key")
        return jsonify({"error": "Internal server error"}), 500

    return {"key": plaintext, "apiKey": record.to_dict()}, 201


@api_keys_bp.put("/<int:api_key_id>")
@require_api_key
@require_scope("api_keys:manage")
def update_api_key_route(api_key_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ApiKey, payload=payload, policy=API_KEY_UPDATE_POLICY, partial=True)
        enforce_rules_api_key(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = api_key_service.update_api_key(
            api_key_id=api_key_id, patch=patch, audit=current_audit_context()
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update API key")
        return jsonify({"error": "Internal server error"}), 500

    return updated, 200


@api_keys_bp.delete("/<int:api_key_id>")
@require_api_key
@require_scope("api_keys:manage")
def revoke_api_key_route(api_key_id: int):
    try:
        revoked = api_key_service.revoke_api_key(api_key_id=api_key_id, audit=current_audit_context())
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to revoke API key")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "apiKey": revoked}, 200
