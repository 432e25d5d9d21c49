# Overview: Request decorators for API routes; API key auth, rate limiting and scopes.

import hmac
from functools import wraps
from flask import current_app, request, jsonify, g

from .integrations import AuditContext
from .services import api_key_service, rate_limit_service


def _is_authenticated() -> bool:
    return getattr(g, 'api_key', None) is not None or getattr(g, 'is_legacy_key', False)


def _is_legacy_key(candidate: str) -> bool:
    legacy = current_app.config.get("API_KEY") or ""
    if not legacy:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), legacy.encode("utf-8"))


def require_api_key(f):
    """
    Require a valid X-API-Key header.

    Sets the following Flask g attributes:
    - g.api_key: the ApiKey row (absent for the legacy key)
    - g.is_legacy_key: True when the static API_KEY was presented
    - g.rate_limit_headers: X-RateLimit-* values, copied onto the response

    SECURITY: Returns 401 if:
    - No X-API-Key header
    - Key unknown, inactive/revoked or expired (and not the legacy key)

    Returns 429 once a stored key exceeds its per-minute limit. The legacy
    key is never rate limited.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        presented = request.headers.get("X-API-Key")

        if not presented:
            return jsonify({
                "error": "Unauthorized",
                "message": "Missing API key. Send it in the X-API-Key header",
            }), 401

        validation = api_key_service.validate_api_key(presented)

        if validation.valid and validation.api_key:
            record = validation.api_key
            limit = record.rate_limit or current_app.config.get("DEFAULT_RATE_LIMIT", 100)
            result = rate_limit_service.check_rate_limit(record.id, limit)
            g.rate_limit_headers = result.headers()

            if not result.allowed:
                retry_after = result.retry_after_seconds()
                response = jsonify({
                    "error": "Rate limit exceeded",
                    "message": f"Limit of {limit} requests per minute exceeded",
                    "retryAfter": retry_after,
                })
                response.status_code = 429
                response.headers["Retry-After"] = str(retry_after)
                return response

            g.api_key = record
            g.is_legacy_key = False
        elif _is_legacy_key(presented):
            g.is_legacy_key = True
        else:
            return jsonify({
                "error": "Unauthorized",
                "message": validation.error or "Invalid API key",
            }), 401

        return f(*args, **kwargs)

    return decorated_function


def require_scope(scope: str):
    """
    Require a scope on the calling key. The legacy key and "*" pass.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_api_key was called first
            if not _is_authenticated():
                return jsonify({"error": "Unauthorized", "message": "API key required"}), 401

            if getattr(g, 'is_legacy_key', False):
                return f(*args, **kwargs)

            if not api_key_service.has_scope(g.api_key, scope):
                return jsonify({
                    "error": "Forbidden",
                    "required_scope": scope,
                    "message": f"API key lacks scope {scope}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def current_audit_context() -> AuditContext:
    """Caller details forwarded with every audit event of this request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.headers.get("X-Real-IP") or request.remote_addr

    api_key = getattr(g, 'api_key', None)
    return AuditContext(
        user_id=api_key.created_by if api_key is not None else None,
        ip_address=ip_address or None,
        user_agent=request.headers.get("User-Agent"),
        actor_email=request.headers.get("X-Actor-Email"),
        actor_name=request.headers.get("X-Actor-Name"),
        api_key_id=api_key.id if api_key is not None else None,
    )
