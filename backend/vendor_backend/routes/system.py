# backend/vendor_backend/routes/system.py
"""
Public service info and health endpoints. No API key required.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..integrations import AuditClient, FactoryClient, FinanceClient, InventoryClient
from ..time_utils import to_utc_z, utcnow

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_integrations() -> dict:
    # Configuration only; remote services are never called from here.
    config = current_app.config
    clients = {
        "inventory": InventoryClient.from_config(config),
        "factory": FactoryClient.from_config(config),
        "finance": FinanceClient.from_config(config),
        "audit": AuditClient.from_config(config),
    }
    return {name: ("configured" if c.enabled else "disabled") for name, c in clients.items()}


@system_bp.get("/")
def index():
    prefix = current_app.config.get("API_PREFIX", "/v1")
    return {
        "message": "Vendor Backend API",
        "version": API_VERSION,
        "endpoints": {
            "v1": prefix,
            "health": "/health",
        },
        "note": f"All API routes live under the {prefix} prefix",
    }


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: database reachable (integrations may be disabled; they are best-effort)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "integrations": check_integrations(),
        },
    }
    return response, 200 if healthy else 503
