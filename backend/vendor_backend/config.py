# backend/vendor_backend/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/vendor.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///vendor.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # All resource routes live under this prefix
    API_PREFIX = os.environ.get("API_PREFIX", "/v1")

    # Legacy static key used by the dashboard frontend (never rate limited).
    # Empty string disables it.
    API_KEY = os.environ.get("API_KEY", "")

    # "*" or a comma separated allowlist of origins
    CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")

    # "memory" (single process) or "database" (shared across instances)
    RATE_LIMIT_STORE = os.environ.get("RATE_LIMIT_STORE", "memory")
    DEFAULT_RATE_LIMIT = int(os.environ.get("DEFAULT_RATE_LIMIT", "100"))

    # Remote collaborators. A missing URL disables that integration.
    INVENTORY_API_URL = os.environ.get("INVENTORY_API_URL")
    INVENTORY_API_KEY = os.environ.get("INVENTORY_API_KEY") or os.environ.get("VENDOR_API_KEY", "")
    INVENTORY_TIMEOUT_SECONDS = _env_float("INVENTORY_TIMEOUT_SECONDS", 5.0)

    FACTORY_API_URL = os.environ.get("FACTORY_API_URL")
    FACTORY_API_KEY = os.environ.get("FACTORY_API_KEY") or os.environ.get("VENDOR_API_KEY", "")
    FACTORY_TIMEOUT_SECONDS = _env_float("FACTORY_TIMEOUT_SECONDS", 5.0)

    FINANCE_API_URL = os.environ.get("FINANCE_API_URL")
    FINANCE_API_KEY = os.environ.get("FINANCE_API_KEY", "")
    FINANCE_CURRENCY = os.environ.get("FINANCE_CURRENCY", "MXN")
    FINANCE_TIMEOUT_SECONDS = _env_float("FINANCE_TIMEOUT_SECONDS", 3.0)
    FINANCE_RETRY_DELAY_SECONDS = _env_float("FINANCE_RETRY_DELAY_SECONDS", 0.25)

    AUDIT_API_URL = os.environ.get("AUDIT_API_URL")
    AUDIT_API_KEY = os.environ.get("AUDIT_API_KEY", "")
    AUDIT_TIMEOUT_SECONDS = _env_float("AUDIT_TIMEOUT_SECONDS", 3.0)

    # Optional httpx transport shared by every integration client (tests plug
    # an httpx.MockTransport in here).
    INTEGRATIONS_TRANSPORT = None
