from __future__ import annotations

from ..extensions import db
from vendor_backend.time_utils import to_utc_z


API_KEY_STATES = frozenset({"active", "inactive", "revoked"})


class ApiKey(db.Model):
    """
    Machine credential for the REST API.

    SECURITY: Only the SHA-256 hash of the secret is stored. The plaintext
    is returned once, at creation, and can never be recovered.

    scopes is a list of strings; "*" grants everything.
    """
    __tablename__ = "api_keys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    scopes = db.Column(db.JSON, nullable=True)
    rate_limit = db.Column(db.Integer, nullable=False, default=100)  # requests per minute
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.String(16), nullable=False, default="active", index=True)

    def to_dict(self) -> dict:
        # key_hash is never exposed
        return {
            "id": self.id,
            "name": self.name,
            "scopes": list(self.scopes) if self.scopes is not None else None,
            "rateLimit": self.rate_limit,
            "expiresAt": to_utc_z(self.expires_at),
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "isActive": self.is_active,
        }


class RateLimitCounter(db.Model):
    """
    Fixed-window request counter shared by every app instance.

    One row per bucket (e.g. "api_key_12"); the row is reset in place when
    its window has expired.
    """
    __tablename__ = "rate_limit_counters"

    bucket = db.Column(db.String(64), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    reset_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
