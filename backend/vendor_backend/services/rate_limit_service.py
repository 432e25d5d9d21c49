# Overview: Fixed-window per-key rate limiting behind a pluggable counter store.

"""
Rate Limiting Service

Fixed one-minute window per API key: the first request opens a window,
each request increments the counter, and requests beyond the key's limit
are rejected until the window resets.

Counters live behind RateLimitStore:
- MemoryRateLimitStore: per-process dict, sweep() evicts expired windows.
  Not shared between app instances.
- DatabaseRateLimitStore: rows in rate_limit_counters, shared by every
  instance pointed at the same database.

The store is chosen by RATE_LIMIT_STORE ("memory" | "database") and cached
on the app under app.extensions["rate_limit_store"].
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RateLimitCounter
from ..time_utils import to_epoch_seconds, utcnow

WINDOW = timedelta(minutes=1)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def retry_after_seconds(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        return max(0, to_epoch_seconds(self.reset_at) - to_epoch_seconds(now))

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(to_epoch_seconds(self.reset_at)),
        }


class RateLimitStore:
    """Counter storage interface."""

    def hit(self, bucket: str, now: datetime, window: timedelta) -> tuple[int, datetime]:
        """Increment the bucket's counter; returns (count, reset_at)."""
        raise NotImplementedError

    def sweep(self, now: datetime) -> int:
        """Drop expired buckets; returns how many were removed."""
        raise NotImplementedError


class MemoryRateLimitStore(RateLimitStore):
    def __init__(self, sweep_interval: timedelta = WINDOW):
        self._entries: dict[str, tuple[int, datetime]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._next_sweep: datetime | None = None

    def hit(self, bucket, now, window):
        if self._next_sweep is None or now >= self._next_sweep:
            self.sweep(now)
            self._next_sweep = now + self._sweep_interval
        with self._lock:
            count, reset_at = self._entries.get(bucket, (0, now))
            if reset_at <= now:
                count, reset_at = 0, now + window
            count += 1
            self._entries[bucket] = (count, reset_at)
            return count, reset_at

    def sweep(self, now):
        with self._lock:
            expired = [k for k, (_, reset_at) in self._entries.items() if reset_at <= now]
            for k in expired:
                del self._entries[k]
            return len(expired)


class DatabaseRateLimitStore(RateLimitStore):
    """
    Shared counters in the primary database.

    The increment is a single UPDATE ... SET count = count + 1 so concurrent
    instances do not lose hits inside an open window.
    """

    def hit(self, bucket, now, window):
        updated = (
            db.session.query(RateLimitCounter)
            .filter(RateLimitCounter.bucket == bucket, RateLimitCounter.reset_at > now)
            .update({RateLimitCounter.count: RateLimitCounter.count + 1}, synchronize_session=False)
        )
        if not updated:
            reset_at = now + window
            row = db.session.get(RateLimitCounter, bucket)
            if row is None:
                db.session.add(RateLimitCounter(bucket=bucket, count=1, reset_at=reset_at))
            else:
                row.count = 1
                row.reset_at = reset_at
            try:
                db.session.commit()
            except IntegrityError:
                # Another instance opened the window first; count against it.
                db.session.rollback()
                return self.hit(bucket, now, window)
            return 1, reset_at

        db.session.commit()
        row = db.session.get(RateLimitCounter, bucket)
        db.session.refresh(row)
        return row.count, row.reset_at

    def sweep(self, now):
        removed = (
            db.session.query(RateLimitCounter)
            .filter(RateLimitCounter.reset_at <= now)
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return removed


def build_store(kind: str) -> RateLimitStore:
    if kind == "database":
        return DatabaseRateLimitStore()
    if kind == "memory":
        return MemoryRateLimitStore()
    raise ValueError(f"Unknown RATE_LIMIT_STORE: {kind}")


def get_store() -> RateLimitStore:
    app = current_app._get_current_object()
    store = app.extensions.get("rate_limit_store")
    if store is None:
        store = build_store(app.config.get("RATE_LIMIT_STORE", "memory"))
        app.extensions["rate_limit_store"] = store
    return store


def check_rate_limit(
    api_key_id: int,
    rate_limit: int,
    *,
    store: RateLimitStore | None = None,
    now: datetime | None = None,
) -> RateLimitResult:
    store = store or get_store()
    now = now or utcnow()

    count, reset_at = store.hit(f"api_key_{api_key_id}", now, WINDOW)
    return RateLimitResult(
        allowed=count <= rate_limit,
        limit=rate_limit,
        remaining=max(0, rate_limit - count),
        reset_at=reset_at,
    )


def sweep_expired(store: RateLimitStore | None = None, now: datetime | None = None) -> int:
    return (store or get_store()).sweep(now or utcnow())
