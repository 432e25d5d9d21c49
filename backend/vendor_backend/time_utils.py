from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# All stored timestamps are naive datetimes in UTC.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string from a request body into a naive UTC datetime.

    Blank input yields None. Values without an offset ("2026-03-01",
    "2026-03-01T10:00") are taken as UTC; "Z" and "+hh:mm" offsets are
    converted. Raises ValueError for anything fromisoformat rejects.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return _as_aware(parsed).astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Wire format: second precision with a trailing Z."""
    if dt is None:
        return None
    stamp = _as_aware(dt).astimezone(timezone.utc).replace(microsecond=0, tzinfo=None)
    return stamp.isoformat() + "Z"


def to_epoch_seconds(dt: datetime) -> int:
    """Unix timestamp in whole seconds, rounded up."""
    ts = _as_aware(dt).timestamp()
    whole = int(ts)
    return whole if whole == ts else whole + 1
