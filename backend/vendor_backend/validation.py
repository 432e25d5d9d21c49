from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from vendor_backend.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text, DateTime, JSON
from sqlalchemy.orm import DeclarativeMeta


# Numeric(10, 2) upper bound
MAX_MONEY = Decimal("99999999.99")
CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """Bad request input; routes answer 400."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate customer email)."""


class NotFoundError(LookupError):
    """404-level: a referenced entity does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: wire name -> model column key (security boundary)
    - required_on_create: wire names required for POST
    - choices: wire name -> allowed values for enum-like string columns
    """
    writable_fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, frozenset[str]] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_decimal(value: Any, name: str) -> Decimal:
    """
    Accepts JSON numbers and numeric strings; rejects bools, NaN and infinity.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be numeric")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} must be numeric")
    else:
        raise ValidationError(f"{name} must be numeric")
    if not result.is_finite():
        raise ValidationError(f"{name} must be numeric")
    return result


def parse_int(value: Any, name: str) -> int:
    # "3.0", "1e3" and 2.5 are all rejected
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def parse_datetime(value: Any, name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{name} must be a datetime")


def _coerce_value(col, name: str, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, name)

    if isinstance(coltype, Numeric):
        amount = parse_decimal(value, name)
        if coltype.scale is not None:
            try:
                amount = amount.quantize(Decimal(1).scaleb(-coltype.scale), rounding=ROUND_HALF_UP)
            except InvalidOperation:
                raise ValidationError(f"{name} is out of range")
        return amount

    # ISO-8601 strings, stored as naive UTC
    if isinstance(coltype, DateTime):
        return parse_datetime(value, name)

    # JSON columns only ever hold lists of strings here (api key scopes)
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{name} must be a list of strings")
        return [v.strip() for v in value]

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{name} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a camelCase request body into a column-keyed patch.
    Checks, in order: required fields (create only), the writable_fields
    allowlist, nullability, per-column type coercion, blank and length
    limits on strings, then policy choices.
    The first failure raises ValidationError naming the wire field.

    Pass partial=True for updates, where only the keys present are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        key = policy.writable_fields[k]
        col = cols[key]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[key] = None
            continue

        val = _coerce_value(col, k, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            raise ValidationError(f"{k} must be one of: {', '.join(sorted(allowed))}")

        patch[key] = val

    return patch


def enforce_money(value: Decimal, name: str, *, allow_zero: bool = True) -> Decimal:
    if value < 0 or (not allow_zero and value == 0):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_MONEY:
        raise ValidationError(f"{name} cannot exceed {MAX_MONEY}")
    return value


def enforce_rules_product(patch: dict) -> None:
    """Price within the money range; stock never negative."""
    if patch.get("price") is not None:
        enforce_money(patch["price"], "price")
    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def enforce_rules_api_key(patch: dict) -> None:
    if patch.get("rate_limit") is not None:
        if not 1 <= patch["rate_limit"] <= 10_000:
            raise ValidationError("rateLimit must be between 1 and 10000")


def enforce_rules_customer(patch: dict) -> None:
    email = patch.get("email")
    if email is not None and ("@" not in email or email.startswith("@") or email.endswith("@")):
        raise ValidationError("email must be a valid email address")
