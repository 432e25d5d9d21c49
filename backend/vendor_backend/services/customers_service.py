# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer
from ..integrations import AuditContext, emit_audit_log
from ..validation import ConflictError, NotFoundError

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def _ensure_email_available(email: str, exclude_id: int | None = None) -> None:
    # Business rule only; there is no unique index on customers.email.
    query = db.session.query(Customer).filter(func.lower(Customer.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("A customer with this email already exists.")


def list_customers() -> list[dict]:
    return [c.to_dict() for c in db.session.query(Customer).order_by(Customer.id.asc()).all()]


def require_customer(customer_id: int) -> Customer:
    c = db.session.get(Customer, customer_id)
    if c is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return c


def get_customer(customer_id: int) -> dict:
    return require_customer(customer_id).to_dict()


def create_customer(*, patch: dict, audit: AuditContext | None = None) -> dict:
    """
    Create a customer from a validated patch.

    Raises:
        ConflictError: email already used by another customer
    """
    _ensure_email_available(patch["email"])

    c = Customer()
    apply_customer_patch(c, patch)
    db.session.add(c)
    db.session.commit()

    created = c.to_dict()
    emit_audit_log(
        action="create",
        entity_type="customers",
        entity_id=c.id,
        changes={"after": created},
        audit=audit,
    )
    return created


def update_customer(*, customer_id: int, patch: dict, audit: AuditContext | None = None) -> dict:
    c = require_customer(customer_id)
    before = c.to_dict()

    if patch.get("email") and patch["email"].lower() != (c.email or "").lower():
        _ensure_email_available(patch["email"], exclude_id=c.id)

    apply_customer_patch(c, patch)
    db.session.commit()

    after = c.to_dict()
    emit_audit_log(
        action="update",
        entity_type="customers",
        entity_id=c.id,
        changes={"before": before, "after": after},
        audit=audit,
    )
    return after


def delete_customer(*, customer_id: int, audit: AuditContext | None = None) -> dict:
    """Delete a customer. Their orders (and everything under them) cascade."""
    c = require_customer(customer_id)
    before = c.to_dict()

    db.session.delete(c)
    db.session.commit()

    emit_audit_log(
        action="delete",
        entity_type="customers",
        entity_id=customer_id,
        changes={"before": before},
        audit=audit,
    )
    return before
