# Overview: Service-layer operations for manual payments; local record first, finance replication second.

"""
Payment Service

Manual payments (bank transfers) are trusted on input: the record is stored
as "confirmed" right away. The local row is the source of truth; the
finance AR ledger receives a best-effort replica keyed by

    vendor:payment_records:<payment id>

so finance can deduplicate repeated deliveries. If replication fails after
its retries, an "integration_failed" audit event captures the failure and
the payment still stands.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PaymentRecord
from ..integrations import AuditContext, FinanceClient, IntegrationFailure, emit_audit_log
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError, enforce_money, parse_datetime, parse_decimal
from .orders_service import require_order
from .pricing_service import quantize_money


def _optional_text(value, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    value = value.strip()
    return value or None


def replicate_payment(payment: PaymentRecord, customer_id: int, audit: AuditContext | None = None) -> bool:
    """
    Push a payment to the finance ledger. Returns True when finance
    acknowledged it. Never raises.
    """
    config = current_app.config
    finance = FinanceClient.from_config(config)
    if not finance.enabled:
        current_app.logger.warning(
            "Finance service not configured: skipping AR payment %s", payment.external_ref
        )
        return False

    try:
        finance.create_ar_payment(
            external_ref=payment.external_ref,
            customer_id=customer_id,
            order_id=payment.order_id,
            amount=float(payment.amount),
            currency=config.get("FINANCE_CURRENCY", "MXN"),
            method=payment.method,
            reference=payment.reference,
            proof_url=payment.proof_url,
            notes=payment.notes,
            paid_at=to_utc_z(payment.paid_at),
        )
        return True
    except IntegrationFailure as exc:
        current_app.logger.warning(
            "Finance replication failed for %s: %s", payment.external_ref, exc
        )
        emit_audit_log(
            action="integration_failed",
            entity_type="integrations",
            entity_id=None,
            changes={"after": {
                "source": "vendor-backend",
                "target": "finance-backend",
                "endpoint": "/ar/payments",
                "method": "POST",
                "externalRef": payment.external_ref,
                "orderId": payment.order_id,
                "customerId": customer_id,
            }},
            audit=audit,
            metadata={"error": exc.to_dict()},
        )
        return False
    except Exception:
        current_app.logger.exception("Finance replication crashed for %s", payment.external_ref)
        return False


def record_payment(
    *,
    order_id: int,
    amount,
    reference: str | None = None,
    proof_url: str | None = None,
    notes: str | None = None,
    paid_at=None,
    audit: AuditContext | None = None,
) -> dict:
    """
    Record a confirmed bank-transfer payment against an order.

    Raises:
        NotFoundError: order does not exist
        ValidationError: amount missing/not positive, bad paidAt or text fields
    """
    order = require_order(order_id)

    if amount is None:
        raise ValidationError("amount is required")
    amount = quantize_money(enforce_money(parse_decimal(amount, "amount"), "amount", allow_zero=False))
    paid_at = parse_datetime(paid_at, "paidAt") if paid_at not in (None, "") else utcnow()

    payment = PaymentRecord(
        order_id=order.id,
        method="bank_transfer",
        status="confirmed",
        amount=amount,
        reference=_optional_text(reference, "reference"),
        proof_url=_optional_text(proof_url, "proofUrl"),
        notes=_optional_text(notes, "notes"),
        paid_at=paid_at,
    )
    db.session.add(payment)
    db.session.commit()

    replicated = replicate_payment(payment, order.customer_id, audit)

    created = payment.to_dict()
    emit_audit_log(
        action="payment_recorded",
        entity_type="orders",
        entity_id=order.id,
        changes={"after": created},
        audit=audit,
        metadata={"financeReplicated": replicated},
    )
    return created


def list_payments(order_id: int) -> list[dict]:
    order = require_order(order_id)
    return [p.to_dict() for p in order.payments]
