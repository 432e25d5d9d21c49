# Overview: Service-layer operations for orders; pricing, persistence, status timeline and side effects.

"""
Orders Service

Order creation:
1. validate the customer and every referenced product (NotFoundError)
2. price the lines (pricing_service, pure)
3. write header + items + initial status event in ONE transaction
4. best-effort side effects: stock advisor per line, then audit

Side effects run after commit and can never undo or fail the order.
Status changes always append exactly one OrderStatusEvent. Any transition
between known statuses is allowed.
"""
from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Order, OrderItem, OrderStatusEvent, Product
from ..models.orders import ORDER_STATUSES
from ..integrations import AuditContext, emit_audit_log
from ..validation import NotFoundError, ValidationError, enforce_money, parse_decimal, parse_int
from . import stock_advisor_service
from .pricing_service import LineInput, ProductSnapshot, price_order, quantize_money


def _validate_status(status, field: str = "status") -> str:
    if not isinstance(status, str) or status not in ORDER_STATUSES:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(ORDER_STATUSES))}")
    return status


def _require_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def _load_order(order_id: int) -> Order | None:
    return (
        db.session.query(Order)
        .options(
            selectinload(Order.customer),
            selectinload(Order.items),
            selectinload(Order.payments),
            selectinload(Order.status_events),
        )
        .filter(Order.id == order_id)
        .first()
    )


def require_order(order_id: int) -> Order:
    order = _load_order(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders() -> list[dict]:
    orders = (
        db.session.query(Order)
        .options(selectinload(Order.customer))
        .order_by(Order.id.asc())
        .all()
    )
    return [o.to_dict() for o in orders]


def get_order(order_id: int) -> dict:
    """Full aggregate: header, customerName, items, payments, statusEvents."""
    return require_order(order_id).to_aggregate_dict()


def _product_catalog(lines: list[LineInput]) -> dict[int, ProductSnapshot]:
    ids = {line.product_id for line in lines}
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    catalog = {p.id: ProductSnapshot(id=p.id, name=p.name, price=p.price) for p in rows}
    missing = sorted(ids - catalog.keys())
    if missing:
        raise NotFoundError(f"Product {missing[0]} not found")
    return catalog


def parse_items(raw_items) -> list[LineInput]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    return [LineInput.from_payload(raw, i) for i, raw in enumerate(raw_items)]


def create_order(
    *,
    customer_id,
    status: str | None = None,
    total=None,
    items: list[LineInput] | None = None,
    audit: AuditContext | None = None,
) -> dict:
    """
    Create an order with priced items and its initial status event.

    Raises:
        NotFoundError: customer or a referenced product does not exist
        ValidationError: bad status, quantity, price or discount
    """
    customer_id = parse_int(customer_id, "customerId")
    initial_status = _validate_status(status) if status is not None else "pending"
    explicit_total = parse_decimal(total, "total") if total is not None else None
    lines = list(items or [])

    _require_customer(customer_id)
    pricing = price_order(lines, _product_catalog(lines), explicit_total)

    try:
        order = Order(customer_id=customer_id, status=initial_status, total=pricing.total)
        db.session.add(order)
        db.session.flush()

        for priced in pricing.lines:
            db.session.add(OrderItem(order_id=order.id, **priced.to_columns()))

        db.session.add(OrderStatusEvent(
            order_id=order.id,
            from_status=None,
            to_status=initial_status,
            reason="order_created",
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    order_id = order.id

    if pricing.lines:
        stock_advisor_service.advise_order(
            order_id=order_id,
            lines=[(p.product_name, p.quantity) for p in pricing.lines],
            audit=audit,
        )

    emit_audit_log(
        action="create",
        entity_type="orders",
        entity_id=order_id,
        changes={"after": {
            "customerId": customer_id,
            "status": initial_status,
            "total": float(pricing.total),
        }},
        audit=audit,
    )

    db.session.expire_all()
    return get_order(order_id)


def update_order(
    *,
    order_id: int,
    customer_id=None,
    status: str | None = None,
    total=None,
    audit: AuditContext | None = None,
) -> dict:
    """
    Patch an order header. A status change here is recorded on the timeline
    with reason "order_updated".
    """
    order = require_order(order_id)
    before = order.to_aggregate_dict()

    # Validate everything before touching the row
    if customer_id is not None:
        customer_id = parse_int(customer_id, "customerId")
        _require_customer(customer_id)
    if total is not None:
        total = quantize_money(enforce_money(parse_decimal(total, "total"), "total"))
    new_status = _validate_status(status) if status is not None else None

    changes: dict = {}
    if customer_id is not None:
        order.customer_id = customer_id
        changes["customerId"] = customer_id
    if total is not None:
        order.total = total
        changes["total"] = float(total)
    if new_status is not None:
        if new_status != order.status:
            db.session.add(OrderStatusEvent(
                order_id=order.id,
                from_status=order.status,
                to_status=new_status,
                reason="order_updated",
            ))
        order.status = new_status
        changes["status"] = new_status

    db.session.commit()

    emit_audit_log(
        action="update",
        entity_type="orders",
        entity_id=order_id,
        changes={"before": before, "after": {**before, **changes}},
        audit=audit,
    )

    db.session.expire_all()
    return get_order(order_id)


def update_order_status(
    *,
    order_id: int,
    to_status: str | None,
    reason: str | None = None,
    audit: AuditContext | None = None,
) -> dict:
    """
    Move an order to to_status and append one timeline event.

    Raises:
        NotFoundError: order does not exist
        ValidationError: to_status missing or not a known status
    """
    order = require_order(order_id)
    if not to_status:
        raise ValidationError("toStatus is required")
    to_status = _validate_status(to_status, "toStatus")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be a string")

    from_status = order.status
    order.status = to_status
    db.session.add(OrderStatusEvent(
        order_id=order.id,
        from_status=from_status,
        to_status=to_status,
        reason=reason,
    ))
    db.session.commit()

    emit_audit_log(
        action="status_change",
        entity_type="orders",
        entity_id=order_id,
        changes={"before": {"status": from_status}, "after": {"status": to_status}},
        audit=audit,
        metadata={"reason": reason} if reason else None,
    )

    db.session.expire_all()
    return get_order(order_id)


def delete_order(*, order_id: int, audit: AuditContext | None = None) -> dict:
    """
    Delete an order; items, payments and status events go with it.

    Returns the pre-deletion snapshot.
    """
    order = require_order(order_id)
    snapshot = order.to_aggregate_dict()

    db.session.delete(order)
    db.session.commit()

    emit_audit_log(
        action="delete",
        entity_type="orders",
        entity_id=order_id,
        changes={"before": snapshot},
        audit=audit,
    )
    return snapshot

