from __future__ import annotations

from ..extensions import db
from vendor_backend.time_utils import to_utc_z, utcnow
from .catalog import to_number


ORDER_STATUSES = frozenset({"pending", "processing", "shipped", "delivered", "cancelled"})
PAYMENT_METHODS = frozenset({"bank_transfer"})
PAYMENT_STATUSES = frozenset({"pending", "confirmed"})


class Order(db.Model):
    """
    Order header.

    total equals the sum of the items' line totals unless the caller supplied
    an explicit total at creation/update time. Deleting an order cascades to
    items, payments and status events at the storage layer.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.Integer,
        db.ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", back_populates="orders")
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
        lazy=True,
    )
    payments = db.relationship(
        "PaymentRecord",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PaymentRecord.id",
        lazy=True,
    )
    status_events = db.relationship(
        "OrderStatusEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderStatusEvent.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "customerName": self.customer.name if self.customer else None,
            "status": self.status,
            "total": to_number(self.total),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_aggregate_dict(self) -> dict:
        """Header plus items, payments and the status timeline."""
        data = self.to_dict()
        data["items"] = [i.to_dict() for i in self.items]
        data["payments"] = [p.to_dict() for p in self.payments]
        data["statusEvents"] = [e.to_dict() for e in self.status_events]
        return data


class OrderItem(db.Model):
    """
    Order line with a frozen price snapshot.

    product_id is nulled when the product is deleted; product_name and the
    price columns keep the values that applied when the order was placed.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_base = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price_final = db.Column(db.Numeric(10, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPriceBase": to_number(self.unit_price_base),
            "unitPriceFinal": to_number(self.unit_price_final),
            "discountAmount": to_number(self.discount_amount),
            "discountPercent": to_number(self.discount_percent),
            "lineTotal": to_number(self.line_total),
            "createdAt": to_utc_z(self.created_at),
        }


class PaymentRecord(db.Model):
    """
    Manual payment (bank transfer) recorded against an order.

    The finance ledger keeps a replica keyed by external_ref; this table is
    the source of truth.
    """
    __tablename__ = "payment_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    method = db.Column(db.String(32), nullable=False, default="bank_transfer")
    status = db.Column(db.String(16), nullable=False, default="pending")
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    reference = db.Column(db.String(255), nullable=True)
    proof_url = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True, default=utcnow)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="payments")

    @property
    def external_ref(self) -> str:
        return f"vendor:payment_records:{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "method": self.method,
            "status": self.status,
            "amount": to_number(self.amount),
            "reference": self.reference,
            "proofUrl": self.proof_url,
            "notes": self.notes,
            "paidAt": to_utc_z(self.paid_at),
            "createdAt": to_utc_z(self.created_at),
        }


class OrderStatusEvent(db.Model):
    """Append-only status timeline entry. Only removed by the order cascade."""
    __tablename__ = "order_status_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="status_events")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "reason": self.reason,
            "createdAt": to_utc_z(self.created_at),
        }
