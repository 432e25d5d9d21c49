from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from vendor_backend.time_utils import to_utc_z, utcnow


PRODUCT_STATUSES = frozenset({"active", "inactive", "archived"})


def to_number(value: Decimal | None) -> float | None:
    """Numeric(10, 2) columns go over the wire as plain JSON numbers."""
    if value is None:
        return None
    return float(value)


class Product(db.Model):
    """
    Catalog entry offered to customers.

    Order items keep their own name/price snapshot, so editing or deleting
    a product never rewrites historical orders.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_status_name", "status", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    image_url = db.Column(db.Text, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    available_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "imageUrl": self.image_url,
            "name": self.name,
            "status": self.status,
            "price": to_number(self.price),
            "stock": self.stock,
            "availableAt": to_utc_z(self.available_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
