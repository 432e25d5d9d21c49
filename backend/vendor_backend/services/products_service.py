# backend/vendor_backend/services/products_service.py
"""
Products Service

CRUD over the catalog. Every mutation is reported to the audit service.
Deleting a product is a hard delete: order items keep their name/price
snapshot and their product_id is nulled by the foreign key.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..integrations import AuditContext, emit_audit_log
from ..validation import NotFoundError
from ..time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {"image_url", "name", "status", "price", "stock", "available_at"}

MAX_PAGE_SIZE = 500


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _escape_like(text: str) -> str:
    # q is a literal substring, not a LIKE pattern
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_products(
    status: str | None = None,
    search: str | None = None,
    offset: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    Filtered product listing with optional offset/limit pagination.

    Args:
        status: exact status filter (active / inactive / archived)
        search: case-insensitive substring match on name
        offset: rows to skip
        limit: max rows to return, 1..MAX_PAGE_SIZE (None means all)

    Returns:
        Dict with 'products', 'total' (count before pagination) and 'offset'.
    """
    query = db.session.query(Product)

    if status:
        query = query.filter(Product.status == status)
    if search:
        query = query.filter(Product.name.ilike(f"%{_escape_like(search)}%", escape="\\"))

    total = query.count()

    query = query.order_by(Product.id.asc())
    if offset:
        query = query.offset(max(offset, 0))
    if limit is not None:
        query = query.limit(min(max(limit, 1), MAX_PAGE_SIZE))

    return {
        "products": [p.to_dict() for p in query.all()],
        "total": total,
        "offset": offset or 0,
    }


def require_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError(f"Product {product_id} not found")
    return p


def get_product(product_id: int) -> dict:
    return require_product(product_id).to_dict()


def create_product(*, patch: dict, audit: AuditContext | None = None) -> dict:
    """
    Create product using a validated patch dict (column keys).

    status defaults to active, stock to 0 and available_at to now.
    """
    p = Product(status="active", stock=0, available_at=utcnow())
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    created = p.to_dict()
    emit_audit_log(
        action="create",
        entity_type="products",
        entity_id=p.id,
        changes={"after": created},
        audit=audit,
    )
    return created


def update_product(*, product_id: int, patch: dict, audit: AuditContext | None = None) -> dict:
    """
    Update a product.

    Raises:
        NotFoundError: product does not exist
    """
    p = require_product(product_id)
    before = p.to_dict()

    apply_product_patch(p, patch)
    db.session.commit()

    after = p.to_dict()
    emit_audit_log(
        action="update",
        entity_type="products",
        entity_id=p.id,
        changes={"before": before, "after": after},
        audit=audit,
        metadata={"fields": sorted(patch.keys())},
    )
    return after


def delete_product(*, product_id: int, audit: AuditContext | None = None) -> dict:
    """
    Delete a product and return its last state.

    Raises:
        NotFoundError: product does not exist
    """
    p = require_product(product_id)
    before = p.to_dict()

    db.session.delete(p)
    db.session.commit()

    emit_audit_log(
        action="delete",
        entity_type="products",
        entity_id=product_id,
        changes={"before": before},
        audit=audit,
    )
    return before
