# Overview: product catalog endpoints (list/filter, CRUD) under /v1/products.

# backend/vendor_backend/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require an API key.
- Read operations require the products:read scope
- Write operations require the products:write scope
"""
from flask import Blueprint, current_app, jsonify, request

from ..services import products_service
from ..models import Product
from ..models.catalog import PRODUCT_STATUSES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_int,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_api_key, require_scope, current_audit_context

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "imageUrl": "image_url",
        "name": "name",
        "status": "status",
        "price": "price",
        "stock": "stock",
        "availableAt": "available_at",
    },
    required_on_create={"imageUrl", "name", "price"},
    choices={"status": PRODUCT_STATUSES},
)

products_bp = Blueprint("products", __name__)


def _query_int(name: str, minimum: int = 0):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    value = parse_int(raw, name)
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value


@products_bp.get("")
@require_api_key
@require_scope("products:read")
def list_products():
    """
    List products.

    Query params:
    - status: active | inactive | archived (optional)
    - q: case-insensitive substring of the name (optional)
    - offset: int (optional)
    - limit: int (optional, 1..500)
    """
    status = request.args.get("status") or None
    try:
        if status is not None and status not in PRODUCT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(PRODUCT_STATUSES))}")
        return products_service.list_products(
            status=status,
            search=(request.args.get("q") or "").strip() or None,
            offset=_query_int("offset"),
            limit=_query_int("limit", minimum=1),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_api_key
@require_scope("products:read")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_api_key
@require_scope("products:write")
def create_product_route():
    """
    Create a product.

    Required: imageUrl, name, price. status defaults to active, stock to 0,
    availableAt to now.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # price range, stock >= 0
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch, audit=current_audit_context())
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_api_key
@require_scope("products:write")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(
            product_id=product_id, patch=patch, audit=current_audit_context()
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_api_key
@require_scope("products:write")
def delete_product_route(product_id: int):
    """
    Delete a product. Existing order items keep their snapshot.
    """
    try:
        deleted = products_service.delete_product(product_id=product_id, audit=current_audit_context())
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "product": deleted}, 200
