# Overview: Flask API routes for orders, status timeline and manual payments.

# backend/vendor_backend/routes/orders.py
"""
Order API routes.

SECURITY: All routes require an API key with the orders:* scope.

Order creation is the one multi-step workflow: pricing and persistence are
synchronous and decide the response; stock checks, production orders and
audit events run afterwards and never change it.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import orders_service, payment_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_api_key, require_scope, current_audit_context

orders_bp = Blueprint("orders", __name__)

ORDER_CREATE_FIELDS = {"customerId", "status", "total", "items"}
ORDER_UPDATE_FIELDS = {"customerId", "status", "total"}
STATUS_FIELDS = {"toStatus", "reason"}
PAYMENT_FIELDS = {"amount", "reference", "proofUrl", "notes", "paidAt"}


def _json_body(allowed: set) -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    return payload


@orders_bp.get("")
@require_api_key
@require_scope("orders:*")
def list_orders():
    return jsonify(orders_service.list_orders())


@orders_bp.get("/<int:order_id>")
@require_api_key
@require_scope("orders:*")
def get_order_route(order_id: int):
    """Order header with customerName, items, payments and statusEvents."""
    try:
        return orders_service.get_order(order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@orders_bp.post("")
@require_api_key
@require_scope("orders:*")
def create_order_route():
    """
    Create an order.

    Body: {customerId, status?, total?, items?: [{productId, quantity,
    unitPriceBase?, unitPriceFinal?, discountAmount?, discountPercent?}]}

    Returns the full order aggregate (201).
    """
    try:
        payload = _json_body(ORDER_CREATE_FIELDS)
        if payload.get("customerId") is None:
            raise ValidationError("Missing required fields: customerId")
        items = orders_service.parse_items(payload.get("items"))

        created = orders_service.create_order(
            customer_id=payload["customerId"],
            status=payload.get("status"),
            total=payload.get("total"),
            items=items,
            audit=current_audit_context(),
        )
        return created, 201

    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>")
@require_api_key
@require_scope("orders:*")
def update_order_route(order_id: int):
    try:
        payload = _json_body(ORDER_UPDATE_FIELDS)
        updated = orders_service.update_order(
            order_id=order_id,
            customer_id=payload.get("customerId"),
            status=payload.get("status"),
            total=payload.get("total"),
            audit=current_audit_context(),
        )
        return updated, 200

    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_api_key
@require_scope("orders:*")
def update_order_status_route(order_id: int):
    """
    Move an order to another status. Body: {toStatus, reason?}

    Any transition between known statuses is accepted; each call appends
    exactly one entry to the status timeline.
    """
    try:
        payload = _json_body(STATUS_FIELDS)
        updated = orders_service.update_order_status(
            order_id=order_id,
            to_status=payload.get("toStatus"),
            reason=payload.get("reason"),
            audit=current_audit_context(),
        )
        return updated, 200

    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_api_key
@require_scope("orders:*")
def delete_order_route(order_id: int):
    try:
        deleted = orders_service.delete_order(order_id=order_id, audit=current_audit_context())
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "order": deleted}, 200


@orders_bp.post("/<int:order_id>/payments")
@require_api_key
@require_scope("orders:*")
def record_payment_route(order_id: int):
    """
    Record a manual bank transfer. Body: {amount, reference?, proofUrl?, notes?, paidAt?}

    The payment is stored as confirmed even when the finance ledger cannot
    be reached.
    """
    try:
        payload = _json_body(PAYMENT_FIELDS)
        payment = payment_service.record_payment(
            order_id=order_id,
            amount=payload.get("amount"),
            reference=payload.get("reference"),
            proof_url=payload.get("proofUrl"),
            notes=payload.get("notes"),
            paid_at=payload.get("paidAt"),
            audit=current_audit_context(),
        )
        return payment, 201

    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/payments")
@require_api_key
@require_scope("orders:*")
def list_payments_route(order_id: int):
    try:
        return jsonify(payment_service.list_payments(order_id))
    except NotFoundError as e:
        return {"error": str(e)}, 404
