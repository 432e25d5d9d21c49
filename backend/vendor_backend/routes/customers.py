# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

# backend/vendor_backend/routes/customers.py
"""Customer API routes. All operations require the customers:* scope."""

from flask import Blueprint, current_app, jsonify, request

from ..services import customers_service
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_api_key, require_scope, current_audit_context

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "email": "email",
        "phone": "phone",
        "address": "address",
    },
    required_on_create={"name", "email"},
)

customers_bp = Blueprint("customers", __name__)


@customers_bp.get("")
@require_api_key
@require_scope("customers:*")
def list_customers():
    return jsonify(customers_service.list_customers())


@customers_bp.get("/<int:customer_id>")
@require_api_key
@require_scope("customers:*")
def get_customer_route(customer_id: int):
    try:
        return customers_service.get_customer(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@customers_bp.post("")
@require_api_key
@require_scope("customers:*")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = customers_service.create_customer(patch=patch, audit=current_audit_context())
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500

    return created, 201


@customers_bp.put("/<int:customer_id>")
@require_api_key
@require_scope("customers:*")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = customers_service.update_customer(
            customer_id=customer_id, patch=patch, audit=current_audit_context()
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500

    return updated, 200


@customers_bp.delete("/<int:customer_id>")
@require_api_key
@require_scope("customers:*")
def delete_customer_route(customer_id: int):
    """
    Delete a customer together with all of their orders.
    """
    try:
        deleted = customers_service.delete_customer(customer_id=customer_id, audit=current_audit_context())
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "customer": deleted}, 200
