# Overview: Best-effort stock check per order line and production-order requests for shortfalls.

"""
Stock / production advisor.

Runs after an order has been committed. For each line:

1. find the matching external product in inventory (fuzzy by name)
2. sum its available stock across warehouses
3. if available < requested, look up the internal factory item mapped to it
4. ask the factory for a production order covering the shortfall

Every step may fail; a failure just means no production order for that
line. Nothing here raises to the order workflow.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..integrations import (
    AuditContext,
    FactoryClient,
    IntegrationFailure,
    InventoryClient,
    emit_audit_log,
)
from ..integrations.factory_client import HIGH_PRIORITY, production_order_payload


@dataclass(frozen=True)
class StockShortage:
    product_name: str
    internal_item_id: int
    available: int
    requested: int

    @property
    def shortfall(self) -> int:
        return self.requested - self.available

    @property
    def note(self) -> str:
        return (
            "Automatic order: insufficient stock. "
            f"Available: {self.available}, Requested: {self.requested}, "
            f"Product: {self.product_name}"
        )


@dataclass(frozen=True)
class AdvisorOutcome:
    product_name: str
    requested: int
    available: int | None = None
    production_order_id: int | None = None
    skipped_reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "productName": self.product_name,
            "requested": self.requested,
            "available": self.available,
            "productionOrderId": self.production_order_id,
            "skippedReason": self.skipped_reason,
            "error": self.error,
        }


def find_shortage(
    inventory: InventoryClient, product_name: str, requested: int
) -> tuple[StockShortage | None, int | None, str | None]:
    """
    Returns (shortage, available, skipped_reason).

    Raises IntegrationFailure when inventory cannot be consulted.
    """
    external = inventory.find_external_product_by_name(product_name)
    if external is None or external.get("id") is None:
        return None, None, "no_external_product"

    available = inventory.get_total_available_stock(external["id"])
    if available >= requested:
        return None, available, "in_stock"

    mapping = inventory.get_internal_item_mapping(external["id"])
    if mapping is None:
        return None, available, "no_mapping"

    shortage = StockShortage(
        product_name=product_name,
        internal_item_id=int(mapping["internalItemId"]),
        available=available,
        requested=requested,
    )
    return shortage, available, None


def advise_line(
    *,
    order_id: int,
    product_name: str,
    quantity: int,
    audit: AuditContext | None = None,
    inventory: InventoryClient | None = None,
    factory: FactoryClient | None = None,
) -> AdvisorOutcome:
    config = current_app.config
    inventory = inventory or InventoryClient.from_config(config)
    factory = factory or FactoryClient.from_config(config)

    if not inventory.enabled:
        return AdvisorOutcome(product_name, quantity, skipped_reason="inventory_not_configured")

    try:
        shortage, available, skipped = find_shortage(inventory, product_name, quantity)
    except IntegrationFailure as exc:
        current_app.logger.warning("Stock check failed for product %s: %s", product_name, exc)
        return AdvisorOutcome(product_name, quantity, error=str(exc))

    if shortage is None:
        return AdvisorOutcome(product_name, quantity, available=available, skipped_reason=skipped)

    if not factory.enabled:
        current_app.logger.warning(
            "Factory service not configured: no production order for %s (short by %d)",
            product_name, shortage.shortfall,
        )
        return AdvisorOutcome(
            product_name, quantity, available=available, skipped_reason="factory_not_configured"
        )

    request_data = production_order_payload(
        vendor_order_id=order_id,
        internal_item_id=shortage.internal_item_id,
        quantity=shortage.shortfall,
        priority=HIGH_PRIORITY,
        notes=shortage.note,
    )
    try:
        production_order = factory.create_production_order(request_data)
    except IntegrationFailure as exc:
        current_app.logger.warning(
            "Production order creation failed for %s: %s", product_name, exc
        )
        emit_audit_log(
            action="factory_integration_failure:create_production_order",
            entity_type="vendor_orders",
            entity_id=order_id,
            changes={"error": str(exc), "requestData": request_data},
            audit=audit,
            metadata={"integration": "factory", "action": "create_production_order"},
        )
        emit_audit_log(
            action="production_order_creation_failed",
            entity_type="orders",
            entity_id=order_id,
            changes={"after": {
                "error": str(exc),
                "productName": product_name,
                "internalItemId": shortage.internal_item_id,
                "quantity": shortage.shortfall,
            }},
            audit=audit,
            metadata={"integration": "factory"},
        )
        return AdvisorOutcome(product_name, quantity, available=available, error=str(exc))

    current_app.logger.info(
        "Production order %s requested for order %s: %d x %s",
        production_order.get("id"), order_id, shortage.shortfall, product_name,
    )
    emit_audit_log(
        action="production_order_created",
        entity_type="orders",
        entity_id=order_id,
        changes={"after": {
            "productionOrderId": production_order.get("id"),
            "internalItemId": shortage.internal_item_id,
            "quantity": shortage.shortfall,
            "reason": "insufficient_stock",
            "productName": product_name,
        }},
        audit=audit,
        metadata={"integration": "factory"},
    )
    return AdvisorOutcome(
        product_name,
        quantity,
        available=available,
        production_order_id=production_order.get("id"),
    )


def advise_order(
    *,
    order_id: int,
    lines: list[tuple[str, int]],
    audit: AuditContext | None = None,
) -> list[AdvisorOutcome]:
    """Run the advisor for every (product_name, quantity) line of an order."""
    config = current_app.config
    inventory = InventoryClient.from_config(config)
    factory = FactoryClient.from_config(config)

    outcomes = []
    for product_name, quantity in lines:
        try:
            outcomes.append(advise_line(
                order_id=order_id,
                product_name=product_name,
                quantity=quantity,
                audit=audit,
                inventory=inventory,
                factory=factory,
            ))
        except Exception:
            current_app.logger.exception("Stock advisor crashed for product %s", product_name)
            outcomes.append(AdvisorOutcome(product_name, quantity, error="unexpected error"))
    return outcomes
