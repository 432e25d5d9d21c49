# Overview: Client for the factory service (production orders).

from __future__ import annotations

from .dispatch import IntegrationClient, IntegrationFailure, RetryPolicy

HIGH_PRIORITY = 1


def production_order_payload(
    *,
    vendor_order_id: int,
    internal_item_id: int,
    quantity: int,
    priority: int = HIGH_PRIORITY,
    notes: str | None = None,
    estimated_completion_date: str | None = None,
) -> dict:
    payload = {
        "vendorOrderId": vendor_order_id,
        "internalItemId": internal_item_id,
        "quantity": quantity,
        "priority": priority,
    }
    if notes is not None:
        payload["notes"] = notes
    if estimated_completion_date is not None:
        payload["estimatedCompletionDate"] = estimated_completion_date
    return payload


class FactoryClient(IntegrationClient):
    name = "factory"

    @classmethod
    def from_config(cls, config) -> "FactoryClient":
        return cls(
            base_url=config.get("FACTORY_API_URL"),
            api_key=config.get("FACTORY_API_KEY"),
            policy=RetryPolicy(attempts=2, timeout=config.get("FACTORY_TIMEOUT_SECONDS", 5.0)),
            transport=config.get("INTEGRATIONS_TRANSPORT"),
        )

    def create_production_order(self, payload: dict) -> dict:
        """POST /production-orders with a body from production_order_payload()."""
        data = self.request_data("POST", "/production-orders", payload=payload)
        if not isinstance(data, dict):
            raise IntegrationFailure(self.name, "Production order response missing data")
        return data
