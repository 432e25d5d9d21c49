# Overview: Read-only client for the inventory service (external products, stock levels, mappings).

from __future__ import annotations

from typing import Iterable

from .dispatch import IntegrationClient, IntegrationFailure, RetryPolicy


def match_external_product(product_name: str, candidates: Iterable[dict]) -> dict | None:
    """
    Pick the external product that corresponds to a catalog name.

    Exact case-insensitive match wins; otherwise the first case-insensitive
    substring match in either direction.
    """
    wanted = product_name.strip().lower()
    named = [c for c in candidates if isinstance(c, dict) and isinstance(c.get("name"), str)]

    for candidate in named:
        if candidate["name"].lower() == wanted:
            return candidate

    for candidate in named:
        other = candidate["name"].lower()
        if other and (wanted in other or other in wanted):
            return candidate

    return None


def available_from_levels(levels: Iterable[dict]) -> int:
    """Sum of max(0, onHand - reserved) across warehouses."""
    total = 0
    for level in levels:
        on_hand = int(level.get("onHand") or 0)
        reserved = int(level.get("reserved") or 0)
        total += max(0, on_hand - reserved)
    return total


class InventoryClient(IntegrationClient):
    name = "inventory"

    @classmethod
    def from_config(cls, config) -> "InventoryClient":
        return cls(
            base_url=config.get("INVENTORY_API_URL"),
            api_key=config.get("INVENTORY_API_KEY"),
            # 5s per call, one retry on timeout/network failure only
            policy=RetryPolicy(attempts=2, timeout=config.get("INVENTORY_TIMEOUT_SECONDS", 5.0)),
            transport=config.get("INTEGRATIONS_TRANSPORT"),
        )

    def find_external_product_by_name(self, product_name: str) -> dict | None:
        data = self.request_data("GET", "/external-products", params={"q": product_name})
        return match_external_product(product_name, data or [])

    def get_total_available_stock(self, external_product_id: int) -> int:
        data = self.request_data(
            "GET", "/stock-levels", params={"externalProductId": external_product_id}
        )
        try:
            return available_from_levels(data or [])
        except (TypeError, ValueError, AttributeError) as exc:
            raise IntegrationFailure(self.name, f"Malformed stock levels: {exc}")

    def get_internal_item_mapping(self, external_product_id: int) -> dict | None:
        data = self.request_data(
            "GET",
            "/mappings/internal-to-external",
            params={"externalProductId": external_product_id},
        )
        mappings = [m for m in (data or []) if isinstance(m, dict) and m.get("internalItemId") is not None]
        return mappings[0] if mappings else None
