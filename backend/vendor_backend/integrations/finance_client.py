# Overview: Client for the finance ledger (accounts receivable payments).

from __future__ import annotations

from .dispatch import IntegrationClient, RetryPolicy

AR_PAYMENTS_PATH = "/ar/payments"


class FinanceClient(IntegrationClient):
    """
    Replicates manual payments into the finance AR ledger.

    Finance deduplicates on externalRef, so re-sending the same payment is
    safe: two attempts, 3s each, 250ms apart, retrying on any failure.
    """
    name = "finance"
    requires_api_key = True

    @classmethod
    def from_config(cls, config) -> "FinanceClient":
        return cls(
            base_url=config.get("FINANCE_API_URL"),
            api_key=config.get("FINANCE_API_KEY"),
            policy=RetryPolicy(
                attempts=2,
                timeout=config.get("FINANCE_TIMEOUT_SECONDS", 3.0),
                delay=config.get("FINANCE_RETRY_DELAY_SECONDS", 0.25),
                retry_on_status=True,
            ),
            transport=config.get("INTEGRATIONS_TRANSPORT"),
        )

    def create_ar_payment(
        self,
        *,
        external_ref: str,
        customer_id: int,
        amount: float,
        order_id: int | None = None,
        currency: str = "MXN",
        method: str = "bank_transfer",
        reference: str | None = None,
        proof_url: str | None = None,
        notes: str | None = None,
        paid_at: str | None = None,
        metadata: dict | None = None,
    ) -> None:
        payload = {
            "externalRef": external_ref,
            "customerId": customer_id,
            "orderId": order_id,
            "amount": amount,
            "currency": currency,
            "method": method,
            "reference": reference,
            "proofUrl": proof_url,
            "notes": notes,
            "paidAt": paid_at,
            "metadata": metadata,
        }
        self.request("POST", AR_PAYMENTS_PATH, payload={k: v for k, v in payload.items() if v is not None})
