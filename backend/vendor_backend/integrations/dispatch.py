# Overview: Shared HTTP plumbing for remote collaborators (timeouts, bounded retry, swallow-and-log).

"""
Best-effort dispatch for remote collaborators.

Every outbound call (inventory, factory, finance, audit) goes through
IntegrationClient so timeouts and retries are declared in one place:

- request(): raises IntegrationFailure once the RetryPolicy is exhausted.
  Used where the caller degrades in its own way (stock advisor, finance).
- dispatch(): same call, but failures are logged and None is returned.
  Used for pure fire-and-forget notifications (audit).

Each attempt has a hard deadline of policy.timeout seconds. Transport
errors (timeouts, connection failures) are always retryable.
Non-2xx responses are retried only when the policy says so.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

import httpx
from flask import current_app


class IntegrationFailure(Exception):
    """A remote call failed after all attempts. Never surfaced to API callers."""

    def __init__(
        self,
        integration: str,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.integration = integration
        self.status_code = status_code
        self.detail = detail

    def to_dict(self) -> dict:
        return {
            "integration": self.integration,
            "message": str(self),
            "status": self.status_code,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 1
    timeout: float = 5.0
    delay: float = 0.0
    retry_on_status: bool = False


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500] or None


class IntegrationClient:
    name = "integration"
    requires_api_key = False

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        policy: RetryPolicy,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key or ""
        self.policy = policy
        self.transport = transport

    @property
    def enabled(self) -> bool:
        if not self.base_url:
            return False
        return bool(self.api_key) or not self.requires_api_key

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }

    def _send(self, client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        """
        One attempt, bounded by policy.timeout from start to last body byte.

        httpx timeouts apply per connect/read step, so a peer that trickles
        bytes is cut off here with ReadTimeout once the deadline passes.
        """
        deadline = time.monotonic() + self.policy.timeout
        with client.stream(method, url, **kwargs) as streamed:
            body = bytearray()
            for chunk in streamed.iter_bytes():
                body.extend(chunk)
                if time.monotonic() > deadline:
                    raise httpx.ReadTimeout(
                        f"no complete response within {self.policy.timeout}s",
                        request=streamed.request,
                    )
        # body is already decoded
        headers = httpx.Headers(streamed.headers)
        for name in ("content-encoding", "content-length", "transfer-encoding"):
            headers.pop(name, None)
        return httpx.Response(
            streamed.status_code,
            headers=headers,
            content=bytes(body),
            request=streamed.request,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        payload: Any = None,
    ) -> httpx.Response:
        if not self.enabled:
            raise IntegrationFailure(self.name, f"{self.name} service is not configured")

        url = f"{self.base_url}{path}"
        content = json.dumps(payload, default=str) if payload is not None else None
        attempts = max(1, self.policy.attempts)
        failure: IntegrationFailure | None = None

        with httpx.Client(
            timeout=self.policy.timeout,
            transport=self.transport,
            headers=self._headers(),
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = self._send(client, method, url, params=params, content=content)
                except httpx.TransportError as exc:
                    failure = IntegrationFailure(
                        self.name,
                        f"{method} {path} failed: {exc.__class__.__name__}: {exc}",
                    )
                else:
                    if response.is_success:
                        return response
                    failure = IntegrationFailure(
                        self.name,
                        f"{method} {path} returned {response.status_code}",
                        status_code=response.status_code,
                        detail=_error_body(response),
                    )
                    if not self.policy.retry_on_status:
                        raise failure

                if attempt < attempts:
                    current_app.logger.warning(
                        "%s attempt %d/%d failed, retrying: %s",
                        self.name, attempt, attempts, failure,
                    )
                    if self.policy.delay:
                        time.sleep(self.policy.delay)

        raise failure

    def request_data(self, method: str, path: str, **kwargs) -> Any:
        """request() and unwrap the collaborator's {"data": ...} envelope."""
        response = self.request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            raise IntegrationFailure(self.name, f"{method} {path} returned invalid JSON")
        if isinstance(body, dict):
            return body.get("data")
        return body

    def dispatch(self, method: str, path: str, **kwargs) -> httpx.Response | None:
        try:
            return self.request(method, path, **kwargs)
        except IntegrationFailure as exc:
            current_app.logger.warning("%s call %s %s failed: %s", self.name, method, path, exc)
            return None
