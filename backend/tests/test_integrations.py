"""
Remote-call plumbing tests.

Verifies:
- RetryPolicy: attempts, delay between attempts, status retries opt-in
- dispatch() swallows failures; request() raises IntegrationFailure
- Audit payload shape and the never-raises guarantee
"""

import gzip
import json
import time

import httpx
import pytest

from vendor_backend.integrations import (
    AuditContext,
    IntegrationClient,
    IntegrationFailure,
    RetryPolicy,
    emit_audit_log,
)
from vendor_backend.integrations.audit_client import build_audit_payload


class Script:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TrickleStream(httpx.SyncByteStream):
    """Body that arrives one byte at a time."""

    def __init__(self, chunks, pause):
        self.chunks = chunks
        self.pause = pause

    def __iter__(self):
        for _ in range(self.chunks):
            time.sleep(self.pause)
            yield b" "


def _client(script, **policy):
    return IntegrationClient(
        "http://remote.test/",
        "secret",
        RetryPolicy(**policy),
        transport=httpx.MockTransport(script),
    )


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr("vendor_backend.integrations.dispatch.time.sleep", recorded.append)
    return recorded


class TestRetryPolicy:

    def test_success_first_try(self, app, sleeps):
        script = Script(httpx.Response(200, json={"data": {"ok": True}}))

        assert _client(script, attempts=2).request_data("GET", "/thing") == {"ok": True}
        assert len(script.requests) == 1
        assert script.requests[0].headers["X-API-Key"] == "secret"
        assert str(script.requests[0].url) == "http://remote.test/thing"
        assert sleeps == []

    def test_retries_transport_error_with_delay(self, app, sleeps):
        script = Script(
            httpx.ConnectTimeout("timed out"),
            httpx.Response(201, json={"data": {"id": 5}}),
        )

        response = _client(script, attempts=2, delay=0.25).request("POST", "/thing", payload={"a": 1})

        assert response.status_code == 201
        assert len(script.requests) == 2
        assert json.loads(script.requests[1].content) == {"a": 1}
        assert sleeps == [0.25]

    def test_gives_up_after_attempts(self, app, sleeps):
        script = Script(httpx.ConnectError("down"), httpx.ConnectError("down"))

        with pytest.raises(IntegrationFailure) as exc:
            _client(script, attempts=2).request("GET", "/thing")

        assert exc.value.integration == "integration"
        assert "ConnectError" in str(exc.value)
        assert len(script.requests) == 2

    def test_error_status_not_retried_by_default(self, app, sleeps):
        script = Script(httpx.Response(502, json={"error": "bad gateway"}))

        with pytest.raises(IntegrationFailure) as exc:
            _client(script, attempts=2).request("GET", "/thing")

        assert exc.value.status_code == 502
        assert exc.value.detail == {"error": "bad gateway"}
        assert len(script.requests) == 1

    def test_error_status_retried_when_enabled(self, app, sleeps):
        script = Script(httpx.Response(500, text="oops"), httpx.Response(200, json={}))

        response = _client(script, attempts=2, retry_on_status=True).request("POST", "/thing")

        assert response.status_code == 200
        assert len(script.requests) == 2

    def test_dispatch_swallows_failure(self, app, sleeps):
        script = Script(httpx.ConnectError("down"))

        assert _client(script, attempts=1).dispatch("POST", "/thing", payload={}) is None

    def test_slow_body_cut_off_at_deadline(self, app):
        script = Script(
            httpx.Response(200, stream=TrickleStream(chunks=100, pause=0.05)),
            httpx.Response(200, stream=TrickleStream(chunks=100, pause=0.05)),
        )

        started = time.monotonic()
        with pytest.raises(IntegrationFailure) as exc:
            _client(script, attempts=2, timeout=0.2).request("GET", "/thing")
        elapsed = time.monotonic() - started

        assert "ReadTimeout" in str(exc.value)
        assert len(script.requests) == 2
        assert elapsed < 2 * 0.2 + 0.5

    def test_compressed_body_decoded_once(self, app, sleeps):
        body = gzip.compress(json.dumps({"data": {"ok": True}}).encode())
        script = Script(httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=body))

        assert _client(script).request_data("GET", "/thing") == {"ok": True}

    def test_disabled_without_url(self, app):
        client = IntegrationClient(None, "secret", RetryPolicy())
        assert not client.enabled
        with pytest.raises(IntegrationFailure):
            client.request("GET", "/thing")


class TestAuditEmitter:

    def test_payload_shape(self):
        payload = build_audit_payload(
            action="update",
            entity_type="products",
            entity_id=3,
            changes={"before": {"name": "a"}, "after": {"name": "b"}},
            audit=AuditContext(
                ip_address="10.0.0.1",
                user_agent="pytest",
                actor_email="ops@example.com",
                api_key_id=9,
            ),
            metadata={"fields": ["name"]},
        )

        assert payload == {
            "userId": None,
            "action": "update",
            "entityType": "products",
            "entityId": 3,
            "changes": {"before": {"name": "a"}, "after": {"name": "b"}},
            "metadata": {
                "source": "vendor-backend",
                "actorEmail": "ops@example.com",
                "apiKeyId": 9,
                "fields": ["name"],
            },
            "ipAddress": "10.0.0.1",
            "userAgent": "pytest",
        }

    def test_single_attempt_and_never_raises(self, app, services):
        services.unreachable.add("audit.test")

        with app.test_request_context():
            assert emit_audit_log(action="create", entity_type="products", entity_id=1) is False

        assert len(services.calls("audit.test")) == 1

    def test_non_2xx_swallowed(self, app, services):
        services.failing["audit.test"] = 500

        with app.test_request_context():
            assert emit_audit_log(action="create", entity_type="products", entity_id=1) is False

    def test_acknowledged(self, app, services):
        with app.test_request_context():
            assert emit_audit_log(action="create", entity_type="products", entity_id=1) is True

        event = services.audit_events("create")[0]
        assert event["entityType"] == "products"
        assert json.loads(services.calls("audit.test")[0].content)["metadata"]["source"] == "vendor-backend"

    def test_not_configured_is_skipped(self, app, services):
        app.config["AUDIT_API_KEY"] = ""
        try:
            with app.test_request_context():
                assert emit_audit_log(action="create", entity_type="products") is False
        finally:
            app.config["AUDIT_API_KEY"] = "audit-key"

        assert services.calls("audit.test") == []
