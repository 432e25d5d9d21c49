"""
HTTP surface tests.

Verifies:
- Public paths, 401 for missing/invalid keys, 403 for missing scopes
- Legacy static key bypasses rate limiting; stored keys get 429 + Retry-After
- CRUD round trips for products, customers, orders and API keys
- CORS preflight and response headers
"""

import pytest

from vendor_backend.services import api_key_service

LEGACY_KEY = "legacy-dashboard-key"


def auth_headers(key: str) -> dict:
    return {"X-API-Key": key}


# =============================================================================
# PUBLIC / AUTH
# =============================================================================


class TestPublicPaths:

    def test_index(self, client, db_session):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json["endpoints"]["v1"] == "/v1"

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["integrations"]["finance"] == "configured"


class TestAuthentication:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/v1/products"),
            ("POST", "/v1/products"),
            ("GET", "/v1/customers"),
            ("GET", "/v1/orders"),
            ("PUT", "/v1/orders/1/status"),
            ("POST", "/v1/orders/1/payments"),
            ("GET", "/v1/api-keys"),
        ],
    )
    def test_requires_key(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"] == "Unauthorized"
        assert "X-API-Key" in resp.json["message"]

    def test_unknown_key(self, client, db_session):
        resp = client.get("/v1/products", headers=auth_headers("pk_nope"))
        assert resp.status_code == 401
        assert resp.json["message"] == "API key not found"

    def test_revoked_key(self, client, db_session, services, api_key):
        api_key_service.revoke_api_key(api_key_id=api_key[1].id)

        resp = client.get("/v1/products", headers=auth_headers(api_key[0]))

        assert resp.status_code == 401
        assert resp.json["message"] == "API key inactive or revoked"

    def test_legacy_key_not_rate_limited(self, client, db_session):
        for _ in range(3):
            resp = client.get("/v1/products", headers=auth_headers(LEGACY_KEY))
            assert resp.status_code == 200
            assert "X-RateLimit-Limit" not in resp.headers

    def test_missing_scope(self, client, db_session, services):
        plaintext, _ = api_key_service.create_api_key(name="reader", scopes=["products:read"])

        assert client.get("/v1/products", headers=auth_headers(plaintext)).status_code == 200
        resp = client.post("/v1/products", json={}, headers=auth_headers(plaintext))
        assert resp.status_code == 403
        assert resp.json["required_scope"] == "products:write"

    def test_api_keys_routes_need_manage_scope(self, client, db_session, services):
        plaintext, _ = api_key_service.create_api_key(name="orders", scopes=["orders:*"])

        assert client.get("/v1/api-keys", headers=auth_headers(plaintext)).status_code == 403


class TestRateLimiting:

    def test_429_after_limit(self, client, db_session, services):
        plaintext, _ = api_key_service.create_api_key(name="tight", scopes=["*"], rate_limit=2)
        headers = auth_headers(plaintext)

        first = client.get("/v1/products", headers=headers)
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"

        assert client.get("/v1/products", headers=headers).status_code == 200

        blocked = client.get("/v1/products", headers=headers)
        assert blocked.status_code == 429
        assert blocked.json["error"] == "Rate limit exceeded"
        assert 0 < blocked.json["retryAfter"] <= 60
        assert blocked.headers["Retry-After"] == str(blocked.json["retryAfter"])
        assert blocked.headers["X-RateLimit-Remaining"] == "0"


class TestCors:

    def test_preflight(self, client, db_session):
        resp = client.options("/v1/products", headers={"Origin": "http://dashboard.test"})
        assert resp.status_code == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "http://dashboard.test"
        assert "X-API-Key" in resp.headers["Access-Control-Allow-Headers"]

    def test_security_headers(self, client, db_session):
        resp = client.get("/")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "X-RateLimit-Remaining" in resp.headers["Access-Control-Expose-Headers"]


# =============================================================================
# PRODUCTS / CUSTOMERS
# =============================================================================


class TestProductsApi:

    def test_crud(self, client, db_session, services, headers):
        created = client.post(
            "/v1/products",
            json={"imageUrl": "https://cdn.example.com/a.png", "name": "Walnut Desk", "price": "349.5"},
            headers=headers,
        )
        assert created.status_code == 201
        product = created.json
        assert product["status"] == "active"
        assert product["stock"] == 0
        assert product["price"] == 349.5
        assert product["availableAt"].endswith("Z")

        updated = client.put(f"/v1/products/{product['id']}", json={"stock": 4}, headers=headers)
        assert updated.status_code == 200
        assert updated.json["stock"] == 4
        assert updated.json["name"] == "Walnut Desk"

        assert client.get(f"/v1/products/{product['id']}", headers=headers).json["stock"] == 4

        assert client.delete(f"/v1/products/{product['id']}", headers=headers).status_code == 200
        assert client.get(f"/v1/products/{product['id']}", headers=headers).status_code == 404

        actions = [e["action"] for e in services.audit_events() if e["entityType"] == "products"]
        assert actions == ["create", "update", "delete"]

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "No image", "price": 1},
            {"imageUrl": "x", "name": "Bad price", "price": -1},
            {"imageUrl": "x", "name": "Bad stock", "price": 1, "stock": -2},
            {"imageUrl": "x", "name": "Bad status", "price": 1, "status": "deleted"},
            {"imageUrl": "x", "name": "Extra", "price": 1, "sku": "nope"},
        ],
    )
    def test_create_validation(self, client, db_session, headers, payload):
        assert client.post("/v1/products", json=payload, headers=headers).status_code == 400

    def test_list_filters(self, client, db_session, services, headers):
        for name, status in [("Oak Table", "active"), ("Oak Chair", "archived"), ("Pine Bed", "active")]:
            client.post(
                "/v1/products",
                json={"imageUrl": "x", "name": name, "price": 10, "status": status},
                headers=headers,
            )

        resp = client.get("/v1/products?q=oak&status=active", headers=headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["products"]] == ["Oak Table"]
        assert resp.json["total"] == 1

        paged = client.get("/v1/products?offset=1&limit=1", headers=headers)
        assert paged.json["total"] == 3
        assert [p["name"] for p in paged.json["products"]] == ["Oak Chair"]
        assert paged.json["offset"] == 1

        assert client.get("/v1/products?limit=abc", headers=headers).status_code == 400
        assert client.get("/v1/products?limit=0", headers=headers).status_code == 400
        assert client.get("/v1/products", headers=headers).json["offset"] == 0

    def test_search_is_literal(self, client, db_session, services, headers):
        for name in ["Oak Table", "Pine Chair", "100% Wool_Rug"]:
            client.post(
                "/v1/products",
                json={"imageUrl": "x", "name": name, "price": 10},
                headers=headers,
            )

        def names(q):
            resp = client.get("/v1/products", query_string={"q": q}, headers=headers)
            return [p["name"] for p in resp.json["products"]]

        assert names("_") == ["100% Wool_Rug"]
        assert names("%") == ["100% Wool_Rug"]
        assert names("0%") == ["100% Wool_Rug"]
        assert names("o_k") == []


class TestCustomersApi:

    def test_crud_and_duplicate_email(self, client, db_session, services, headers):
        created = client.post(
            "/v1/customers",
            json={"name": "Luis Perez", "email": "luis@example.com"},
            headers=headers,
        )
        assert created.status_code == 201
        customer_id = created.json["id"]

        dup = client.post(
            "/v1/customers",
            json={"name": "Other Luis", "email": "LUIS@example.com"},
            headers=headers,
        )
        assert dup.status_code == 409

        updated = client.put(f"/v1/customers/{customer_id}", json={"phone": "555-0199"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json["phone"] == "555-0199"

        assert len(client.get("/v1/customers", headers=headers).json) == 1
        assert client.delete(f"/v1/customers/{customer_id}", headers=headers).status_code == 200
        assert client.get(f"/v1/customers/{customer_id}", headers=headers).status_code == 404

    def test_invalid_email(self, client, db_session, headers):
        resp = client.post("/v1/customers", json={"name": "X", "email": "not-an-email"}, headers=headers)
        assert resp.status_code == 400


# =============================================================================
# ORDERS
# =============================================================================


class TestOrdersApi:

    def test_create_status_payment_delete(self, client, db_session, services, headers, customer, product):
        resp = client.post(
            "/v1/orders",
            json={
                "customerId": customer.id,
                "items": [{"productId": product.id, "quantity": 3, "discountPercent": 10}],
            },
            headers={**headers, "X-Actor-Email": "ops@example.com", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )
        assert resp.status_code == 201
        order = resp.json
        assert order["total"] == 270.0
        assert order["statusEvents"][0]["reason"] == "order_created"

        create_event = [e for e in services.audit_events("create") if e["entityType"] == "orders"][0]
        assert create_event["ipAddress"] == "203.0.113.9"
        assert create_event["metadata"]["actorEmail"] == "ops@example.com"
        assert create_event["metadata"]["apiKeyId"] is not None

        status = client.put(
            f"/v1/orders/{order['id']}/status",
            json={"toStatus": "shipped", "reason": "carrier pickup"},
            headers=headers,
        )
        assert status.status_code == 200
        assert status.json["statusEvents"][-1]["toStatus"] == "shipped"

        payment = client.post(
            f"/v1/orders/{order['id']}/payments",
            json={"amount": "270.00", "reference": "SPEI-1"},
            headers=headers,
        )
        assert payment.status_code == 201
        assert payment.json["status"] == "confirmed"

        listed = client.get(f"/v1/orders/{order['id']}/payments", headers=headers)
        assert [p["reference"] for p in listed.json] == ["SPEI-1"]

        full = client.get(f"/v1/orders/{order['id']}", headers=headers).json
        assert full["customerName"] == "Ana Lopez"
        assert len(full["payments"]) == 1

        assert client.delete(f"/v1/orders/{order['id']}", headers=headers).status_code == 200
        assert client.get(f"/v1/orders/{order['id']}", headers=headers).status_code == 404

    def test_missing_customer_is_404(self, client, db_session, services, headers, product):
        resp = client.post(
            "/v1/orders",
            json={"customerId": 999, "items": [{"productId": product.id, "quantity": 1}]},
            headers=headers,
        )
        assert resp.status_code == 404

    def test_missing_product_is_404(self, client, db_session, services, headers, customer):
        resp = client.post(
            "/v1/orders",
            json={"customerId": customer.id, "items": [{"productId": 999, "quantity": 1}]},
            headers=headers,
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"customerId": 1, "items": "nope"},
            {"customerId": 1, "items": [{"productId": 1}]},
            {"customerId": 1, "discount": 5},
        ],
    )
    def test_create_validation(self, client, db_session, headers, payload):
        assert client.post("/v1/orders", json=payload, headers=headers).status_code == 400

    def test_status_requires_to_status(self, client, db_session, services, headers, customer, product):
        order = client.post(
            "/v1/orders",
            json={"customerId": customer.id, "items": [{"productId": product.id, "quantity": 1}]},
            headers=headers,
        ).json

        resp = client.put(f"/v1/orders/{order['id']}/status", json={}, headers=headers)
        assert resp.status_code == 400

    def test_payment_survives_finance_outage(self, client, db_session, services, headers, customer, product):
        services.unreachable.add("finance.test")
        order = client.post(
            "/v1/orders",
            json={"customerId": customer.id, "items": [{"productId": product.id, "quantity": 1}]},
            headers=headers,
        ).json

        resp = client.post(f"/v1/orders/{order['id']}/payments", json={"amount": 100}, headers=headers)

        assert resp.status_code == 201
        assert resp.json["status"] == "confirmed"
        assert len(client.get(f"/v1/orders/{order['id']}", headers=headers).json["payments"]) == 1


# =============================================================================
# API KEYS
# =============================================================================


class TestApiKeysApi:

    def test_bootstrap_with_legacy_key(self, client, db_session, services):
        legacy = auth_headers(LEGACY_KEY)

        created = client.post(
            "/v1/api-keys",
            json={"name": "integration", "scopes": ["products:read"], "rateLimit": 50},
            headers=legacy,
        )
        assert created.status_code == 201
        plaintext = created.json["key"]
        assert plaintext.startswith("pk_")
        assert created.json["apiKey"]["rateLimit"] == 50
        assert "keyHash" not in created.json["apiKey"]

        key_id = created.json["apiKey"]["id"]
        listed = client.get("/v1/api-keys", headers=legacy).json
        assert [k["id"] for k in listed] == [key_id]
        assert "key" not in listed[0]

        assert client.get("/v1/products", headers=auth_headers(plaintext)).status_code == 200
        assert client.get(f"/v1/api-keys/{key_id}", headers=legacy).json["lastUsedAt"] is not None

        assert client.delete(f"/v1/api-keys/{key_id}", headers=legacy).status_code == 200
        assert client.get("/v1/products", headers=auth_headers(plaintext)).status_code == 401

    def test_rate_limit_bounds(self, client, db_session):
        resp = client.post(
            "/v1/api-keys",
            json={"name": "too-fast", "rateLimit": 0},
            headers=auth_headers(LEGACY_KEY),
        )
        assert resp.status_code == 400

    def test_update(self, client, db_session, services, headers, api_key):
        resp = client.put(
            f"/v1/api-keys/{api_key[1].id}",
            json={"name": "renamed", "isActive": "inactive"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json["name"] == "renamed"
        assert resp.json["isActive"] == "inactive"

    @pytest.mark.parametrize("flag", [False, True, "false"])
    def test_is_active_takes_state_names_only(self, client, db_session, services, headers, api_key, flag):
        resp = client.put(
            f"/v1/api-keys/{api_key[1].id}",
            json={"isActive": flag},
            headers=headers,
        )
        assert resp.status_code == 400
        assert "isActive must be one of" in resp.json["error"]
