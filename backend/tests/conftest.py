"""
Pytest fixtures for vendor backend tests.

Provides test database setup, API key fixtures, and a recording fake for
the remote services (inventory, factory, finance, audit) wired in through
an httpx.MockTransport.
"""

import json
from decimal import Decimal

import httpx
import pytest

from vendor_backend import create_app
from vendor_backend.extensions import db
from vendor_backend.models import Customer, Product
from vendor_backend.services import api_key_service

LEGACY_KEY = "legacy-dashboard-key"

INVENTORY_URL = "http://inventory.test"
FACTORY_URL = "http://factory.test"
FINANCE_URL = "http://finance.test"
AUDIT_URL = "http://audit.test"


class FakeServices:
    """
    Answers outbound calls like the remote services would and records them.

    - external_products: list returned by GET /external-products
    - stock_levels / mappings: keyed by external product id
    - unreachable: hosts that raise ConnectError
    - failing: host -> HTTP status returned instead of a success
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.requests = []
        self.external_products = []
        self.stock_levels = {}
        self.mappings = {}
        self.unreachable = set()
        self.failing = {}
        self.next_production_order_id = 900

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if host in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if host in self.failing:
            return httpx.Response(self.failing[host], json={"error": "upstream failure"})

        if host == "inventory.test":
            if path == "/external-products":
                return httpx.Response(200, json={"data": self.external_products})
            external_id = int(request.url.params.get("externalProductId"))
            if path == "/stock-levels":
                return httpx.Response(200, json={"data": self.stock_levels.get(external_id, [])})
            if path == "/mappings/internal-to-external":
                return httpx.Response(200, json={"data": self.mappings.get(external_id, [])})

        if host == "factory.test" and path == "/production-orders":
            body = json.loads(request.content)
            self.next_production_order_id += 1
            return httpx.Response(201, json={"data": {"id": self.next_production_order_id, **body}})

        if host == "finance.test" and path == "/ar/payments":
            return httpx.Response(201, json={"data": {"id": 1, **json.loads(request.content)}})

        if host == "audit.test" and path == "/audit-logs":
            return httpx.Response(201, json={"data": {"id": len(self.requests)}})

        return httpx.Response(404, json={"error": "not found"})

    def calls(self, host: str, path: str | None = None) -> list:
        return [
            r for r in self.requests
            if r.url.host == host and (path is None or r.url.path == path)
        ]

    def audit_events(self, action: str | None = None) -> list[dict]:
        events = [json.loads(r.content) for r in self.calls("audit.test", "/audit-logs")]
        if action is not None:
            events = [e for e in events if e["action"] == action]
        return events


FAKE_SERVICES = FakeServices()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'API_KEY': LEGACY_KEY,
        'RATE_LIMIT_STORE': 'memory',
        'INVENTORY_API_URL': INVENTORY_URL,
        'INVENTORY_API_KEY': 'inventory-key',
        'FACTORY_API_URL': FACTORY_URL,
        'FACTORY_API_KEY': 'factory-key',
        'FINANCE_API_URL': FINANCE_URL,
        'FINANCE_API_KEY': 'finance-key',
        'FINANCE_RETRY_DELAY_SECONDS': 0,
        'AUDIT_API_URL': AUDIT_URL,
        'AUDIT_API_KEY': 'audit-key',
        'INTEGRATIONS_TRANSPORT': httpx.MockTransport(FAKE_SERVICES.handler),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.remove()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop("rate_limit_store", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def services(app):
    """Fresh recording fake for the remote services."""
    FAKE_SERVICES.reset()
    yield FAKE_SERVICES
    FAKE_SERVICES.reset()


@pytest.fixture(scope='function')
def api_key(db_session):
    """(plaintext, record) for a key holding every scope."""
    return api_key_service.create_api_key(name="test-suite", scopes=["*"], rate_limit=100)


@pytest.fixture(scope='function')
def headers(api_key):
    return auth_headers(api_key[0])


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Ana Lopez", email="ana@example.com", phone="555-0100")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def product(db_session):
    """Product P1, price 100.00."""
    p = Product(
        image_url="https://cdn.example.com/p1.png",
        name="Oak Table",
        status="active",
        price=Decimal("100.00"),
        stock=5,
    )
    db_session.add(p)
    db_session.commit()
    return p


def auth_headers(key: str) -> dict:
    """Helper to create X-API-Key headers."""
    return {'X-API-Key': key}
