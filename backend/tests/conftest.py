"""
Pytest fixtures for the POS integration backend tests.

Provides the test app (in-memory SQLite), a clean database per test, tenant
fixtures, and FakeSquare: an in-process Square API behind
httpx.MockTransport, so no test ever reaches the network.
"""

import json
from dataclasses import replace
from types import SimpleNamespace

import httpx
import pytest

from app import create_app
from app.extensions import db
from app.models import InventoryItem
from app.services.credential_store import CredentialStore, TokenSet
from app.services.integration import EXTENSION_KEY, build_integration
from app.services.tenant_service import create_tenant
from app.time_utils import parse_iso_datetime


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'APP_URL': 'http://flowy.test',
    'SQUARE_APP_ID': 'sq0idp-test-app',
    'SQUARE_APP_SECRET': 'sq0csp-test-secret',
    'SQUARE_USE_SANDBOX': True,
    'SQUARE_SYNC_PAGE_LIMIT': 2,
    'SQUARE_SYNC_OVERLAP_SECONDS': 300,
    'SYNC_BACKFILL_DAYS': 7,
    'SYNC_MAX_WORKERS': 1,
    'CRON_SECRET': 'cron-test-secret',
}


def square_order(order_id, created_at, *, total=1000, line_items=None, state="COMPLETED", closed_at=None):
    """Order payload shaped like Square's /v2/orders/search response (closed_at defaults to created_at)."""
    if line_items is None:
        line_items = [{
            "name": "Flat White",
            "quantity": "1",
            "base_price_money": {"amount": total, "currency": "USD"},
            "total_money": {"amount": total, "currency": "USD"},
        }]
    order = {
        "id": order_id,
        "location_id": "L1",
        "state": state,
        "created_at": created_at,
        "closed_at": closed_at or created_at,
        "line_items": line_items,
    }
    if total is not None:
        order["total_money"] = {"amount": total, "currency": "USD"}
    return order


class FakeSquare:
    """
    Minimal Square API.

    orders are kept per access token; /v2/orders/search honors the
    created_at or closed_at start filter, sorts ascending on that field and
    pages by the body's limit using cursors "page-<n>".
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.requests = []
        self.token_status = 200
        self.token_payload = {
            "access_token": "sq-access-new",
            "refresh_token": "sq-refresh-new",
            "expires_at": "2030-01-01T00:00:00Z",
            "token_type": "bearer",
            "merchant_id": "MERCHANT-1",
        }
        self.revoke_status = 200
        self.revoke_payload = {"success": True}
        self.locations = [
            {"id": "L1", "name": "Main Street", "address": {"address_line_1": "1 Main St", "locality": "Springfield"}},
            {"id": "L2", "name": "Airport Kiosk"},
        ]
        self.locations_status = 200
        self.orders = {}
        self.honor_start_filter = True
        self.failing_tokens = {}
        self.fail_on_cursor = None
        self.search_error = None
        self.scripted_pages = None

    def add_orders(self, access_token, *orders):
        self.orders.setdefault(access_token, []).extend(orders)

    def calls(self, path):
        return [request for request in self.requests if request.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append(SimpleNamespace(
            method=request.method,
            path=path,
            json=body,
            headers=request.headers,
        ))

        if path == "/oauth2/token":
            return httpx.Response(self.token_status, json=self.token_payload)
        if path == "/oauth2/revoke":
            return httpx.Response(self.revoke_status, json=self.revoke_payload)

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if path == "/v2/locations":
            if self.locations_status != 200:
                return httpx.Response(self.locations_status, json={"errors": [{"code": "UNAUTHORIZED", "detail": "Token rejected"}]})
            return httpx.Response(200, json={"locations": self.locations})
        if path == "/v2/orders/search":
            return self._search(token, body)
        return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND", "detail": f"No route {path}"}]})

    def _search(self, token, body):
        if self.search_error is not None:
            raise self.search_error
        if token in self.failing_tokens:
            return httpx.Response(self.failing_tokens[token], json={"errors": [{"code": "INTERNAL_SERVER_ERROR", "detail": "Square is down"}]})

        cursor = body.get("cursor")
        if cursor is not None and cursor == self.fail_on_cursor:
            return httpx.Response(500, json={"errors": [{"code": "INTERNAL_SERVER_ERROR", "detail": "Page failed"}]})

        index = int(cursor.split("-")[1]) if cursor else 0
        if self.scripted_pages is not None:
            payload = dict(self.scripted_pages[index])
            if index + 1 < len(self.scripted_pages):
                payload["cursor"] = f"page-{index + 1}"
            return httpx.Response(200, json=payload)

        orders = list(self.orders.get(token, []))
        window_field, bounds = next(iter(body["query"]["filter"]["date_time_filter"].items()))

        def window_at(order):
            return parse_iso_datetime(order.get(window_field) or order["created_at"])

        if self.honor_start_filter:
            start_at = parse_iso_datetime(bounds["start_at"])
            orders = [order for order in orders if window_at(order) >= start_at]
        orders.sort(key=window_at)

        limit = body.get("limit") or 100
        page = orders[index * limit:(index + 1) * limit]

        payload = {"orders": page} if page else {}
        if (index + 1) * limit < len(orders):
            payload["cursor"] = f"page-{index + 1}"
        return httpx.Response(200, json=payload)


_fake_square = FakeSquare()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG, square_transport=httpx.MockTransport(_fake_square.handler))

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
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def square():
    """The fake Square API, reset for each test."""
    _fake_square.reset()
    return _fake_square


@pytest.fixture(scope='function')
def services(app, db_session, square):
    """The app's integration components (wired to FakeSquare)."""
    return app.extensions[EXTENSION_KEY]


@pytest.fixture(scope='function')
def make_services(app, square):
    """
    Build integration components with overridden settings.

    The returned factory also installs them on the app (for route tests);
    the original components are restored afterwards.
    """
    original = app.extensions[EXTENSION_KEY]

    def _make(**overrides):
        built = build_integration(
            replace(original.settings, **overrides),
            transport=httpx.MockTransport(square.handler),
        )
        app.extensions[EXTENSION_KEY] = built
        return built

    yield _make
    app.extensions[EXTENSION_KEY] = original


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (first team)."""
    return create_tenant("Cafe Alpha", "cafe-alpha")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (second team)."""
    return create_tenant("Bistro Beta", "bistro-beta")


def connect(tenant, access_token, *, location_id="L1", expires_at=None, refresh_token="refresh"):
    """Store credentials (and optionally a bound location) for a tenant."""
    store = CredentialStore()
    store.set_tokens(tenant.id, TokenSet(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at or parse_iso_datetime("2030-01-01T00:00:00Z"),
    ))
    if location_id:
        store.bind_location_if_unbound(tenant.id, location_id)
    return tenant


@pytest.fixture(scope='function')
def connected_a(tenant_a):
    """Tenant A with Square token 'token-a' and location L1."""
    return connect(tenant_a, "token-a")


@pytest.fixture(scope='function')
def connected_b(tenant_b):
    """Tenant B with Square token 'token-b' and location L1."""
    return connect(tenant_b, "token-b")


def add_inventory(tenant, *items):
    """Add (name, value, unit_type) inventory items for a tenant."""
    rows = [
        InventoryItem(tenant_id=tenant.id, name=name, value=value, unit_type=unit_type)
        for name, value, unit_type in items
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows
