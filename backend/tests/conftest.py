"""
Pytest fixtures for Stitchline backend tests.

Provides an in-memory test database, a test client, signed-webhook helpers and
an order payload factory shaped like the storefront's webhook bodies.
"""

import json

import pytest
from stitchline import create_app
from stitchline.decorators import compute_webhook_signature
from stitchline.extensions import db


WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SHOPIFY_WEBHOOK_SECRET': WEBHOOK_SECRET,
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
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_line_item(line_item_id, title, *, price="120.00", quantity=1, properties=None, **extra) -> dict:
    item = {
        "id": line_item_id,
        "product_id": 9000 + line_item_id,
        "variant_id": 8000 + line_item_id,
        "sku": f"SKU-{line_item_id}",
        "title": title,
        "variant_title": extra.pop("variant_title", None),
        "quantity": quantity,
        "price": price,
        "properties": properties or [],
        "vendor": "Stitchline Leather",
        "product_type": "Wallet",
    }
    item.update(extra)
    return item


def make_order_payload(order_id=5550001, order_number=1001, line_items=None, **extra) -> dict:
    """Order body as delivered by the storefront's orders/create webhook."""
    payload = {
        "id": order_id,
        "order_number": order_number,
        "email": "jane@example.com",
        "customer": {"first_name": "Jane", "last_name": "Doe", "email": "jane@example.com"},
        "billing_address": {"name": "Jane B. Doe"},
        "tags": "vip, rush",
        "financial_status": "paid",
        "fulfillment_status": None,
        "note": None,
        "note_attributes": [],
        "total_price": "145.00",
        "currency": "USD",
        "created_at": "2026-10-01T10:00:00-05:00",
        "updated_at": "2026-10-01T10:00:00-05:00",
        "cancelled_at": None,
        "shipping_address": {"city": "Houston", "province": "TX"},
        "line_items": line_items if line_items is not None else [
            make_line_item(1, "Rio Grande", properties=[{"name": "Has Monogram", "value": "JD"}]),
            make_line_item(2, "Gift Wrap Service", price="25.00"),
        ],
    }
    payload.update(extra)
    return payload


def signed_headers(body: bytes, topic: str, secret: str = WEBHOOK_SECRET) -> dict:
    return {
        "X-Shopify-Hmac-Sha256": compute_webhook_signature(body, secret),
        "X-Shopify-Topic": topic,
        "Content-Type": "application/json",
    }


def post_webhook(client, payload, topic="orders/create", *, secret=WEBHOOK_SECRET, headers=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    hdrs = signed_headers(body, topic, secret)
    if headers is not None:
        hdrs.update(headers)
    return client.post("/api/webhooks/shopify", data=body, headers=hdrs)
