"""
Pytest fixtures shared by the storefront tests.

The app reads its settings at import time, so the environment is pointed at a
throwaway SQLite file before ``storefront`` is imported. Every test starts from
an empty schema.
"""
import itertools
import os
import tempfile
from types import SimpleNamespace

import pytest

_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOG_FILE"] = os.path.join(_TMP, "test.log")
os.environ["FLASK_SECRET_KEY"] = "test-secret"
os.environ["PUBLIC_BASE_URL"] = "http://localhost"
for _key in ("SLACK_WEBHOOK_URL", "SMTP_HOST", "STRIPE_SECRET_KEY", "ANTHROPIC_API_KEY"):
    os.environ[_key] = ""

import stripe  # noqa: E402

from storefront import config  # noqa: E402
from storefront.app import app as flask_app  # noqa: E402
from storefront.auth import hash_password  # noqa: E402
from storefront.db import engine, main_session  # noqa: E402
from storefront.models import Base, Brand, Category, InventoryItem, Product, User  # noqa: E402
from storefront.services import ai_generator  # noqa: E402

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)

ADDRESS = {
    "first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "phone": "5551234567",
    "address": "1 Main Street", "city": "Springfield", "zip_code": "12345",
}


@pytest.fixture(autouse=True)
def fresh_schema():
    """
    Drops and recreates every table

    Scope: function (each test sees an empty database)
    """
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role="CUSTOMER", name=None, is_active=True):
    with main_session() as db:
        user = User(email=email, name=name or email.split("@")[0], role=role, is_active=is_active,
                    password_hash=PASSWORD_HASH)
        db.add(user)
        db.commit()
        return user.id


def login(client, email, password=PASSWORD):
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return client


@pytest.fixture
def users():
    """
    Provides one account per role used by the tests

    Returns a dict of ids keyed by a short name.
    """
    return {
        "admin": make_user("admin@example.com", "SUPER_ADMIN", "Admin"),
        "orders": make_user("orders@example.com", "ORDER_MANAGER"),
        "content": make_user("content@example.com", "CONTENT_MANAGER"),
        "customer": make_user("ada@example.com", "CUSTOMER", "Ada"),
        "other": make_user("bob@example.com", "CUSTOMER", "Bob"),
    }


@pytest.fixture
def login_as(app, users):
    """Returns a fresh test client logged in as the given e-mail."""
    return lambda email: login(app.test_client(), email)


@pytest.fixture
def address():
    return dict(ADDRESS)


@pytest.fixture
def admin_client(app, users):
    return login(app.test_client(), "admin@example.com")


@pytest.fixture
def customer_client(app, users):
    return login(app.test_client(), "ada@example.com")


@pytest.fixture
def other_client(app, users):
    return login(app.test_client(), "bob@example.com")


@pytest.fixture
def catalog():
    """
    Provides a category, a brand and three products

    Tee (25.00, 50 in stock), Mug (12.00, 2 in stock, low) and an inactive Cap.
    """
    with main_session() as db:
        cat = Category(name="Apparel", slug="apparel")
        brand = Brand(name="Acme", slug="acme")
        db.add_all([cat, brand])
        db.flush()
        tee = Product(name="Tee", slug="tee", sku="TEE-1", price_cents=2500, cost_price_cents=900,
                      category_id=cat.id, brand_id=brand.id, description="Soft cotton tee",
                      inventory=InventoryItem(quantity=50))
        mug = Product(name="Mug", slug="mug", sku="MUG-1", price_cents=1200, category_id=cat.id,
                      inventory=InventoryItem(quantity=2, low_stock_threshold=5))
        cap = Product(name="Cap", slug="cap", sku="CAP-1", price_cents=1500, category_id=cat.id,
                      is_active=False, inventory=InventoryItem(quantity=5, low_stock_threshold=2))
        db.add_all([tee, mug, cap])
        db.commit()
        return SimpleNamespace(category_id=cat.id, brand_id=brand.id, tee=tee.id, mug=mug.id, cap=cap.id)


def order_payload(*lines, **extra):
    body = {
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        "shipping_address": ADDRESS,
        "payment_method": "COD",
    }
    body.update(extra)
    return body


@pytest.fixture
def place_order():
    """Places an order through the API and returns its JSON data."""
    def _place(client, *lines, **extra):
        res = client.post("/api/v1/orders", json=order_payload(*lines, **extra))
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]
    return _place


class FakeStripe:
    """Records Checkout sessions instead of calling Stripe."""

    def __init__(self):
        self.created = []
        self.payment_status = "unpaid"
        self.status = "open"
        self._ids = itertools.count(1)

    def create(self, **kwargs):
        sid = f"cs_test_{next(self._ids)}"
        self.created.append(kwargs)
        return SimpleNamespace(id=sid, url=f"https://checkout.stripe.test/{sid}")

    def retrieve(self, sid):
        return SimpleNamespace(id=sid, payment_status=self.payment_status, status=self.status)


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(stripe.checkout.Session, "create", fake.create)
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", fake.retrieve)
    return fake


class FakeAnthropic:
    """Stands in for ``anthropic.Anthropic``; replies with ``reply`` text."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []
        self.messages = SimpleNamespace(create=self._create)

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.reply)])


@pytest.fixture
def fake_ai(monkeypatch):
    """Returns a setter: ``fake_ai(reply_text)`` installs a client answering with that text."""
    def _install(reply):
        fake = FakeAnthropic(reply)
        monkeypatch.setattr(ai_generator, "get_client", lambda: fake)
        return fake
    return _install
