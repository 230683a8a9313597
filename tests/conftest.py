import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import mailer
import main
import payments

GATEWAY_SECRET = "test_secret"


class FakeGateway(payments.RazorpayGateway):
    """Gateway that signs with a known secret and never leaves the process."""

    def __init__(self):
        super().__init__("rzp_test_key", GATEWAY_SECRET)
        self.created = []
        self.fail = False

    def create_order(self, amount, currency, receipt, notes=None):
        if self.fail:
            raise payments.GatewayError("gateway down")
        order = {
            "id": f"order_test{len(self.created) + 1}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.created.append(order)
        return order


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, username="alice", email=None, password="secret123", name="Alice"):
    res = client.post("/api/auth/register", json={
        "name": name,
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
    })
    assert res.status_code == 201, res.text
    return res.json()["token"]


@pytest.fixture
def mongo(monkeypatch):
    mock_db = mongomock.MongoClient()["aether_test"]
    monkeypatch.setattr(database, "db", mock_db)
    monkeypatch.setattr(main, "db", mock_db)
    return mock_db


@pytest.fixture
def gateway():
    gw = FakeGateway()
    main.app.dependency_overrides[payments.get_gateway] = lambda: gw
    yield gw
    main.app.dependency_overrides.pop(payments.get_gateway, None)


@pytest.fixture
def client(mongo, gateway):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(payload):
        sent.append(payload)
        return True, None

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return sent


@pytest.fixture
def user_token(client):
    return register(client)


@pytest.fixture
def admin_token(client, mongo):
    token = register(client, "admin_user", name="Admin")
    mongo["user"].update_one({"username": "admin_user"}, {"$set": {"is_admin": True}})
    return token


@pytest.fixture
def make_product(client, admin_token):
    def _make(name="Classic Leather Jacket", price=1000, category="leather jacket", **extra):
        body = {"name": name, "price": price, "category": category, "images": ["images/products/a.jpg"], **extra}
        res = client.post("/api/products", json=body, headers=bearer(admin_token))
        assert res.status_code == 201, res.text
        return res.json()
    return _make
