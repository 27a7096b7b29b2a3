import pytest

from blackbird import create_app, whatsapp
from blackbird.branches import create_branch
from blackbird.catalog import create_product, get_default_product
from blackbird.db import get_session
from blackbird.employees import create_employee
from blackbird.utils import normalize_wa

ADMIN_EMAIL = "owner@blackbird.test"
ADMIN_PASSWORD = "ink-and-needles"
STAFF_PASSWORD = "staff-pass"


class FakeGateway:
    """Stands in for whatsapp.send_template; records every call."""

    def __init__(self):
        self.calls = []
        self.fail_for = set()
        self.raise_for = set()

    def __call__(self, to, name, lang=None, variables=None):
        wa = normalize_wa(to)
        self.calls.append({"to": wa, "name": name, "lang": lang, "variables": list(variables or [])})
        if wa in self.raise_for:
            raise RuntimeError("gateway exploded")
        if wa in self.fail_for:
            return whatsapp.SendResult(ok=False, status_code=400, error="rejected")
        return whatsapp.SendResult(ok=True, status_code=200, response={"messages": [{"id": "wamid.test"}]})

    def sent_to(self):
        return [c["to"] for c in self.calls]


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr(whatsapp, "send_template", fake)
    return fake


@pytest.fixture
def app(gateway):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": "sqlite://",
        "SECRET_KEY": "test-secret",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ADMIN_NAME": "Owner",
        "TASKS_TOKEN": "",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    with get_session() as s:
        yield s


# ─────────────────────────────────────────────────────────────
# Seed data
# ─────────────────────────────────────────────────────────────
@pytest.fixture
def branch(app):
    with get_session() as s:
        return create_branch(s, {"name": "Indiranagar", "address": "100 Feet Road"})


@pytest.fixture
def other_branch(app):
    with get_session() as s:
        return create_branch(s, {"name": "Koramangala", "address": "80 Feet Road"})


@pytest.fixture
def product(app):
    with get_session() as s:
        return create_product(s, {"name": "Piercing", "base_price": 500})


@pytest.fixture
def default_product(app):
    with get_session() as s:
        return get_default_product(s)


@pytest.fixture
def staff(branch):
    with get_session() as s:
        return create_employee(s, {
            "full_name": "Asha Rao",
            "email": "asha@blackbird.test",
            "phone_number": "9876500001",
            "password": STAFF_PASSWORD,
            "branch_id": branch.id,
        })


def _login(client, email, password):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


@pytest.fixture
def admin_headers(client):
    return _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def staff_headers(client, staff):
    return _login(client, staff.email, STAFF_PASSWORD)


@pytest.fixture
def booking_payload(branch, product):
    def make(phone="9876543210", cash=1000, upi=0, quantity=2, **extra):
        data = {
            "phone": phone,
            "full_name": "Kiran Das",
            "artist_name": "Meera",
            "branch_id": branch.id,
            "items": [{"product_id": product.id, "quantity": quantity}],
            "payment": {"cash_amount": cash, "upi_amount": upi},
        }
        data.update(extra)
        return data
    return make
