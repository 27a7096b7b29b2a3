import pytest

from blackbird.auth import ADMIN, STAFF, CallerContext, effective_filter
from blackbird.errors import AuthorizationError
from tests.conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def test_effective_filter_admin_passes_through():
    admin = CallerContext(caller_id=1, role=ADMIN)
    assert effective_filter(admin, {"branch_id": 7, "page": 2}) == {"branch_id": 7, "page": 2}
    assert effective_filter(admin, {}) == {}


def test_effective_filter_pins_staff():
    staff = CallerContext(caller_id=5, role=STAFF, branch_id=3)
    assert effective_filter(staff, {"branch_id": 7})["branch_id"] == 3
    assert effective_filter(staff, {})["branch_id"] == 3


def test_staff_without_branch_is_refused():
    with pytest.raises(AuthorizationError):
        effective_filter(CallerContext(caller_id=5, role=STAFF), {})


def test_login_and_me(client):
    resp = client.post("/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    token = resp.get_json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).get_json()
    assert me["user"]["email"] == ADMIN_EMAIL
    assert me["user"]["role"] == "admin"


def test_staff_login(client, staff_headers, staff):
    me = client.get("/auth/me", headers=staff_headers).get_json()
    assert me["user"]["role"] == "staff"
    assert me["user"]["branch_id"] == staff.branch_id


@pytest.mark.parametrize("password", ["wrong-password", ""])
def test_bad_credentials(client, password):
    resp = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": password})
    assert resp.status_code in (400, 401)
    assert resp.get_json()["ok"] is False


def test_missing_or_bad_token(client):
    assert client.get("/bookings").status_code == 401
    resp = client.get("/bookings", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid token"


def test_health_and_unknown_route(client):
    assert client.get("/health").get_json()["ok"] is True
    resp = client.get("/no-such-thing")
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_fresh_token_is_not_reissued(client, admin_headers):
    resp = client.get("/auth/me", headers=admin_headers)
    assert resp.status_code == 200
    assert "X-New-Token" not in resp.headers


def test_token_near_expiry_is_reissued(app, client, admin_headers):
    app.config["TOKEN_REFRESH_THRESHOLD"] = app.config["TOKEN_MAX_AGE"] + 60

    resp = client.get("/auth/me", headers=admin_headers)
    assert resp.status_code == 200
    new_token = resp.headers["X-New-Token"]
    assert new_token

    again = client.get("/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert again.get_json()["user"]["email"] == ADMIN_EMAIL


def test_rejected_request_gets_no_new_token(app, client):
    app.config["TOKEN_REFRESH_THRESHOLD"] = app.config["TOKEN_MAX_AGE"] + 60
    resp = client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert "X-New-Token" not in resp.headers
