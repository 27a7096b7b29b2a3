import pytest

from blackbird import customers
from blackbird.branches import create_branch, get_branch, update_branch
from blackbird.booking import create_booking
from blackbird.customers import list_customers, record_order
from blackbird.db import get_session
from blackbird.employees import create_employee, delete_employee, update_employee
from blackbird.errors import ConflictError, NotFoundError, ValidationError
from blackbird.sequences import next_number


def _employee(**extra):
    data = {
        "full_name": "Ravi K",
        "email": "ravi@blackbird.test",
        "phone_number": "9876500002",
        "password": "secret1",
    }
    data.update(extra)
    return data


def test_branch_numbers_and_immutable_fields(session):
    a = create_branch(session, {"name": "A", "address": "1 Road"})
    b = create_branch(session, {"name": "B", "address": "2 Road"})
    assert (a.branch_number, b.branch_number) == ("BRANCH0001", "BRANCH0002")

    update_branch(session, a.id, {"name": "A2", "branch_number": "X", "employee_count": 99})
    a = get_branch(session, a.id)
    assert a.name == "A2"
    assert a.branch_number == "BRANCH0001"
    assert a.employee_count == 0


def test_counter_advances_per_kind(session):
    assert next_number(session, "booking", "INV") == "INV0001"
    assert next_number(session, "booking", "INV") == "INV0002"
    assert next_number(session, "employee", "EMP") == "EMP0001"


def test_employee_lifecycle_keeps_counts(session):
    a = create_branch(session, {"name": "A", "address": "1 Road"})
    b = create_branch(session, {"name": "B", "address": "2 Road"})

    emp = create_employee(session, _employee(branch_id=a.id))
    assert emp.employee_number == "EMP0001"
    session.refresh(a)
    assert a.employee_count == 1

    update_employee(session, emp.id, {"branch_id": b.id})
    session.refresh(a)
    session.refresh(b)
    assert (a.employee_count, b.employee_count) == (0, 1)

    delete_employee(session, emp.id)
    session.refresh(b)
    assert b.employee_count == 0


def test_employee_validation(session, branch):
    create_employee(session, _employee(branch_id=branch.id))
    with pytest.raises(ConflictError):
        create_employee(session, _employee(branch_id=branch.id, email="RAVI@blackbird.test"))
    with pytest.raises(ValidationError):
        create_employee(session, _employee(branch_id=branch.id, email="new@blackbird.test", password="123"))
    with pytest.raises(ValidationError):
        create_employee(session, _employee(branch_id=branch.id, email="new@blackbird.test", phone_number="12"))
    with pytest.raises(NotFoundError):
        create_employee(session, _employee(branch_id=777, email="new@blackbird.test"))


def test_employee_never_serializes_password(session, branch):
    emp = create_employee(session, _employee(branch_id=branch.id))
    assert "password_hash" not in emp.to_dict()
    assert "password" not in emp.to_dict()


def test_record_order_creates_then_increments(session):
    c = record_order(session, "9811111111", "Neha", None, 250)
    assert (c.total_orders, c.total_amount) == (1, 250)

    c = record_order(session, "9811111111", "Neha", "neha@example.com", 750)
    assert (c.total_orders, c.total_amount) == (2, 1000)
    assert c.email == "neha@example.com"


def test_losing_a_create_race_still_refreshes_email(app, monkeypatch):
    with get_session() as s:
        record_order(s, "9811111111", "Neha", None, 250)

    real_lookup = customers.find_by_phone
    lookups = []

    def lookup_missing_once(s, phone):
        lookups.append(phone)
        return None if len(lookups) == 1 else real_lookup(s, phone)

    monkeypatch.setattr(customers, "find_by_phone", lookup_missing_once)
    with get_session() as s:
        c = record_order(s, "9811111111", "Neha", "neha@example.com", 750)
        assert len(lookups) == 2
        assert (c.total_orders, c.total_amount) == (2, 1000)
        assert c.email == "neha@example.com"


def test_customer_list_by_branch(session, booking_payload, other_branch):
    create_booking(session, booking_payload(phone="9800000001"), employee_id=1)
    create_booking(session, booking_payload(phone="9800000002", branch_id=other_branch.id), employee_id=1)

    rows, total = list_customers(session, branch_id=other_branch.id)
    assert total == 1
    assert rows[0].phone == "9800000002"

    rows, total = list_customers(session, page=1, limit=1)
    assert total == 2
    assert len(rows) == 1


def test_employee_routes_are_admin_only(client, admin_headers, staff_headers, branch):
    resp = client.post("/employees", json=_employee(branch_id=branch.id), headers=admin_headers)
    assert resp.status_code == 201
    assert resp.get_json()["employee"]["employee_number"].startswith("EMP")

    assert client.get("/employees", headers=staff_headers).status_code == 403

    resp = client.get("/employees?q=ravi", headers=admin_headers)
    assert [e["email"] for e in resp.get_json()["employees"]] == ["ravi@blackbird.test"]


def test_customer_routes_scoped(client, admin_headers, staff_headers, booking_payload, other_branch):
    client.post("/bookings", json=booking_payload(phone="9800000001"), headers=admin_headers)
    created = client.post("/bookings", json=booking_payload(phone="9800000002", branch_id=other_branch.id),
                          headers=admin_headers)
    foreign_customer = created.get_json()["booking"]["customer_id"]

    body = client.get("/customers", headers=staff_headers).get_json()
    assert [c["phone"] for c in body["customers"]] == ["9800000001"]

    assert client.get(f"/customers/{foreign_customer}", headers=staff_headers).status_code == 403
    assert client.get(f"/customers/{foreign_customer}", headers=admin_headers).status_code == 200


def test_branch_routes(client, admin_headers, staff_headers):
    resp = client.post("/branches", json={"name": "HSR", "address": "27th Main"}, headers=admin_headers)
    assert resp.status_code == 201
    assert client.post("/branches", json={"name": "X", "address": "Y"}, headers=staff_headers).status_code == 403
    assert client.get("/branches/9999", headers=admin_headers).status_code == 404

    with get_session() as s:
        assert get_branch(s, resp.get_json()["branch"]["id"]).name == "HSR"
