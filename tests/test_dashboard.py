from datetime import timedelta

import pytest

from blackbird.booking import create_booking
from blackbird.dashboard import get_branch_dashboard_data, get_dashboard_data
from blackbird.errors import NotFoundError
from blackbird.models import Booking
from blackbird.utils import now_local


def _by(rows, key, value):
    return next(r for r in rows if r[key] == value)


def test_empty_range_is_zeroed(session):
    today = now_local().date()
    data = get_dashboard_data(session, today, today)
    assert data["summary"] == {
        "total_bookings": 0,
        "total_revenue": 0,
        "unique_customers_in_range": 0,
        "average_order_value": 0,
    }
    assert data["top_products"] == []
    assert data["by_branch"] == []
    assert [r["count"] for r in data["by_payment_mode"]] == [0, 0, 0]


def test_two_bookings_same_branch(session, booking_payload, branch):
    create_booking(session, booking_payload(phone="9800000001", cash=1000), employee_id=1)
    create_booking(session, booking_payload(phone="9800000002", cash=500, quantity=1), employee_id=1)
    today = now_local().date()

    data = get_dashboard_data(session, today, today)
    summary = data["summary"]
    assert summary["total_bookings"] == 2
    assert summary["total_revenue"] == 1500
    assert summary["average_order_value"] == 750
    assert summary["unique_customers_in_range"] == 2

    row = _by(data["by_branch"], "branch_id", branch.id)
    assert (row["booking_count"], row["revenue"], row["branch_name"]) == (2, 1500, "Indiranagar")

    assert data["totals"]["total_branches"] == 1
    assert data["totals"]["total_customers"] == 2
    assert data["date_range"] == {"start_date": today.isoformat(), "end_date": today.isoformat()}


def test_average_is_rounded(session, booking_payload, branch, default_product):
    for price in (100, 100, 101):
        data = booking_payload(
            phone=f"98000000{price:02d}",
            cash=price,
            items=[{"product_id": default_product.id, "quantity": 1, "unit_price": price}],
        )
        create_booking(session, data, employee_id=1)
    today = now_local().date()
    summary = get_dashboard_data(session, today, today)["summary"]
    assert summary["average_order_value"] == 100.33


def test_split_counts_under_both_methods(session, booking_payload):
    create_booking(session, booking_payload(phone="9800000001", cash=400, upi=600), employee_id=1)
    create_booking(session, booking_payload(phone="9800000002", cash=0, upi=1000), employee_id=1)
    today = now_local().date()
    data = get_dashboard_data(session, today, today)

    cash = _by(data["by_payment_method"], "payment_method", "CASH")
    upi = _by(data["by_payment_method"], "payment_method", "UPI")
    assert (cash["count"], cash["total_amount"]) == (1, 400)
    assert (upi["count"], upi["total_amount"]) == (2, 1600)

    split = _by(data["by_payment_mode"], "payment_mode", "SPLIT")
    only_upi = _by(data["by_payment_mode"], "payment_mode", "UPI")
    assert (split["count"], split["total_amount"]) == (1, 1000)
    assert (only_upi["count"], only_upi["total_amount"]) == (1, 1000)


def test_top_products_by_revenue(session, booking_payload, product, default_product):
    create_booking(session, booking_payload(phone="9800000001", cash=1000), employee_id=1)
    create_booking(session, booking_payload(
        phone="9800000002",
        cash=3000,
        items=[{"product_id": default_product.id, "quantity": 1, "unit_price": 3000}],
    ), employee_id=1)
    today = now_local().date()

    top = get_dashboard_data(session, today, today)["top_products"]
    assert [t["product_name"] for t in top] == ["Tattoo", "Piercing"]
    assert top[1]["quantity"] == 2
    assert top[1]["revenue"] == 1000


def test_range_excludes_other_days(session, booking_payload):
    old = create_booking(session, booking_payload(phone="9800000001"), employee_id=1)
    session.get(Booking, old.id).date = now_local() - timedelta(days=10)
    session.flush()
    create_booking(session, booking_payload(phone="9800000002", cash=500, quantity=1), employee_id=1)
    today = now_local().date()

    summary = get_dashboard_data(session, today, today)["summary"]
    assert summary["total_bookings"] == 1
    assert summary["total_revenue"] == 500


def test_branch_variant(session, booking_payload, branch, other_branch):
    create_booking(session, booking_payload(phone="9800000001"), employee_id=1)
    create_booking(session, booking_payload(phone="9800000002", branch_id=other_branch.id, cash=500, quantity=1),
                   employee_id=1)
    today = now_local().date()

    data = get_branch_dashboard_data(session, today, today, other_branch.id)
    assert data["summary"]["total_bookings"] == 1
    assert data["summary"]["total_revenue"] == 500
    assert data["branch_info"]["branch_number"] == other_branch.branch_number
    assert "by_branch" not in data and "totals" not in data

    with pytest.raises(NotFoundError):
        get_branch_dashboard_data(session, today, today, 9999)


def test_dashboard_route(client, admin_headers, staff_headers, booking_payload, other_branch):
    client.post("/bookings", json=booking_payload(phone="9800000001"), headers=admin_headers)
    client.post("/bookings", json=booking_payload(phone="9800000002", branch_id=other_branch.id),
                headers=admin_headers)
    today = now_local().date().isoformat()

    body = client.get(f"/dashboard?start_date={today}&end_date={today}", headers=admin_headers).get_json()
    assert body["summary"]["total_bookings"] == 2
    assert "totals" in body

    body = client.get(f"/dashboard?start_date={today}&end_date={today}", headers=staff_headers).get_json()
    assert body["summary"]["total_bookings"] == 1
    assert body["branch_info"]["branch_name"] == "Indiranagar"


@pytest.mark.parametrize("query", [
    "",
    "?start_date=2026-01-10",
    "?start_date=10-01-2026&end_date=2026-01-11",
    "?start_date=2026-02-01&end_date=2026-01-01",
])
def test_dashboard_rejects_bad_ranges(client, admin_headers, query):
    resp = client.get(f"/dashboard{query}", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False
