from types import SimpleNamespace

import pytest
from sqlalchemy import select

from blackbird import whatsapp
from blackbird.booking import create_booking
from blackbird.broadcasts import (
    DynamicField,
    Literal,
    build_ordered_parameters,
    final_status,
    get_audience_phones,
    get_send_job,
    parse_field,
    preview_template,
    resolve_dynamic_field,
    send_marketing_message,
)
from blackbird.db import get_session
from blackbird.errors import ConflictError, NotFoundError, ValidationError
from blackbird.marketing_templates import create_template, list_templates, update_template
from blackbird.models import MarketingSend
from blackbird.settings import update_settings


def _slots(*positions, required=False):
    return [{"key": f"p{n}", "position": n, "type": "string", "required": required} for n in positions]


@pytest.fixture
def template(app):
    with get_session() as s:
        return create_template(s, {
            "name": "diwali_offer",
            "display_name": "Diwali offer",
            "whatsapp_template_name": "bb_diwali_offer",
            "body_example": "Hi {{1}}, {{2}}% off at {{3}} this week!",
            "parameters": [
                {"key": "name", "position": 1, "type": "string", "required": True},
                {"key": "discount", "position": 2, "type": "number", "required": True},
                {"key": "where", "position": 3, "type": "string"},
            ],
        })


# ─────────────────────────────────────────────────────────────
# Template store
# ─────────────────────────────────────────────────────────────
def test_name_is_upper_cased_and_unique(session, template):
    assert template.name == "DIWALI_OFFER"
    with pytest.raises(ConflictError):
        create_template(session, {
            "name": "Diwali_Offer",
            "display_name": "dup",
            "whatsapp_template_name": "x",
        })


def test_contiguous_positions_accepted(session):
    tpl = create_template(session, {
        "name": "three", "display_name": "Three", "whatsapp_template_name": "three",
        "parameters": _slots(3, 1, 2),
    })
    assert [p["position"] for p in tpl.parameters] == [1, 2, 3]


@pytest.mark.parametrize("positions", [(1, 3), (2,), (1, 1)])
def test_gaps_rejected_on_create(session, positions):
    with pytest.raises(ValidationError):
        create_template(session, {
            "name": "gappy", "display_name": "Gappy", "whatsapp_template_name": "gappy",
            "parameters": _slots(*positions),
        })


def test_gaps_rejected_on_update(session, template):
    with pytest.raises(ValidationError) as exc:
        update_template(session, template.id, {"parameters": _slots(1, 3)})
    assert "gap at position 2" in exc.value.message

    tpl = update_template(session, template.id, {"parameters": _slots(1, 2), "name": "renamed"})
    assert tpl.name == "RENAMED"
    assert len(tpl.parameters) == 2


def test_list_filters(session, template):
    update_template(session, template.id, {"is_active": False})
    create_template(session, {"name": "b", "display_name": "B", "whatsapp_template_name": "b"})

    rows, total = list_templates(session, is_active=True)
    assert total == 1
    assert rows[0].name == "B"


# ─────────────────────────────────────────────────────────────
# Dynamic fields and parameter ordering
# ─────────────────────────────────────────────────────────────
def test_parse_field():
    assert parse_field("user_fullName") is DynamicField.CUSTOMER_FULL_NAME
    assert parse_field("branch_number") is DynamicField.BRANCH_NUMBER
    assert parse_field("hello") == Literal("hello")
    assert parse_field(5) == Literal(5)


def test_resolve_dynamic_field(branch):
    customer = SimpleNamespace(full_name="Zoya", phone="98", email=None)
    assert resolve_dynamic_field("user_fullName", customer) == "Zoya"
    assert resolve_dynamic_field("user_email", customer) == ""
    assert resolve_dynamic_field("branch_name", None, branch) == "Indiranagar"
    assert resolve_dynamic_field("branch_name") == ""
    assert resolve_dynamic_field("not_a_field", customer, branch) == ""


def test_build_ordered_parameters(template, branch):
    customer = SimpleNamespace(full_name="Zoya", phone="98", email=None)
    params = {"discount": "15.0", "name": "user_fullName", "where": "branch_name"}
    assert build_ordered_parameters(template, params, customer, branch) == ["Zoya", "15", "Indiranagar"]
    assert build_ordered_parameters(template, {"name": "Sam"}) == ["Sam", "", ""]


def test_preview_substitutes_placeholders(session, template):
    out = preview_template(session, template.id, {"name": "user_fullName", "discount": 20, "where": "HSR"})
    assert out["rendered_text"] == "Hi , 20% off at HSR this week!"
    assert out["mapped_parameters"] == ["", "20", "HSR"]
    assert out["whatsapp_template_name"] == "bb_diwali_offer"
    assert out["language_code"] == "en"

    with pytest.raises(NotFoundError):
        preview_template(session, 999, {})


def test_final_status():
    assert final_status(3, 0) == "completed"
    assert final_status(3, 3) == "failed"
    assert final_status(3, 1) == "partial"


# ─────────────────────────────────────────────────────────────
# Audience
# ─────────────────────────────────────────────────────────────
def test_branch_audience_is_distinct_customers(session, booking_payload, branch, other_branch):
    create_booking(session, booking_payload(phone="9800000001"), employee_id=1)
    create_booking(session, booking_payload(phone="9800000001"), employee_id=1)
    create_booking(session, booking_payload(phone="9800000002"), employee_id=1)
    create_booking(session, booking_payload(phone="9800000003", branch_id=other_branch.id), employee_id=1)

    recipients = get_audience_phones(session, {"type": "branch_customers", "branch_id": branch.id})
    assert sorted(r.phone for r in recipients) == ["9800000001", "9800000002"]
    assert all(r.branch.id == branch.id for r in recipients)

    everyone = get_audience_phones(session, {"type": "all_customers"})
    assert len(everyone) == 3


def test_list_audience_is_verbatim(session):
    recipients = get_audience_phones(session, {"type": "list", "phones": ["9811111111", "9822222222"]})
    assert [(r.phone, r.customer) for r in recipients] == [("9811111111", None), ("9822222222", None)]


# ─────────────────────────────────────────────────────────────
# Send
# ─────────────────────────────────────────────────────────────
def test_partial_send(template, gateway):
    gateway.fail_for.add("919822222222")
    job = send_marketing_message(
        template.id,
        {"type": "list", "phones": ["9811111111", "9822222222", "9833333333"]},
        {"name": "friend", "discount": 10},
        triggered_by=1,
    )
    assert job.status == "partial"
    assert (job.total, job.success, job.failed) == (3, 2, 1)
    assert job.completed_at is not None
    assert gateway.calls[0]["name"] == "bb_diwali_offer"
    assert gateway.calls[0]["variables"] == ["friend", "10", ""]


def test_gateway_exception_counts_as_failure(template, gateway):
    gateway.raise_for.add("919811111111")
    job = send_marketing_message(
        template.id,
        {"type": "list", "phones": ["9811111111", "9822222222"]},
        {"name": "x", "discount": 1},
        triggered_by=1,
    )
    assert (job.status, job.success, job.failed) == ("partial", 1, 1)


def test_all_failed(template, gateway):
    gateway.fail_for.add("919811111111")
    job = send_marketing_message(template.id, {"type": "single", "phone": "9811111111"},
                                 {"name": "x", "discount": 1}, triggered_by=1)
    assert job.status == "failed"


def test_job_is_committed_before_messages_go_out(template, gateway, monkeypatch):
    seen = []

    def reading_gateway(to, name, lang=None, variables=None):
        with get_session() as s:
            job = s.execute(select(MarketingSend)).scalar_one()
            seen.append((job.status, job.total))
        return gateway(to, name, lang, variables)

    monkeypatch.setattr(whatsapp, "send_template", reading_gateway)
    job = send_marketing_message(
        template.id,
        {"type": "list", "phones": ["9811111111", "9822222222"]},
        {"name": "x", "discount": 1},
        triggered_by=1,
    )

    assert seen == [("running", 2), ("running", 2)]
    with get_session() as s:
        stored = get_send_job(s, job.id)
        assert (stored.status, stored.success, stored.failed) == ("completed", 2, 0)
        assert stored.completed_at is not None


def test_per_recipient_personalisation(template, booking_payload, branch, gateway):
    with get_session() as s:
        create_booking(s, booking_payload(phone="9800000001", full_name="Anu"), employee_id=1)
        create_booking(s, booking_payload(phone="9800000002", full_name="Bala"), employee_id=1)

    job = send_marketing_message(
        template.id,
        {"type": "branch_customers", "branch_id": branch.id},
        {"name": "user_fullName", "discount": 25, "where": "branch_name"},
        triggered_by=1,
    )
    assert job.status == "completed"
    sent = sorted(c["variables"][0] for c in gateway.calls if c["name"] == "bb_diwali_offer")
    assert sent == ["Anu", "Bala"]
    assert all(c["variables"][2] == "Indiranagar" for c in gateway.calls if c["name"] == "bb_diwali_offer")


def test_send_preconditions(template):
    with pytest.raises(NotFoundError):
        send_marketing_message(999, {"type": "single", "phone": "9811111111"}, {}, triggered_by=1)

    with pytest.raises(ValidationError) as exc:
        send_marketing_message(template.id, {"type": "single", "phone": "9811111111"},
                               {"name": "x"}, triggered_by=1)
    assert exc.value.message == "Required parameter 'discount' is missing"

    with pytest.raises(ValidationError):
        send_marketing_message(template.id, {"type": "list"}, {"name": "x", "discount": 1},
                               triggered_by=1)

    with get_session() as s:
        update_settings(s, {"whatsapp_enabled": False})
    with pytest.raises(ValidationError) as exc:
        send_marketing_message(template.id, {"type": "single", "phone": "9811111111"},
                               {"name": "x", "discount": 1}, triggered_by=1)
    assert exc.value.message == "WhatsApp is disabled"

    with get_session() as s:
        update_settings(s, {"whatsapp_enabled": True})
        update_template(s, template.id, {"is_active": False})
    with pytest.raises(ValidationError) as exc:
        send_marketing_message(template.id, {"type": "single", "phone": "9811111111"},
                               {"name": "x", "discount": 1}, triggered_by=1)
    assert exc.value.message == "Template is not active"

    with get_session() as s:
        assert s.query(MarketingSend).count() == 0


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────
def test_marketing_routes(client, admin_headers, staff_headers, gateway):
    payload = {
        "name": "welcome",
        "display_name": "Welcome",
        "whatsapp_template_name": "bb_welcome",
        "body_example": "Welcome {{1}}",
        "parameters": [{"key": "name", "position": 1, "type": "string", "required": True}],
    }
    assert client.post("/marketing/templates", json=payload, headers=staff_headers).status_code == 403

    resp = client.post("/marketing/templates", json=payload, headers=admin_headers)
    assert resp.status_code == 201
    tpl_id = resp.get_json()["template"]["id"]

    resp = client.post(f"/marketing/templates/{tpl_id}/preview", json={"parameters": {"name": "Ira"}},
                       headers=admin_headers)
    assert resp.get_json()["preview"]["rendered_text"] == "Welcome Ira"

    resp = client.post(f"/marketing/templates/{tpl_id}/send",
                       json={"audience": {"type": "single", "phone": "9811111111"}, "parameters": {"name": "Ira"}},
                       headers=admin_headers)
    assert resp.status_code == 201
    send = resp.get_json()["send"]
    assert send["status"] == "completed"
    assert send["stats"] == {"total": 1, "success": 1, "failed": 0}

    body = client.get("/marketing/sends", headers=admin_headers).get_json()
    assert body["total"] == 1
    assert client.get(f"/marketing/sends/{send['id']}", headers=admin_headers).status_code == 200

    fields = client.get("/marketing/dynamic-fields", headers=admin_headers).get_json()["fields"]
    assert {f["value"] for f in fields} == {
        "user_fullName", "user_phone", "user_email", "branch_name", "branch_number",
    }

    assert client.delete(f"/marketing/templates/{tpl_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/marketing/templates/{tpl_id}", headers=admin_headers).status_code == 404
