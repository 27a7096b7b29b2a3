"""
broadcasts.py – Marketing Broadcast Engine
────────────────────────────────────────────────────────────
One send job = one template fanned out over an audience.

  pending  → job row written, audience not yet resolved
  running  → audience resolved, stats.total recorded
  completed | partial | failed → after every recipient was tried

Operator parameters are either literal values or dynamic-field
tokens (e.g. "user_fullName") that are resolved per recipient
from that recipient's customer / branch rows.
────────────────────────────────────────────────────────────
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from . import whatsapp
from .branches import find_branch
from .customers import find_by_phone
from .db import get_session
from .errors import NotFoundError, ValidationError
from .marketing_templates import get_template
from .models import AUDIENCE_TYPES, Booking, Branch, Customer, MarketingSend, MarketingTemplate
from .settings import get_settings
from .utils import end_of_day, normalize_wa, now_local, parse_date, start_of_day

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Dynamic fields
# ─────────────────────────────────────────────────────────────
class DynamicField(Enum):
    CUSTOMER_FULL_NAME = "user_fullName"
    CUSTOMER_PHONE = "user_phone"
    CUSTOMER_EMAIL = "user_email"
    BRANCH_NAME = "branch_name"
    BRANCH_NUMBER = "branch_number"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    DynamicField.CUSTOMER_FULL_NAME: "Customer full name",
    DynamicField.CUSTOMER_PHONE: "Customer phone",
    DynamicField.CUSTOMER_EMAIL: "Customer email",
    DynamicField.BRANCH_NAME: "Branch name",
    DynamicField.BRANCH_NUMBER: "Branch number",
}


@dataclass(frozen=True)
class Literal:
    """An operator-supplied value used as-is."""
    value: Any


FieldValue = Union[DynamicField, Literal]


def parse_field(value) -> FieldValue:
    if isinstance(value, str):
        try:
            return DynamicField(value)
        except ValueError:
            pass
    return Literal(value)


def resolve_dynamic_field(token, customer: Optional[Customer] = None, branch: Optional[Branch] = None) -> str:
    """Value of a dynamic field for one recipient; '' when unknown or unavailable."""
    field = token if isinstance(token, DynamicField) else parse_field(token)
    if isinstance(field, Literal):
        return ""

    if field is DynamicField.CUSTOMER_FULL_NAME:
        value = customer.full_name if customer else None
    elif field is DynamicField.CUSTOMER_PHONE:
        value = customer.phone if customer else None
    elif field is DynamicField.CUSTOMER_EMAIL:
        value = customer.email if customer else None
    elif field is DynamicField.BRANCH_NAME:
        value = branch.name if branch else None
    else:
        value = branch.branch_number if branch else None
    return value or ""


def dynamic_fields() -> List[Dict]:
    return [{"value": f.value, "label": f.label} for f in DynamicField]


# ─────────────────────────────────────────────────────────────
# Parameter ordering
# ─────────────────────────────────────────────────────────────
def _as_number_text(value) -> str:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return str(value)
    if math.isfinite(n) and n.is_integer():
        return str(int(n))
    return str(n)


def build_ordered_parameters(template: MarketingTemplate, operator_params: dict,
                             customer: Optional[Customer] = None,
                             branch: Optional[Branch] = None) -> List[str]:
    """Positional body parameters for one recipient, slot 1 first."""
    operator_params = operator_params or {}
    ordered = []
    for slot in sorted(template.parameters or [], key=lambda p: p["position"]):
        field = parse_field(operator_params.get(slot["key"]))
        if isinstance(field, DynamicField):
            value = resolve_dynamic_field(field, customer, branch)
        else:
            value = field.value

        if value is None:
            ordered.append("")
        elif slot.get("type") == "number":
            ordered.append(_as_number_text(value))
        else:
            ordered.append(str(value))
    return ordered


def preview_template(s, template_id, operator_params: dict) -> Dict:
    tpl = get_template(s, template_id)
    ordered = build_ordered_parameters(tpl, operator_params)

    rendered = tpl.body_example or ""
    slots = sorted(tpl.parameters or [], key=lambda p: p["position"])
    for slot, value in zip(slots, ordered):
        rendered = rendered.replace("{{%d}}" % slot["position"], value)

    return {
        "rendered_text": rendered,
        "whatsapp_template_name": tpl.whatsapp_template_name,
        "language_code": tpl.language_code,
        "mapped_parameters": ordered,
    }


# ─────────────────────────────────────────────────────────────
# Audience
# ─────────────────────────────────────────────────────────────
@dataclass
class Recipient:
    phone: str
    customer: Optional[Customer] = None
    branch: Optional[Branch] = None


def validate_audience(audience) -> dict:
    if not isinstance(audience, dict) or audience.get("type") not in AUDIENCE_TYPES:
        raise ValidationError(f"audience.type must be one of {', '.join(AUDIENCE_TYPES)}")

    kind = audience["type"]
    if kind == "single" and not str(audience.get("phone") or "").strip():
        raise ValidationError("audience.phone is required for a single recipient")
    if kind == "list":
        phones = audience.get("phones")
        if not isinstance(phones, list) or not phones:
            raise ValidationError("audience.phones must be a non-empty list")
    if kind == "branch_customers" and not audience.get("branch_id"):
        raise ValidationError("audience.branch_id is required for branch_customers")
    if audience.get("branch_id") is not None:
        try:
            int(audience["branch_id"])
        except (TypeError, ValueError):
            raise ValidationError("audience.branch_id must be a branch id")
    return audience


def get_audience_phones(s, audience: dict) -> List[Recipient]:
    kind = audience["type"]
    branch = find_branch(s, audience.get("branch_id")) if audience.get("branch_id") else None

    if kind == "single":
        phone = str(audience["phone"]).strip()
        return [Recipient(phone=phone, customer=find_by_phone(s, phone), branch=branch)]

    if kind == "list":
        return [Recipient(phone=str(p).strip()) for p in audience["phones"]]

    conds = []
    if kind == "branch_customers":
        conds.append(Booking.branch_id == int(audience["branch_id"]))
    date_filter = audience.get("date_filter") or {}
    start = parse_date(date_filter.get("start_date"))
    end = parse_date(date_filter.get("end_date"))
    if start:
        conds.append(Booking.date >= start_of_day(start))
    if end:
        conds.append(Booking.date <= end_of_day(end))

    customer_ids = select(Booking.customer_id).where(*conds).distinct()
    customers = s.execute(
        select(Customer).where(Customer.id.in_(customer_ids)).order_by(Customer.id)
    ).scalars().all()
    return [Recipient(phone=c.phone, customer=c, branch=branch) for c in customers]


# ─────────────────────────────────────────────────────────────
# Send
# ─────────────────────────────────────────────────────────────
def final_status(total: int, failed: int) -> str:
    if failed == 0:
        return "completed"
    if failed == total:
        return "failed"
    return "partial"


@dataclass
class Outgoing:
    phone: str
    to: str
    params: Optional[List[str]] = None


def _open_job(s, template_id, audience, operator_params: dict, triggered_by: int) -> MarketingSend:
    tpl = s.get(MarketingTemplate, template_id)
    if tpl is None:
        raise NotFoundError("Template not found")
    if not tpl.is_active:
        raise ValidationError("Template is not active")
    if not get_settings(s).whatsapp_enabled:
        raise ValidationError("WhatsApp is disabled")

    for slot in tpl.parameters or []:
        if slot.get("required") and slot["key"] not in operator_params:
            raise ValidationError(f"Required parameter '{slot['key']}' is missing")

    audience = validate_audience(audience)

    job = MarketingSend(
        template_id=tpl.id,
        triggered_by=triggered_by,
        audience_type=audience["type"],
        audience_filter=audience,
        parameters=operator_params,
        status="pending",
    )
    s.add(job)
    s.flush()
    return job


def _start_job(s, job_id: int) -> List[Outgoing]:
    """Resolve the audience, render every recipient's parameters, mark the job running."""
    job = get_send_job(s, job_id)
    tpl = job.template
    if tpl is None:
        raise NotFoundError("Template not found")
    outbox = []
    for r in get_audience_phones(s, job.audience_filter):
        try:
            params = build_ordered_parameters(tpl, job.parameters or {}, r.customer, r.branch)
        except Exception as e:
            log.error(f"❌ [marketing] job {job_id} could not render parameters for {r.phone}: {e}")
            params = None
        outbox.append(Outgoing(phone=r.phone, to=normalize_wa(r.phone), params=params))

    job.total = len(outbox)
    job.status = "running"
    log.info(f"[marketing] job {job_id} running: {tpl.name} → {job.total} recipients")
    return outbox


def _fan_out(job_id: int, template_name: str, lang: str, outbox: List[Outgoing]):
    success = failed = 0
    for item in outbox:
        if item.params is None:
            failed += 1
            continue
        if not item.to:
            log.warning(f"[marketing] job {job_id} skipping invalid phone {item.phone!r}")
            failed += 1
            continue
        try:
            result = whatsapp.send_template(item.to, template_name, lang, item.params)
        except Exception as e:
            log.error(f"❌ [marketing] job {job_id} send to {item.phone} raised: {e}")
            failed += 1
            continue

        if result.ok:
            success += 1
        else:
            log.warning(f"[marketing] job {job_id} send to {item.phone} failed → {result.error}")
            failed += 1
    return success, failed


def send_marketing_message(template_id, audience: dict, operator_params: dict, triggered_by: int) -> MarketingSend:
    """
    Each state change is committed on its own, so other readers see
    pending / running jobs and no transaction stays open while the
    gateway is being called.
    """
    operator_params = operator_params or {}

    with get_session() as s:
        job_id = _open_job(s, template_id, audience, operator_params, triggered_by).id
    log.info(f"[marketing] job {job_id} pending")

    with get_session() as s:
        outbox = _start_job(s, job_id)
        tpl = s.get(MarketingTemplate, template_id)
        template_name, lang = tpl.whatsapp_template_name, tpl.language_code

    success, failed = _fan_out(job_id, template_name, lang, outbox)

    with get_session() as s:
        job = get_send_job(s, job_id)
        job.success = success
        job.failed = failed
        job.status = final_status(job.total, failed)
        job.completed_at = now_local()
    log.info(f"[marketing] job {job_id} {job.status} ({success}/{job.total} ok)")
    return job


# ─────────────────────────────────────────────────────────────
# Jobs
# ─────────────────────────────────────────────────────────────
def list_send_jobs(s, page=1, limit=10):
    total = s.execute(select(func.count(MarketingSend.id))).scalar() or 0
    rows = s.execute(
        select(MarketingSend)
        .options(selectinload(MarketingSend.template))
        .order_by(MarketingSend.created_at.desc(), MarketingSend.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return rows, total


def get_send_job(s, job_id) -> MarketingSend:
    job = s.get(MarketingSend, job_id, options=[selectinload(MarketingSend.template)])
    if job is None:
        raise NotFoundError("Send job not found")
    return job
