# blackbird/marketing_templates.py
"""
Marketing template store.

A template mirrors one pre-approved WhatsApp template: its external name,
language and an ordered list of parameter slots. Slot positions are 1-based
and must run 1..N without gaps, because the Graph API takes body parameters
positionally.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select

from . import config
from .errors import ConflictError, NotFoundError, ValidationError
from .models import MarketingTemplate

log = logging.getLogger(__name__)

CHANNELS = ("whatsapp",)
PARAM_TYPES = ("string", "number", "date")


# ─────────────────────────────────────────────────────────────
# Parameter slots
# ─────────────────────────────────────────────────────────────
def _normalize_slot(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("Each parameter must be an object")

    key = str(raw.get("key") or "").strip()
    if not key:
        raise ValidationError("Parameter key is required")

    try:
        position = int(raw.get("position"))
    except (TypeError, ValueError):
        raise ValidationError(f"Parameter '{key}' needs a numeric position")
    if position < 1:
        raise ValidationError(f"Parameter '{key}' position must be at least 1")

    ptype = (raw.get("type") or "string").strip().lower()
    if ptype not in PARAM_TYPES:
        raise ValidationError(f"Parameter '{key}' type must be one of {', '.join(PARAM_TYPES)}")

    return {
        "key": key,
        "position": position,
        "type": ptype,
        "required": bool(raw.get("required", False)),
        "description": raw.get("description") or "",
    }


def validate_parameters(params) -> List[dict]:
    """Normalise slots and check positions run 1..N. Returns them sorted."""
    if params is None:
        return []
    if not isinstance(params, list):
        raise ValidationError("parameters must be a list")

    slots = sorted((_normalize_slot(p) for p in params), key=lambda p: p["position"])

    keys = [p["key"] for p in slots]
    if len(set(keys)) != len(keys):
        raise ValidationError("Parameter keys must be unique")

    for expected, slot in enumerate(slots, start=1):
        if slot["position"] != expected:
            raise ValidationError(
                f"Parameter positions must be contiguous starting from 1. Found gap at position {expected}"
            )
    return slots


def _ensure_unique_name(s, name: str, exclude_id: Optional[int] = None):
    q = select(MarketingTemplate.id).where(MarketingTemplate.name == name)
    if exclude_id is not None:
        q = q.where(MarketingTemplate.id != exclude_id)
    if s.execute(q).first() is not None:
        raise ConflictError(f"Template '{name}' already exists")


# ─────────────────────────────────────────────────────────────
# CRUD
# ─────────────────────────────────────────────────────────────
def create_template(s, data: dict, created_by: Optional[int] = None) -> MarketingTemplate:
    name = str(data.get("name") or "").strip().upper()
    display_name = str(data.get("display_name") or "").strip()
    wa_name = str(data.get("whatsapp_template_name") or "").strip()
    if not name or not display_name or not wa_name:
        raise ValidationError("name, display_name and whatsapp_template_name are required")

    channel = (data.get("channel") or "whatsapp").strip().lower()
    if channel not in CHANNELS:
        raise ValidationError(f"Unsupported channel '{channel}'")

    slots = validate_parameters(data.get("parameters"))
    _ensure_unique_name(s, name)

    tpl = MarketingTemplate(
        name=name,
        display_name=display_name,
        channel=channel,
        whatsapp_template_name=wa_name,
        language_code=(data.get("language_code") or config.TEMPLATE_LANG).strip(),
        body_example=data.get("body_example") or "",
        parameters=slots,
        is_active=bool(data.get("is_active", True)),
        created_by=created_by,
    )
    s.add(tpl)
    s.flush()
    log.info(f"[marketing] template {tpl.name} created ({len(slots)} params)")
    return tpl


def list_templates(s, channel=None, is_active=None, page=1, limit=10):
    conds = []
    if channel:
        conds.append(MarketingTemplate.channel == channel)
    if is_active is not None:
        conds.append(MarketingTemplate.is_active == is_active)

    total = s.execute(select(func.count(MarketingTemplate.id)).where(*conds)).scalar() or 0
    rows = s.execute(
        select(MarketingTemplate)
        .where(*conds)
        .order_by(MarketingTemplate.created_at.desc(), MarketingTemplate.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return rows, total


def get_template(s, template_id) -> MarketingTemplate:
    tpl = s.get(MarketingTemplate, template_id)
    if tpl is None:
        raise NotFoundError("Template not found")
    return tpl


def update_template(s, template_id, data: dict) -> MarketingTemplate:
    tpl = get_template(s, template_id)

    if "parameters" in data:
        tpl.parameters = validate_parameters(data["parameters"])

    if data.get("name"):
        name = str(data["name"]).strip().upper()
        _ensure_unique_name(s, name, exclude_id=tpl.id)
        tpl.name = name

    for field in ("display_name", "whatsapp_template_name", "language_code", "body_example"):
        if data.get(field) is not None:
            setattr(tpl, field, str(data[field]).strip() if field != "body_example" else data[field])

    if data.get("channel") is not None:
        channel = str(data["channel"]).strip().lower()
        if channel not in CHANNELS:
            raise ValidationError(f"Unsupported channel '{channel}'")
        tpl.channel = channel

    if data.get("is_active") is not None:
        tpl.is_active = bool(data["is_active"])

    s.flush()
    log.info(f"[marketing] template {tpl.name} updated")
    return tpl


def delete_template(s, template_id) -> MarketingTemplate:
    tpl = get_template(s, template_id)
    s.delete(tpl)
    s.flush()
    log.info(f"[marketing] template {tpl.name} deleted")
    return tpl
