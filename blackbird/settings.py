# blackbird/settings.py
"""Singleton settings row gating WhatsApp behaviour."""

import logging
from sqlalchemy import select

from .errors import ValidationError
from .models import Settings

log = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "whatsapp_enabled": True,
    "reminder_enabled": True,
    "reminder_time_days": 60,
    "self_invoice_message_enabled": True,
}

_BOOL_FIELDS = ("whatsapp_enabled", "reminder_enabled", "self_invoice_message_enabled")


def get_settings(s) -> Settings:
    """Return the settings row, creating it with defaults if absent."""
    row = s.execute(select(Settings).order_by(Settings.id).limit(1)).scalar_one_or_none()
    if row is None:
        row = Settings(**DEFAULT_SETTINGS)
        s.add(row)
        s.flush()
        log.info("📋 Default settings created")
    return row


def update_settings(s, data: dict) -> Settings:
    payload = {}
    for field in _BOOL_FIELDS:
        if data.get(field) is not None:
            payload[field] = bool(data[field])

    if data.get("reminder_time_days") is not None:
        try:
            days = int(data["reminder_time_days"])
        except (TypeError, ValueError):
            raise ValidationError("reminder_time_days must be at least 1")
        if days < 1:
            raise ValidationError("reminder_time_days must be at least 1")
        payload["reminder_time_days"] = days

    row = get_settings(s)
    for k, v in payload.items():
        setattr(row, k, v)
    s.flush()
    log.info(f"[settings] updated {sorted(payload)}")
    return row
