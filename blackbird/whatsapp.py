"""
whatsapp.py – Notification Gateway (Meta WhatsApp Cloud API)
────────────────────────────────────────────────────────────
Sends pre-approved template messages. Every call returns a
SendResult; nothing here raises to the caller, so a failed
notification can never abort the write that triggered it.
────────────────────────────────────────────────────────────
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

from . import config
from .utils import clean_text, normalize_wa

log = logging.getLogger(__name__)


@dataclass
class SendResult:
    ok: bool
    status_code: Optional[int] = None
    response: Any = None
    error: Optional[str] = None


def build_template_payload(to: str, name: str, lang: str, variables: List[str]) -> dict:
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "template",
        "template": {
            "name": name,
            "language": {"code": lang},
            "components": [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": str(v)} for v in variables],
                }
            ],
        },
    }


# ─────────────────────────────────────────────────────────────
# Send WhatsApp Template Message (Sanitised)
# ─────────────────────────────────────────────────────────────
def send_template(to: str, name: str, lang: str = None, variables=None) -> SendResult:
    """Send a pre-approved WhatsApp template message."""
    if not config.WHATSAPP_ENABLED:
        log.info("📱 WhatsApp disabled in environment, skipping send.")
        return SendResult(ok=False, error="whatsapp disabled")

    if not config.WHATSAPP_PHONE_NUMBER_ID or not config.WHATSAPP_TOKEN:
        log.warning("⚠️ WhatsApp credentials missing, cannot send message.")
        return SendResult(ok=False, error="missing credentials")

    wa = normalize_wa(to)
    if not wa:
        return SendResult(ok=False, error="invalid recipient")

    safe_vars = [clean_text(v) for v in (variables or [])]
    payload = build_template_payload(wa, name, lang or config.TEMPLATE_LANG, safe_vars)
    headers = {
        "Authorization": f"Bearer {config.WHATSAPP_TOKEN}",
        "Content-Type": "application/json",
    }

    log.info(f"📤 Sending WhatsApp template → {wa} ({name}) vars={safe_vars}")

    try:
        resp = requests.post(config.GRAPH_URL, json=payload, headers=headers, timeout=config.WHATSAPP_TIMEOUT)
        try:
            body = resp.json() if resp.text else {}
        except ValueError:
            body = {"raw": resp.text}
        if resp.status_code >= 400:
            log.error(f"❌ WhatsApp API error {resp.status_code}: {resp.text}")
            return SendResult(ok=False, status_code=resp.status_code, error=resp.text)
        log.info(f"✅ WhatsApp message sent to {wa} ({name}) → {resp.status_code}")
        return SendResult(ok=True, status_code=resp.status_code, response=body)
    except requests.RequestException as e:
        log.error(f"❌ WhatsApp template send failed: {e}")
        return SendResult(ok=False, error=str(e))
