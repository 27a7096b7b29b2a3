# blackbird/reminders.py
"""
reminders.py – Post-session check-up reminder job
────────────────────────────────────────────────────────────
Run every 12 hours by an external scheduler (POST /tasks/run-reminders
or `flask run-reminders`). Picks bookings older than the configured
cutoff with no reminder yet, sends one WhatsApp reminder each and
stamps reminder_sent_at. The stamp is the only de-duplication.
────────────────────────────────────────────────────────────
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update

from . import config, whatsapp
from .db import get_session
from .message_templates import reminder_parameters
from .models import Booking
from .settings import get_settings
from .utils import now_local, start_of_day

log = logging.getLogger(__name__)


def reminder_cutoff(now: datetime, days: int) -> datetime:
    return start_of_day(now - timedelta(days=days))


def _mark_sent(s, booking_id: int, when: datetime) -> bool:
    """Stamp reminder_sent_at only while it is still empty."""
    result = s.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.reminder_sent_at.is_(None))
        .values(reminder_sent_at=when)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def run_reminder_job(now: datetime | None = None) -> dict:
    """Each stamp is committed right after its send, so an interrupted run never resends."""
    now = now or now_local()
    summary = {"candidates": 0, "sent": 0, "failed": 0, "skipped": False}

    with get_session() as s:
        settings = get_settings(s)
        whatsapp_enabled = bool(settings.whatsapp_enabled)
        reminder_enabled = bool(settings.reminder_enabled)
        days = settings.reminder_time_days or 60
        cutoff = reminder_cutoff(now, days)
        rows = []
        if whatsapp_enabled and reminder_enabled:
            rows = s.execute(
                select(Booking.id, Booking.phone, Booking.full_name, Booking.date)
                .where(Booking.date <= cutoff, Booking.reminder_sent_at.is_(None))
                .order_by(Booking.date)
            ).all()

    if not whatsapp_enabled:
        log.info("⏰ [reminders] WhatsApp disabled in settings")
        summary["skipped"] = True
        return summary
    if not reminder_enabled:
        log.info("⏰ [reminders] reminders disabled in settings")
        summary["skipped"] = True
        return summary

    summary["candidates"] = len(rows)

    for booking_id, phone, full_name, booked_at in rows:
        days_passed = (now - booked_at).days
        result = whatsapp.send_template(
            phone, config.REMINDER_TEMPLATE, config.TEMPLATE_LANG,
            reminder_parameters(full_name, days_passed),
        )
        if not result.ok:
            log.warning(f"[reminders] booking {booking_id} → {phone} failed: {result.error}")
            summary["failed"] += 1
            continue
        with get_session() as s:
            marked = _mark_sent(s, booking_id, now_local())
        if marked:
            summary["sent"] += 1

    if rows:
        log.info(f"⏰ [reminders] cutoff={cutoff:%Y-%m-%d} processed={len(rows)} "
                 f"sent={summary['sent']} failed={summary['failed']}")
    return summary
