"""
utils.py – Blackbird shared helpers
────────────────────────────────────────────────────────────
 • clean_text() sanitiser for WhatsApp template parameters
 • normalize_wa() phone canonicaliser
 • round2(), local clock and day-boundary helpers
 • pagination clamps shared by every list endpoint
────────────────────────────────────────────────────────────
"""

import re
import logging
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from zoneinfo import ZoneInfo

from . import config

log = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^[0-9]{10,15}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ─────────────────────────────────────────────────────────────
# Sanitiser
# ─────────────────────────────────────────────────────────────
def clean_text(t) -> str:
    """Remove newlines, tabs, and long spaces for WhatsApp parameters."""
    return re.sub(r"\s{2,}", " ", re.sub(r"[\n\r\t]+", " ", str(t or "").strip()))


# ─────────────────────────────────────────────────────────────
# WhatsApp number normaliser
# ─────────────────────────────────────────────────────────────
def normalize_wa(num: str) -> str:
    """Convert local numbers (e.g. 98765 43210, 098...) to country-prefixed digits."""
    if not num:
        return ""
    s = re.sub(r"\D", "", str(num))
    if s.startswith("0"):
        s = s.lstrip("0")
    if len(s) == 10:
        s = config.DEFAULT_COUNTRY_CODE + s
    return s


# ─────────────────────────────────────────────────────────────
# Money
# ─────────────────────────────────────────────────────────────
def round2(value) -> float:
    """Round half-up to 2 decimals (float in, float out)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ─────────────────────────────────────────────────────────────
# Clock
# ─────────────────────────────────────────────────────────────
def now_local() -> datetime:
    """Wall-clock time in the parlour's timezone, stored naive."""
    return datetime.now(ZoneInfo(config.TZ_NAME)).replace(tzinfo=None)


def start_of_day(d) -> datetime:
    if isinstance(d, datetime):
        d = d.date()
    return datetime.combine(d, time.min)


def end_of_day(d) -> datetime:
    if isinstance(d, datetime):
        d = d.date()
    return datetime.combine(d, time.max)


def parse_date(value) -> date | None:
    """Parse YYYY-MM-DD (or pass a date through). None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        log.warning(f"[DATE] Could not parse {value!r}")
        return None


# ─────────────────────────────────────────────────────────────
# Pagination
# ─────────────────────────────────────────────────────────────
def clamp_page(page) -> int:
    try:
        return max(int(page), 1)
    except (TypeError, ValueError):
        return 1


def clamp_limit(limit) -> int:
    try:
        n = int(limit)
    except (TypeError, ValueError):
        return config.DEFAULT_PAGE_LIMIT
    if n < 1:
        # 0 / garbage behaves like "not given"
        return config.DEFAULT_PAGE_LIMIT if n == 0 else 1
    return min(n, config.MAX_PAGE_LIMIT)


def as_bool(value):
    """Query-string friendly bool: 'true'/'1' → True, None stays None."""
    if value is None or isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes")


def page_args(args) -> tuple:
    """(page, limit) from a request's query string."""
    return clamp_page(args.get("page", 1)), clamp_limit(args.get("limit", config.DEFAULT_PAGE_LIMIT))
