# blackbird/config.py
import os, logging

# ── Helpers ───────────────────────────────────────────────────────────────────
def _canon_wa(s: str) -> str:
    """
    Canonicalise a WhatsApp phone number to digits only (no '+').
    """
    if not s:
        return ""
    return "".join(ch for ch in s if ch.isdigit())

def _flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default) in ("1", "true", "True")

# ── Database ─────────────────────────────────────────────────────────────────
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///blackbird.db")

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY    = os.environ.get("SECRET_KEY", "dev-secret-change-me")
TOKEN_MAX_AGE = int(os.environ.get("TOKEN_MAX_AGE", str(50 * 3600)))  # 50h
TOKEN_REFRESH_THRESHOLD = int(os.environ.get("TOKEN_REFRESH_THRESHOLD", str(25 * 3600)))  # reissue below this
TASKS_TOKEN   = os.environ.get("TASKS_TOKEN", "")

# Seeded on startup when no admin with this email exists
ADMIN_EMAIL    = os.environ.get("ADMIN_EMAIL", "")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
ADMIN_NAME     = os.environ.get("ADMIN_NAME", "Admin")

# ── Meta / WhatsApp Cloud API ────────────────────────────────────────────────
WHATSAPP_ENABLED         = _flag("WHATSAPP_ENABLED", "1")
WHATSAPP_TOKEN           = os.environ.get("WHATSAPP_TOKEN", "")
WHATSAPP_PHONE_NUMBER_ID = os.environ.get("WHATSAPP_PHONE_NUMBER_ID", "")
WHATSAPP_TIMEOUT         = int(os.environ.get("WHATSAPP_TIMEOUT", "10"))

# Graph endpoint (version can be bumped without code changes)
GRAPH_VER = os.environ.get("GRAPH_VER", "v18.0")
GRAPH_URL = f"https://graph.facebook.com/{GRAPH_VER}/{WHATSAPP_PHONE_NUMBER_ID}/messages"

# Owner copy of every invoice (selfInvoiceMessageEnabled in settings)
SELF_INVOICE_NUMBER = _canon_wa(os.environ.get("SELF_INVOICE_NUMBER", ""))

# Local numbers without a country code get this prefix
DEFAULT_COUNTRY_CODE = os.environ.get("DEFAULT_COUNTRY_CODE", "91")

# ── Templates ────────────────────────────────────────────────────────────────
INVOICE_TEMPLATE  = os.environ.get("INVOICE_TEMPLATE", "blackbird_invoice")
REMINDER_TEMPLATE = os.environ.get("REMINDER_TEMPLATE", "blackbird_checkup_reminder")
TEMPLATE_LANG     = os.environ.get("TEMPLATE_LANG", "en")

# ── Local timezone ───────────────────────────────────────────────────────────
TZ_NAME = os.environ.get("TZ_NAME", "Asia/Kolkata")

# ── Numbering ────────────────────────────────────────────────────────────────
BOOKING_NUMBER_PREFIX  = os.environ.get("BOOKING_NUMBER_PREFIX", "INV")
BRANCH_NUMBER_PREFIX   = os.environ.get("BRANCH_NUMBER_PREFIX", "BRANCH")
EMPLOYEE_NUMBER_PREFIX = os.environ.get("EMPLOYEE_NUMBER_PREFIX", "EMP")

# ── Catalog ──────────────────────────────────────────────────────────────────
DEFAULT_PRODUCT_NAME = os.environ.get("DEFAULT_PRODUCT_NAME", "Tattoo")

# ── Pagination ───────────────────────────────────────────────────────────────
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT     = 100


def as_dict() -> dict:
    """Upper-case settings of this module, for app.config."""
    return {k: v for k, v in globals().items() if k.isupper()}


# ── Startup logging ──────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)
logger.info(f"[CONFIG] TZ={TZ_NAME} whatsapp_enabled={WHATSAPP_ENABLED} graph={GRAPH_VER}")
