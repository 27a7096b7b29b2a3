# blackbird/bootstrap.py
# run on app start, or by hand with:  flask --app wsgi bootstrap
"""
Startup routine: counter rows, the first admin, the default
product and the settings row. Safe to run any number of times.
"""
import logging

from sqlalchemy import func, select
from werkzeug.security import generate_password_hash

from . import config
from .catalog import seed_default_product
from .models import Admin
from .sequences import ensure_counters
from .settings import get_settings

log = logging.getLogger(__name__)


def seed_admin(s, email: str, password: str, name: str = "Admin"):
    email = (email or "").strip().lower()
    if not email or not password:
        log.info("[bootstrap] ADMIN_EMAIL / ADMIN_PASSWORD not set, no admin seeded")
        return None

    admin = s.execute(select(Admin).where(func.lower(Admin.email) == email)).scalar_one_or_none()
    if admin is not None:
        return admin

    admin = Admin(name=name or "Admin", email=email, password_hash=generate_password_hash(password))
    s.add(admin)
    s.flush()
    log.info(f"👤 [bootstrap] admin {email} created")
    return admin


def bootstrap(s, admin_email: str = None, admin_password: str = None, admin_name: str = None) -> dict:
    """Seed rows into an existing schema (see create_all)."""
    ensure_counters(s)
    admin = seed_admin(
        s,
        admin_email if admin_email is not None else config.ADMIN_EMAIL,
        admin_password if admin_password is not None else config.ADMIN_PASSWORD,
        admin_name or config.ADMIN_NAME,
    )
    product = seed_default_product(s)
    settings = get_settings(s)
    log.info("✅ [bootstrap] done")
    return {
        "admin_id": admin.id if admin else None,
        "default_product_id": product.id,
        "settings": settings.to_dict(),
    }
