# blackbird/auth.py
"""
Caller context for every request: login, bearer-token resolution and the
single branch-scoping policy used by the list/report endpoints.
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import g, request
from sqlalchemy import func, select
from werkzeug.security import check_password_hash

from .db import get_session
from .errors import AuthenticationError, AuthorizationError
from .models import Admin, Employee
from .tokens import generate_access_token, needs_refresh, verify_access_token

log = logging.getLogger(__name__)

ADMIN = "admin"
STAFF = "staff"


@dataclass(frozen=True)
class CallerContext:
    caller_id: int
    role: str
    branch_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


# ─────────────────────────────────────────────────────────────
# Login
# ─────────────────────────────────────────────────────────────
def login(s, email: str, password: str) -> dict:
    email = (email or "").strip().lower()
    user, role = s.execute(select(Admin).where(func.lower(Admin.email) == email)).scalar_one_or_none(), ADMIN
    if user is None:
        user, role = s.execute(select(Employee).where(Employee.email == email)).scalar_one_or_none(), STAFF

    if user is None or not check_password_hash(user.password_hash, password or ""):
        log.info(f"[auth] failed login for {email!r}")
        raise AuthenticationError("Invalid email or password")

    log.info(f"[auth] {role} {user.id} logged in")
    return {"token": generate_access_token(user.id, role), "user": user.to_dict()}


def caller_from_token(s, data: dict) -> CallerContext:
    if data.get("ok") is False or "id" not in data:
        raise AuthenticationError(data.get("error") or "Invalid token")

    if data["role"] == ADMIN:
        admin = s.get(Admin, data["id"])
        if admin is None:
            raise AuthenticationError("Unauthorized access")
        return CallerContext(caller_id=admin.id, role=ADMIN)

    employee = s.get(Employee, data["id"])
    if employee is None:
        raise AuthenticationError("Unauthorized access")
    return CallerContext(caller_id=employee.id, role=STAFF, branch_id=employee.branch_id)


# ─────────────────────────────────────────────────────────────
# Decorators
# ─────────────────────────────────────────────────────────────
def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthenticationError("Access token is required")
    return header.split(" ", 1)[1].strip()


def require_auth(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        data = verify_access_token(_bearer_token())
        with get_session() as s:
            g.caller = caller_from_token(s, data)
        if needs_refresh(data):
            g.new_token = generate_access_token(g.caller.caller_id, g.caller.role)
            log.info(f"[auth] {g.caller.role} {g.caller.caller_id} token refreshed")
        return fn(*args, **kwargs)
    return wrapper


def attach_refreshed_token(response):
    """after_request hook: hand a reissued token back in X-New-Token."""
    token = g.pop("new_token", None)
    if token:
        response.headers["X-New-Token"] = token
    return response


def require_admin(fn):
    @require_auth
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not g.caller.is_admin:
            raise AuthorizationError("Only admins can access this resource")
        return fn(*args, **kwargs)
    return wrapper


# ─────────────────────────────────────────────────────────────
# Scoping policy
# ─────────────────────────────────────────────────────────────
def effective_filter(caller: CallerContext, requested: dict) -> dict:
    """
    Admins may look at any branch (or all of them); staff are pinned to
    their own branch whatever they asked for.
    """
    resolved = dict(requested or {})
    if caller.is_admin:
        return resolved
    if caller.branch_id is None:
        raise AuthorizationError("Your account is not assigned to a branch")
    resolved["branch_id"] = caller.branch_id
    return resolved
