"""
tokens.py – Signed, Expiring Bearer Tokens
────────────────────────────────────────────
Issues and verifies the access tokens handed out
at login ({id, role}).
────────────────────────────────────────────
"""

import time
from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

SALT = "blackbird-access"


# ── Serializer setup ────────────────────────────────────────────────
def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=SALT)


# ── Generate token ─────────────────────────────────────────────────
def generate_access_token(caller_id: int, role: str) -> str:
    """Return signed token encoding caller id + role."""
    data = {"id": caller_id, "role": role, "ts": int(time.time())}
    return _serializer().dumps(data)


# ── Verify token ───────────────────────────────────────────────────
def verify_access_token(token: str, max_age: int = None) -> dict:
    """
    Returns decoded data if valid and not expired, else {"ok": False, "error": ...}.
    Default expiry = TOKEN_MAX_AGE (50h). Valid data also carries
    "expires_in", the seconds left before the token lapses.
    """
    if max_age is None:
        max_age = current_app.config["TOKEN_MAX_AGE"]
    try:
        data, signed_at = _serializer().loads(token, max_age=max_age, return_timestamp=True)
    except SignatureExpired:
        return {"ok": False, "error": "Expired token"}
    except BadSignature:
        return {"ok": False, "error": "Invalid token"}
    data["expires_in"] = int(max_age - (time.time() - signed_at.timestamp()))
    return data


# ── Sliding refresh ────────────────────────────────────────────────
def needs_refresh(data: dict) -> bool:
    """True when a verified token is inside the refresh window."""
    threshold = current_app.config.get("TOKEN_REFRESH_THRESHOLD") or 0
    return "expires_in" in data and data["expires_in"] < threshold
