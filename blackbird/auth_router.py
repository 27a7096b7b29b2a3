# blackbird/auth_router.py
import logging
from flask import Blueprint, g, jsonify, request

from .auth import login, require_auth
from .db import get_session
from .errors import NotFoundError, ValidationError
from .models import Admin, Employee

bp = Blueprint("auth_bp", __name__)
log = logging.getLogger(__name__)


@bp.route("/login", methods=["POST"])
def login_route():
    data = request.get_json(silent=True) or {}
    if not data.get("email") or not data.get("password"):
        raise ValidationError("Email and password are required")
    with get_session() as s:
        result = login(s, data["email"], data["password"])
    return jsonify({"ok": True, **result})


@bp.route("/me", methods=["GET"])
@require_auth
def me():
    caller = g.caller
    with get_session() as s:
        user = s.get(Admin if caller.is_admin else Employee, caller.caller_id)
        if user is None:
            raise NotFoundError("User not found")
        return jsonify({"ok": True, "user": user.to_dict()})
