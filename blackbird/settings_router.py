# blackbird/settings_router.py
from flask import Blueprint, jsonify, request

from .auth import require_admin
from .db import get_session
from .settings import get_settings, update_settings

bp = Blueprint("settings_bp", __name__)


@bp.route("", methods=["GET"])
@require_admin
def get_settings_route():
    with get_session() as s:
        return jsonify({"ok": True, "settings": get_settings(s).to_dict()})


@bp.route("", methods=["PUT"])
@require_admin
def update_settings_route():
    with get_session() as s:
        row = update_settings(s, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "settings": row.to_dict()})
