# blackbird/branches_router.py
import logging
from flask import Blueprint, jsonify, request

from .auth import require_admin, require_auth
from .branches import create_branch, get_branch, list_branches, update_branch
from .db import get_session

bp = Blueprint("branches_bp", __name__)
log = logging.getLogger(__name__)


@bp.route("", methods=["POST"])
@require_admin
def create_branch_route():
    with get_session() as s:
        branch = create_branch(s, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "branch": branch.to_dict()}), 201


@bp.route("", methods=["GET"])
@require_auth
def list_branches_route():
    with get_session() as s:
        branches = [b.to_dict() for b in list_branches(s)]
    return jsonify({"ok": True, "branches": branches, "count": len(branches)})


@bp.route("/<int:branch_id>", methods=["GET"])
@require_auth
def get_branch_route(branch_id: int):
    with get_session() as s:
        return jsonify({"ok": True, "branch": get_branch(s, branch_id).to_dict()})


@bp.route("/<int:branch_id>", methods=["PUT"])
@require_admin
def update_branch_route(branch_id: int):
    with get_session() as s:
        branch = update_branch(s, branch_id, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "branch": branch.to_dict()})
