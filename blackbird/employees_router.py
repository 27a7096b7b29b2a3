# blackbird/employees_router.py
"""Staff accounts. Admin only."""
import logging
from flask import Blueprint, jsonify, request

from .auth import require_admin
from .db import get_session
from .employees import (
    create_employee,
    delete_employee,
    get_employee,
    list_employees,
    search_employees,
    update_employee,
)

bp = Blueprint("employees_bp", __name__)
log = logging.getLogger(__name__)


@bp.route("", methods=["POST"])
@require_admin
def create_employee_route():
    with get_session() as s:
        employee = create_employee(s, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "employee": employee.to_dict()}), 201


@bp.route("", methods=["GET"])
@require_admin
def list_employees_route():
    q = (request.args.get("q") or "").strip()
    with get_session() as s:
        if q:
            rows = search_employees(s, q)
        else:
            rows = list_employees(s, branch_id=request.args.get("branch_id", type=int))
        employees = [e.to_dict() for e in rows]
    return jsonify({"ok": True, "employees": employees, "count": len(employees)})


@bp.route("/<int:employee_id>", methods=["GET"])
@require_admin
def get_employee_route(employee_id: int):
    with get_session() as s:
        return jsonify({"ok": True, "employee": get_employee(s, employee_id).to_dict()})


@bp.route("/<int:employee_id>", methods=["PUT"])
@require_admin
def update_employee_route(employee_id: int):
    with get_session() as s:
        employee = update_employee(s, employee_id, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "employee": employee.to_dict()})


@bp.route("/<int:employee_id>", methods=["DELETE"])
@require_admin
def delete_employee_route(employee_id: int):
    with get_session() as s:
        delete_employee(s, employee_id)
    return jsonify({"ok": True, "deleted": employee_id})
