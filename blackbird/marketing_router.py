"""
marketing_router.py
────────────────────────────────────────────────────────────
Admin-only marketing endpoints.

 • /marketing/templates               → CRUD
 • /marketing/templates/<id>/preview  → render body with params
 • /marketing/templates/<id>/send     → broadcast to an audience
 • /marketing/sends[/<id>]            → send jobs
 • /marketing/dynamic-fields          → per-recipient tokens
────────────────────────────────────────────────────────────
"""

import logging
from flask import Blueprint, g, jsonify, request

from .auth import require_admin
from .broadcasts import dynamic_fields, get_send_job, list_send_jobs, preview_template, send_marketing_message
from .db import get_session
from .marketing_templates import create_template, delete_template, get_template, list_templates, update_template
from .utils import as_bool, page_args

bp = Blueprint("marketing_bp", __name__)
log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────
@bp.route("/templates", methods=["POST"])
@require_admin
def create_template_route():
    with get_session() as s:
        tpl = create_template(s, request.get_json(silent=True) or {}, created_by=g.caller.caller_id)
        return jsonify({"ok": True, "template": tpl.to_dict()}), 201


@bp.route("/templates", methods=["GET"])
@require_admin
def list_templates_route():
    page, limit = page_args(request.args)
    with get_session() as s:
        rows, total = list_templates(
            s,
            channel=request.args.get("channel"),
            is_active=as_bool(request.args.get("is_active")),
            page=page,
            limit=limit,
        )
        templates = [t.to_dict() for t in rows]
    return jsonify({"ok": True, "templates": templates, "count": len(templates),
                    "total": total, "page": page, "limit": limit})


@bp.route("/templates/<int:template_id>", methods=["GET"])
@require_admin
def get_template_route(template_id: int):
    with get_session() as s:
        return jsonify({"ok": True, "template": get_template(s, template_id).to_dict()})


@bp.route("/templates/<int:template_id>", methods=["PUT"])
@require_admin
def update_template_route(template_id: int):
    with get_session() as s:
        tpl = update_template(s, template_id, request.get_json(silent=True) or {})
        return jsonify({"ok": True, "template": tpl.to_dict()})


@bp.route("/templates/<int:template_id>", methods=["DELETE"])
@require_admin
def delete_template_route(template_id: int):
    with get_session() as s:
        delete_template(s, template_id)
    return jsonify({"ok": True, "deleted": template_id})


@bp.route("/templates/<int:template_id>/preview", methods=["POST"])
@require_admin
def preview_route(template_id: int):
    data = request.get_json(silent=True) or {}
    with get_session() as s:
        preview = preview_template(s, template_id, data.get("parameters") or {})
    return jsonify({"ok": True, "preview": preview})


# ─────────────────────────────────────────────────────────────
# Broadcasts
# ─────────────────────────────────────────────────────────────
@bp.route("/templates/<int:template_id>/send", methods=["POST"])
@require_admin
def send_route(template_id: int):
    data = request.get_json(silent=True) or {}
    job = send_marketing_message(
        template_id,
        data.get("audience"),
        data.get("parameters") or {},
        triggered_by=g.caller.caller_id,
    )
    return jsonify({"ok": True, "send": job.to_dict()}), 201


@bp.route("/sends", methods=["GET"])
@require_admin
def list_sends_route():
    page, limit = page_args(request.args)
    with get_session() as s:
        rows, total = list_send_jobs(s, page=page, limit=limit)
        sends = [j.to_dict() for j in rows]
    return jsonify({"ok": True, "sends": sends, "count": len(sends),
                    "total": total, "page": page, "limit": limit})


@bp.route("/sends/<int:job_id>", methods=["GET"])
@require_admin
def get_send_route(job_id: int):
    with get_session() as s:
        return jsonify({"ok": True, "send": get_send_job(s, job_id).to_dict()})


@bp.route("/dynamic-fields", methods=["GET"])
@require_admin
def dynamic_fields_route():
    return jsonify({"ok": True, "fields": dynamic_fields()})
