# blackbird/tasks_router.py
"""
tasks_router.py
────────────────────────────────────────────
Endpoints for the external scheduler (every 12 hours).

 • /tasks/run-reminders → post-session check-up reminders

Auth: X-Task-Token header when TASKS_TOKEN is configured,
otherwise an admin bearer token.
────────────────────────────────────────────
"""

import hmac
import logging
from flask import Blueprint, current_app, jsonify, request

from .auth import require_admin
from .errors import AuthenticationError
from .reminders import run_reminder_job

log = logging.getLogger(__name__)
bp = Blueprint("tasks_bp", __name__)


def _run():
    summary = run_reminder_job()
    log.info(f"[Tasks] /run-reminders → {summary}")
    return jsonify({"ok": True, **summary})


@require_admin
def _run_as_admin():
    return _run()


@bp.route("/run-reminders", methods=["POST"])
def run_reminders():
    expected = current_app.config.get("TASKS_TOKEN") or ""
    if not expected:
        return _run_as_admin()

    given = request.headers.get("X-Task-Token", "")
    if not hmac.compare_digest(given, expected):
        log.warning("[Tasks] /run-reminders rejected: bad task token")
        raise AuthenticationError("Invalid task token")
    return _run()
