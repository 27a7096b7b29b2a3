"""
dashboard_router.py
────────────────────────────────────────────────────────────
GET /dashboard?start_date=YYYY-MM-DD&end_date=YYYY-MM-DD[&branch_id=N]

Admins get every branch (or one, with branch_id); staff always
get their own branch.
────────────────────────────────────────────────────────────
"""

import logging
from flask import Blueprint, g, jsonify, request

from .auth import effective_filter, require_auth
from .dashboard import get_branch_dashboard_data, get_dashboard_data
from .db import get_session
from .errors import ValidationError
from .utils import parse_date

bp = Blueprint("dashboard_bp", __name__)
log = logging.getLogger(__name__)


def _date_range(args):
    raw_start, raw_end = args.get("start_date"), args.get("end_date")
    if not raw_start or not raw_end:
        raise ValidationError("start_date and end_date are required (YYYY-MM-DD)")
    start, end = parse_date(raw_start), parse_date(raw_end)
    if start is None or end is None:
        raise ValidationError("Dates must be in YYYY-MM-DD format")
    if start > end:
        raise ValidationError("start_date must be before or equal to end_date")
    return start, end


@bp.route("", methods=["GET"])
@require_auth
def dashboard():
    start, end = _date_range(request.args)
    filters = effective_filter(g.caller, {"branch_id": request.args.get("branch_id", type=int)})

    with get_session() as s:
        if filters.get("branch_id") is not None:
            data = get_branch_dashboard_data(s, start, end, filters["branch_id"])
        else:
            data = get_dashboard_data(s, start, end)
    return jsonify({"ok": True, **data})
