"""
bookings_router.py
────────────────────────────────────────────────────────────
 • POST /bookings                  → create (any signed-in caller)
 • GET  /bookings                  → list, branch-scoped for staff
 • GET  /bookings/<id>             → detail
 • GET  /bookings/<id>/invoice.pdf → printable invoice
────────────────────────────────────────────────────────────
"""

import io
import logging
from flask import Blueprint, g, jsonify, request, send_file

from .auth import effective_filter, require_auth
from .booking import book, get_booking, list_bookings
from .db import get_session
from .errors import AuthorizationError
from .invoices import generate_invoice_pdf
from .utils import page_args

bp = Blueprint("bookings_bp", __name__)
log = logging.getLogger(__name__)


def _readable(booking):
    caller = g.caller
    if not caller.is_admin and booking.branch_id != caller.branch_id:
        raise AuthorizationError("You can only view bookings of your own branch")
    return booking


@bp.route("", methods=["POST"])
@require_auth
def create_booking_route():
    data = request.get_json(silent=True) or {}
    booking = book(data, employee_id=g.caller.caller_id)
    return jsonify({"ok": True, "booking": booking}), 201


@bp.route("", methods=["GET"])
@require_auth
def list_bookings_route():
    page, limit = page_args(request.args)
    requested = {
        "branch_id": request.args.get("branch_id", type=int),
        "start_date": request.args.get("start_date"),
        "end_date": request.args.get("end_date"),
    }
    filters = effective_filter(g.caller, requested)
    filters.update(page=page, limit=limit)

    with get_session() as s:
        rows, total = list_bookings(s, filters)
        bookings = [b.to_dict() for b in rows]
    return jsonify({"ok": True, "bookings": bookings, "count": len(bookings),
                    "total": total, "page": page, "limit": limit})


@bp.route("/<int:booking_id>", methods=["GET"])
@require_auth
def get_booking_route(booking_id: int):
    with get_session() as s:
        booking = _readable(get_booking(s, booking_id))
        out = booking.to_dict()
        out["customer"] = {
            "id": booking.customer.id,
            "full_name": booking.customer.full_name,
            "total_orders": booking.customer.total_orders,
        } if booking.customer is not None else None
    return jsonify({"ok": True, "booking": out})


@bp.route("/<int:booking_id>/invoice.pdf", methods=["GET"])
@require_auth
def invoice_pdf_route(booking_id: int):
    with get_session() as s:
        booking = _readable(get_booking(s, booking_id))
        pdf = generate_invoice_pdf(booking)
        filename = f"{booking.booking_number}.pdf"
    log.info(f"[invoice] PDF {filename} generated")
    return send_file(io.BytesIO(pdf), mimetype="application/pdf",
                     as_attachment=False, download_name=filename)
