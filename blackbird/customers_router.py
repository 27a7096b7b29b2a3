# blackbird/customers_router.py
import logging
from flask import Blueprint, g, jsonify, request
from sqlalchemy import select

from .auth import effective_filter, require_auth
from .customers import get_customer, list_customers
from .db import get_session
from .errors import AuthorizationError
from .models import Booking
from .utils import page_args

bp = Blueprint("customers_bp", __name__)
log = logging.getLogger(__name__)


@bp.route("", methods=["GET"])
@require_auth
def list_customers_route():
    page, limit = page_args(request.args)
    filters = effective_filter(g.caller, {"branch_id": request.args.get("branch_id", type=int)})
    with get_session() as s:
        rows, total = list_customers(s, branch_id=filters.get("branch_id"), page=page, limit=limit)
        customers = [c.to_dict() for c in rows]
    return jsonify({"ok": True, "customers": customers, "count": len(customers),
                    "total": total, "page": page, "limit": limit})


@bp.route("/<int:customer_id>", methods=["GET"])
@require_auth
def get_customer_route(customer_id: int):
    caller = g.caller
    with get_session() as s:
        customer = get_customer(s, customer_id)
        if not caller.is_admin:
            branch_id = effective_filter(caller, {})["branch_id"]
            seen_here = s.execute(
                select(Booking.id).where(Booking.customer_id == customer.id, Booking.branch_id == branch_id).limit(1)
            ).first()
            if seen_here is None:
                raise AuthorizationError("Customer has no bookings at your branch")
        return jsonify({"ok": True, "customer": customer.to_dict()})
