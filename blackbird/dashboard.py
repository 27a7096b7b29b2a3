"""
dashboard.py – Date-ranged rollups over the booking ledger
────────────────────────────────────────────────────────────
get_dashboard_data        → all branches (+ by_branch, totals)
get_branch_dashboard_data → one branch (+ branch_info)

Every facet is scoped to bookings whose date falls inside
[start_of_day(start), end_of_day(end)]. Empty ranges give
zero-valued summaries. Only average_order_value is rounded.
────────────────────────────────────────────────────────────
"""

import logging
from datetime import date
from typing import Dict, List

from sqlalchemy import case, func, select

from .branches import count_branches, get_branch
from .customers import count_customers
from .employees import count_employees
from .models import PAYMENT_METHODS, PAYMENT_MODES, Booking, BookingItem, Branch
from .utils import end_of_day, round2, start_of_day

log = logging.getLogger(__name__)

TOP_PRODUCTS_LIMIT = 10


def _scope(start: date, end: date, branch_id=None) -> list:
    conds = [Booking.date >= start_of_day(start), Booking.date <= end_of_day(end)]
    if branch_id is not None:
        conds.append(Booking.branch_id == branch_id)
    return conds


# ─────────────────────────────────────────────────────────────
# Facets
# ─────────────────────────────────────────────────────────────
def _summary(s, conds) -> Dict:
    total_bookings, total_revenue, unique_customers = s.execute(
        select(
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.total_amount), 0),
            func.count(func.distinct(Booking.customer_id)),
        ).where(*conds)
    ).one()

    total_bookings = total_bookings or 0
    total_revenue = total_revenue or 0
    return {
        "total_bookings": total_bookings,
        "total_revenue": total_revenue,
        "unique_customers_in_range": unique_customers or 0,
        "average_order_value": round2(total_revenue / total_bookings) if total_bookings else 0,
    }


def _by_payment_method(s, conds) -> List[Dict]:
    """Split bookings count once under CASH and once under UPI."""
    cash_count, cash_total, upi_count, upi_total = s.execute(
        select(
            func.coalesce(func.sum(case((Booking.cash_amount > 0, 1), else_=0)), 0),
            func.coalesce(func.sum(Booking.cash_amount), 0),
            func.coalesce(func.sum(case((Booking.upi_amount > 0, 1), else_=0)), 0),
            func.coalesce(func.sum(Booking.upi_amount), 0),
        ).where(*conds)
    ).one()

    found = {"CASH": (cash_count, cash_total), "UPI": (upi_count, upi_total)}
    return [
        {"payment_method": m, "count": int(found[m][0]), "total_amount": found[m][1]}
        for m in PAYMENT_METHODS
    ]


def _by_payment_mode(s, conds) -> List[Dict]:
    rows = s.execute(
        select(Booking.payment_mode, func.count(Booking.id), func.sum(Booking.total_amount))
        .where(*conds)
        .group_by(Booking.payment_mode)
    ).all()
    found = {mode: (count, total) for mode, count, total in rows}
    return [
        {
            "payment_mode": mode,
            "count": found.get(mode, (0, 0))[0],
            "total_amount": found.get(mode, (0, 0))[1] or 0,
        }
        for mode in PAYMENT_MODES
    ]


def _top_products(s, conds) -> List[Dict]:
    revenue = func.sum(BookingItem.line_total)
    rows = s.execute(
        select(
            BookingItem.product_id,
            func.max(BookingItem.product_name),
            func.sum(BookingItem.quantity),
            revenue,
        )
        .join(Booking, Booking.id == BookingItem.booking_id)
        .where(*conds)
        .group_by(BookingItem.product_id)
        .order_by(revenue.desc())
        .limit(TOP_PRODUCTS_LIMIT)
    ).all()
    return [
        {"product_id": pid, "product_name": name, "quantity": int(qty or 0), "revenue": rev or 0}
        for pid, name, qty, rev in rows
    ]


def _by_branch(s, conds) -> List[Dict]:
    revenue = func.sum(Booking.total_amount)
    agg = (
        select(Booking.branch_id.label("branch_id"),
               func.count(Booking.id).label("booking_count"),
               revenue.label("revenue"))
        .where(*conds)
        .group_by(Booking.branch_id)
        .subquery()
    )
    rows = s.execute(
        select(agg.c.branch_id, agg.c.booking_count, agg.c.revenue,
               Branch.name, Branch.branch_number, Branch.employee_count)
        .outerjoin(Branch, Branch.id == agg.c.branch_id)
        .order_by(agg.c.revenue.desc())
    ).all()
    return [
        {
            "branch_id": r.branch_id,
            "branch_name": r.name or "N/A",
            "branch_number": r.branch_number or "N/A",
            "employee_count": r.employee_count or 0,
            "booking_count": r.booking_count,
            "revenue": r.revenue or 0,
        }
        for r in rows
    ]


def _date_range(start: date, end: date) -> Dict:
    return {"start_date": start.isoformat(), "end_date": end.isoformat()}


# ─────────────────────────────────────────────────────────────
# Public
# ─────────────────────────────────────────────────────────────
def get_dashboard_data(s, start: date, end: date) -> Dict:
    conds = _scope(start, end)
    data = {
        "date_range": _date_range(start, end),
        "summary": _summary(s, conds),
        "by_branch": _by_branch(s, conds),
        "by_payment_method": _by_payment_method(s, conds),
        "by_payment_mode": _by_payment_mode(s, conds),
        "top_products": _top_products(s, conds),
        "totals": {
            "total_branches": count_branches(s),
            "total_employees": count_employees(s),
            "total_customers": count_customers(s),
        },
    }
    log.info(f"[dashboard] {start}..{end} bookings={data['summary']['total_bookings']}")
    return data


def get_branch_dashboard_data(s, start: date, end: date, branch_id) -> Dict:
    branch = get_branch(s, branch_id)
    conds = _scope(start, end, branch.id)
    data = {
        "date_range": _date_range(start, end),
        "branch_info": {
            "branch_id": branch.id,
            "branch_name": branch.name,
            "branch_number": branch.branch_number,
            "employee_count": branch.employee_count or 0,
        },
        "summary": _summary(s, conds),
        "by_payment_method": _by_payment_method(s, conds),
        "by_payment_mode": _by_payment_mode(s, conds),
        "top_products": _top_products(s, conds),
    }
    log.info(f"[dashboard] branch={branch.id} {start}..{end} bookings={data['summary']['total_bookings']}")
    return data
