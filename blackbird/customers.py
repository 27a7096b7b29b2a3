# blackbird/customers.py
"""
Customer registry. A customer is created lazily by the first booking that
uses an unseen phone number and its order stats are bumped on every booking.
"""

import logging
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from .errors import NotFoundError
from .models import Booking, Customer

log = logging.getLogger(__name__)


def find_by_phone(s, phone: str):
    return s.execute(select(Customer).where(Customer.phone == phone)).scalar_one_or_none()


def get_customer(s, customer_id) -> Customer:
    customer = s.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def _increment_stats(s, customer_id: int, amount: float):
    s.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(total_orders=Customer.total_orders + 1, total_amount=Customer.total_amount + amount)
    )


def record_order(s, phone: str, full_name: str, email: str | None, amount: float) -> Customer:
    """
    Find-or-create the customer for `phone` and count one order of `amount`.
    A concurrent insert for the same phone loses on the unique index; the
    loser falls back to incrementing the winner's row.
    """
    customer = find_by_phone(s, phone)

    if customer is None:
        try:
            with s.begin_nested():
                customer = Customer(full_name=full_name, phone=phone, email=email or None,
                                    total_orders=0, total_amount=0)
                s.add(customer)
            log.info(f"[customer] created for {phone}")
        except IntegrityError:
            log.warning(f"[customer] {phone} created concurrently, reusing existing row")
            customer = find_by_phone(s, phone)

    if email and email != customer.email:
        customer.email = email

    _increment_stats(s, customer.id, amount)
    s.flush()
    s.refresh(customer)
    return customer


def list_customers(s, branch_id=None, page=1, limit=10):
    q = select(Customer)
    count_q = select(func.count(Customer.id))
    if branch_id is not None:
        ids = select(Booking.customer_id).where(Booking.branch_id == branch_id).distinct()
        q = q.where(Customer.id.in_(ids))
        count_q = count_q.where(Customer.id.in_(ids))

    total = s.execute(count_q).scalar() or 0
    rows = s.execute(
        q.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return rows, total


def count_customers(s) -> int:
    return s.execute(select(func.count(Customer.id))).scalar() or 0
