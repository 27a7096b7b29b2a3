"""
booking.py – Booking Engine
────────────────────────────────────────────────────────────
createBooking flow:
  branch check → line-item normalisation against the catalog
  → cash/UPI payment reconciliation → customer upsert
  → ledger write → best-effort WhatsApp invoice

The invoice send happens after the booking transaction has
committed; its outcome is only logged.
────────────────────────────────────────────────────────────
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from . import config, whatsapp
from .branches import find_branch
from .customers import record_order
from .db import get_session
from .errors import NotFoundError, ValidationError
from .message_templates import invoice_parameters
from .models import Booking, BookingItem, Product
from .sequences import next_number
from .settings import get_settings
from .utils import EMAIL_RE, PHONE_RE, end_of_day, now_local, parse_date, round2, start_of_day

log = logging.getLogger(__name__)

TOLERANCE = 0.001

ITEMS_REQUIRED = "At least one booking item is required"
INVALID_PRODUCT = "Invalid or inactive product"
PAYMENT_REQUIRED = "At least one payment amount must be greater than 0"
PAYMENT_MISMATCH = "Payment total must match items total"


@dataclass
class NormalizedItem:
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    line_total: float


@dataclass
class NormalizedPayment:
    cash_amount: float
    upi_amount: float
    total_amount: float
    payment_mode: str


# ─────────────────────────────────────────────────────────────
# Normalisation
# ─────────────────────────────────────────────────────────────
def _as_int_id(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Item quantity must be a positive integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 1:
        raise ValidationError("Item quantity must be a positive integer")
    return value


def _as_amount(value, label: str) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number")
    if not math.isfinite(amount) or amount < 0:
        raise ValidationError(f"{label} must be a non-negative number")
    return amount


def normalize_items(s, rows) -> List[NormalizedItem]:
    if not isinstance(rows, list) or not rows:
        raise ValidationError(ITEMS_REQUIRED)

    out = []
    for row in rows:
        if not isinstance(row, dict):
            raise ValidationError(INVALID_PRODUCT)
        product_id = _as_int_id(row.get("product_id"))
        product = s.get(Product, product_id) if product_id is not None else None
        if product is None or not product.is_active:
            raise ValidationError(INVALID_PRODUCT)

        quantity = _as_quantity(row.get("quantity"))

        if product.is_default:
            # freeform product: price comes with the booking
            if row.get("unit_price") is None:
                raise ValidationError(f"unit_price is required for {product.name}")
            unit_price = _as_amount(row["unit_price"], "unit_price")
        else:
            unit_price = float(product.base_price)

        out.append(NormalizedItem(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=unit_price,
            line_total=round2(unit_price * quantity),
        ))
    return out


def payment_mode_for(cash: float, upi: float) -> str:
    if cash > 0 and upi == 0:
        return "CASH"
    if upi > 0 and cash == 0:
        return "UPI"
    return "SPLIT"


def normalize_payment(payment, item_total: float) -> NormalizedPayment:
    if not isinstance(payment, dict):
        raise ValidationError("Payment breakdown is invalid")

    cash = _as_amount(payment.get("cash_amount"), "cash_amount")
    upi = _as_amount(payment.get("upi_amount"), "upi_amount")
    if cash == 0 and upi == 0:
        raise ValidationError(PAYMENT_REQUIRED)

    total = round2(cash + upi)
    if abs(total - item_total) > TOLERANCE:
        raise ValidationError(PAYMENT_MISMATCH)

    return NormalizedPayment(
        cash_amount=cash,
        upi_amount=upi,
        total_amount=total,
        payment_mode=payment_mode_for(cash, upi),
    )


def _validate_contact(data: dict):
    missing = [k for k in ("phone", "full_name", "artist_name", "branch_id") if not data.get(k)]
    if missing:
        raise ValidationError(f"Required fields: {', '.join(missing)}")

    phone = str(data["phone"]).strip()
    if not PHONE_RE.match(phone):
        raise ValidationError("Please provide a valid phone number (10-15 digits)")

    email = (data.get("email") or "").strip().lower() or None
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address")

    size = data.get("size")
    if size in ("", None):
        size = None
    else:
        try:
            size = float(size)
        except (TypeError, ValueError):
            raise ValidationError("size must be a number")

    return phone, email, size


# ─────────────────────────────────────────────────────────────
# Create
# ─────────────────────────────────────────────────────────────
def create_booking(s, data: dict, employee_id: int) -> Booking:
    """
    Validate and persist a booking inside session `s`. No notification is
    sent here; see `book()` for the full request flow.
    """
    phone, email, size = _validate_contact(data)

    branch = find_branch(s, data.get("branch_id"))
    if branch is None:
        raise NotFoundError("Branch not found")

    items = normalize_items(s, data.get("items"))
    item_total = round2(sum(i.line_total for i in items))
    payment = normalize_payment(data.get("payment"), item_total)

    full_name = str(data["full_name"]).strip()
    customer = record_order(s, phone, full_name, email, payment.total_amount)

    booking = Booking(
        booking_number=next_number(s, "booking", config.BOOKING_NUMBER_PREFIX),
        phone=phone,
        email=email,
        full_name=full_name,
        date=now_local(),
        size=size,
        artist_name=str(data["artist_name"]).strip(),
        branch_id=branch.id,
        employee_id=employee_id,
        customer_id=customer.id,
        cash_amount=payment.cash_amount,
        upi_amount=payment.upi_amount,
        total_amount=payment.total_amount,
        payment_mode=payment.payment_mode,
        reminder_sent_at=None,
        items=[BookingItem(**vars(i)) for i in items],
    )
    booking.branch = branch
    s.add(booking)
    s.flush()

    log.info(
        f"[booking] {booking.booking_number} branch={branch.id} customer={customer.id} "
        f"total={payment.total_amount} mode={payment.payment_mode}"
    )
    return booking


# ─────────────────────────────────────────────────────────────
# Invoice notification (best-effort)
# ─────────────────────────────────────────────────────────────
def notify_invoice(booking: Booking, whatsapp_enabled: bool, self_copy_enabled: bool) -> List[whatsapp.SendResult]:
    """Send the invoice template; failures are logged and returned, never raised."""
    if not whatsapp_enabled:
        return []

    params = invoice_parameters(booking)
    recipients = [booking.phone]
    if self_copy_enabled and config.SELF_INVOICE_NUMBER:
        recipients.append(config.SELF_INVOICE_NUMBER)

    results = []
    for to in recipients:
        result = whatsapp.send_template(to, config.INVOICE_TEMPLATE, config.TEMPLATE_LANG, params)
        if not result.ok:
            log.error(f"❌ [booking] invoice {booking.booking_number} to {to} failed → {result.error}")
        results.append(result)
    return results


def book(data: dict, employee_id: int) -> dict:
    """Request flow: persist in one transaction, then notify."""
    with get_session() as s:
        booking = create_booking(s, data, employee_id)
        settings = get_settings(s)
        flags = (bool(settings.whatsapp_enabled), bool(settings.self_invoice_message_enabled))
        out = booking.to_dict()

    notify_invoice(booking, *flags)
    return out


# ─────────────────────────────────────────────────────────────
# Queries
# ─────────────────────────────────────────────────────────────
def list_bookings(s, filters: dict):
    """
    filters: branch_id?, start_date?, end_date?, page, limit (already clamped).
    Returns (bookings, total) sorted newest first.
    """
    conds = []
    if filters.get("branch_id") is not None:
        conds.append(Booking.branch_id == int(filters["branch_id"]))
    start = parse_date(filters.get("start_date"))
    end = parse_date(filters.get("end_date"))
    if start:
        conds.append(Booking.date >= start_of_day(start))
    if end:
        conds.append(Booking.date <= end_of_day(end))

    page, limit = filters.get("page", 1), filters.get("limit", config.DEFAULT_PAGE_LIMIT)

    total = s.execute(select(func.count(Booking.id)).where(*conds)).scalar() or 0
    rows = s.execute(
        select(Booking)
        .where(*conds)
        .options(selectinload(Booking.items), selectinload(Booking.branch))
        .order_by(Booking.date.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return rows, total


def list_bookings_for_branch(s, branch_id, filters: dict):
    return list_bookings(s, {**filters, "branch_id": branch_id})


def get_booking(s, booking_id) -> Booking:
    booking = s.get(Booking, booking_id, options=[selectinload(Booking.items), selectinload(Booking.branch)])
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking
