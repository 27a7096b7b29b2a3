# blackbird/message_templates.py
"""
Parameter lists for the fixed WhatsApp templates.

blackbird_invoice:
  Hello {{1}},  Invoice No: {{2}}  Artist: {{3}}  Branch: {{4}}
  Date: {{5}}  Size: {{6}}  Payment Method: {{7}}  Amount Paid: ₹{{8}}

blackbird_checkup_reminder:
  Hello {{1}}, ... {{2}} days have passed since your session ...
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from .utils import round2


def format_inr(amount: Any) -> str:
    """1500 → '1,500'; 150000 → '1,50,000'; 1234.5 → '1,234.5'."""
    if amount is None:
        return "0"
    value = round2(amount)
    sign = "-" if value < 0 else ""
    whole, _, frac = f"{abs(value):.2f}".partition(".")
    frac = frac.rstrip("0")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"{sign}{whole}.{frac}" if frac else f"{sign}{whole}"


def fmt_date(d: Any) -> str:
    if isinstance(d, datetime):
        return d.strftime("%b %d, %Y").replace(" 0", " ")
    return str(d or "")


def fmt_size(size: Any) -> str:
    if size is None:
        return ""
    if float(size).is_integer():
        return str(int(size))
    return str(size)


def invoice_parameters(booking) -> List[str]:
    branch_name = booking.branch.name if booking.branch is not None else "N/A"
    return [
        booking.full_name or "Customer",
        booking.booking_number or "N/A",
        booking.artist_name or "N/A",
        branch_name,
        fmt_date(booking.date),
        fmt_size(booking.size),
        booking.payment_method or "N/A",
        format_inr(booking.total_amount),
    ]


def reminder_parameters(full_name: str | None, days_passed: int) -> List[str]:
    return [full_name or "Customer", str(days_passed or 0)]
