"""
invoices.py
───────────────────────────────────────────────
Printable booking invoice (A4 PDF). The WhatsApp invoice
uses message_templates.invoice_parameters instead.
"""

from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .message_templates import fmt_date, fmt_size, format_inr

SHOP_NAME = "Blackbird Tattoo"


def _money(amount) -> str:
    return f"Rs. {format_inr(amount)}"


# ──────────────────────────────────────────────
# PDF GENERATOR
# ──────────────────────────────────────────────
def generate_invoice_pdf(booking) -> bytes:
    """Render one booking: header, customer, line items, cash/UPI split and total."""
    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    y = height - 50

    p.setTitle(f"Invoice {booking.booking_number}")
    p.setFont("Helvetica-Bold", 16)
    p.drawString(50, y, f"{SHOP_NAME} Invoice - {booking.booking_number}")

    branch = booking.branch
    p.setFont("Helvetica", 11)
    lines = [
        f"Date: {fmt_date(booking.date)}",
        f"Branch: {branch.name if branch is not None else 'N/A'}"
        + (f" ({branch.branch_number})" if branch is not None else ""),
        f"Customer: {booking.full_name}",
        f"Mobile: {booking.phone}",
        f"Artist: {booking.artist_name}",
    ]
    if booking.email:
        lines.append(f"Email: {booking.email}")
    if booking.size is not None:
        lines.append(f"Size: {fmt_size(booking.size)}")

    y -= 30
    for line in lines:
        p.drawString(50, y, line)
        y -= 18

    # ── Items ──────────────────────────────────
    y -= 12
    p.setFont("Helvetica-Bold", 11)
    p.drawString(50, y, "Item")
    p.drawRightString(360, y, "Qty")
    p.drawRightString(450, y, "Unit price")
    p.drawRightString(width - 50, y, "Amount")
    p.line(50, y - 5, width - 50, y - 5)
    y -= 22

    p.setFont("Helvetica", 11)
    for item in booking.items:
        if y < 120:
            p.showPage()
            p.setFont("Helvetica", 11)
            y = height - 50
        p.drawString(50, y, item.product_name)
        p.drawRightString(360, y, str(item.quantity))
        p.drawRightString(450, y, _money(item.unit_price))
        p.drawRightString(width - 50, y, _money(item.line_total))
        y -= 18

    # ── Payment ────────────────────────────────
    p.line(50, y + 8, width - 50, y + 8)
    y -= 10
    if booking.cash_amount:
        p.drawRightString(450, y, "Cash")
        p.drawRightString(width - 50, y, _money(booking.cash_amount))
        y -= 18
    if booking.upi_amount:
        p.drawRightString(450, y, "UPI")
        p.drawRightString(width - 50, y, _money(booking.upi_amount))
        y -= 18

    p.setFont("Helvetica-Bold", 12)
    p.drawRightString(450, y, f"Total ({booking.payment_method})")
    p.drawRightString(width - 50, y, _money(booking.total_amount))

    p.showPage()
    p.save()
    buffer.seek(0)
    return buffer.read()
