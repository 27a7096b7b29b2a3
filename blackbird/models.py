# blackbird/models.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils import now_local

PAYMENT_MODES = ("CASH", "UPI", "SPLIT")
PAYMENT_METHODS = ("CASH", "UPI")
AUDIENCE_TYPES = ("single", "list", "branch_customers", "all_customers")
SEND_STATUSES = ("pending", "running", "completed", "failed", "partial")


def _iso(dt):
    return dt.isoformat() if dt else None


# ─────────────────────────────────────────────────────────────
# Staff accounts
# ─────────────────────────────────────────────────────────────
class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(254), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=now_local)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "email": self.email, "role": "admin"}


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_number = Column(String(32), unique=True, nullable=False)
    full_name = Column(String(120), nullable=False)
    email = Column(String(254), unique=True, nullable=False)
    phone_number = Column(String(20), nullable=False)
    password_hash = Column(String(255), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    branch = relationship("Branch", back_populates="employees")

    def to_dict(self):
        return {
            "id": self.id,
            "employee_number": self.employee_number,
            "full_name": self.full_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "branch_id": self.branch_id,
            "role": "staff",
            "created_at": _iso(self.created_at),
        }


# ─────────────────────────────────────────────────────────────
# Registries
# ─────────────────────────────────────────────────────────────
class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    branch_number = Column(String(32), unique=True, nullable=False)
    name = Column(String(120), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    employee_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=now_local)

    employees = relationship("Employee", back_populates="branch")

    def to_dict(self):
        return {
            "id": self.id,
            "branch_number": self.branch_number,
            "name": self.name,
            "address": self.address,
            "employee_count": self.employee_count or 0,
            "created_at": _iso(self.created_at),
        }


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    base_price = Column(Float, nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)  # freeform price
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=now_local)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "base_price": self.base_price,
            "is_default": bool(self.is_default),
            "is_active": bool(self.is_active),
        }


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(120), nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    email = Column(String(254), nullable=True)
    total_orders = Column(Integer, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    bookings = relationship("Booking", back_populates="customer")

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "email": self.email,
            "total_orders": self.total_orders,
            "total_amount": self.total_amount,
            "created_at": _iso(self.created_at),
        }


# ─────────────────────────────────────────────────────────────
# Ledger
# ─────────────────────────────────────────────────────────────
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String(32), unique=True, nullable=False)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(254), nullable=True)
    full_name = Column(String(120), nullable=False)
    date = Column(DateTime, nullable=False, default=now_local, index=True)
    size = Column(Float, nullable=True)
    artist_name = Column(String(120), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    # creator: an admin or an employee, so no FK
    employee_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    cash_amount = Column(Float, nullable=False, default=0)
    upi_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    payment_mode = Column(String(8), nullable=False)  # CASH | UPI | SPLIT

    reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=now_local)

    items = relationship(
        "BookingItem",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingItem.id",
    )
    branch = relationship("Branch")
    customer = relationship("Customer", back_populates="bookings")

    @property
    def payment_method(self) -> str:
        return "CASH + UPI" if self.payment_mode == "SPLIT" else self.payment_mode

    def to_dict(self):
        out = {
            "id": self.id,
            "booking_number": self.booking_number,
            "phone": self.phone,
            "email": self.email,
            "full_name": self.full_name,
            "date": _iso(self.date),
            "size": self.size,
            "artist_name": self.artist_name,
            "branch_id": self.branch_id,
            "employee_id": self.employee_id,
            "customer_id": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "payment": {
                "cash_amount": self.cash_amount,
                "upi_amount": self.upi_amount,
                "total_amount": self.total_amount,
                "payment_mode": self.payment_mode,
            },
            "amount": self.total_amount,
            "payment_method": self.payment_method,
            "reminder_sent_at": _iso(self.reminder_sent_at),
            "reminder_sent": self.reminder_sent_at is not None,
        }
        if self.branch is not None:
            out["branch"] = {
                "id": self.branch.id,
                "name": self.branch.name,
                "branch_number": self.branch.branch_number,
            }
        return out


class BookingItem(Base):
    __tablename__ = "booking_items"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(120), nullable=False)  # snapshot at booking time
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    line_total = Column(Float, nullable=False)

    booking = relationship("Booking", back_populates="items")

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }


# ─────────────────────────────────────────────────────────────
# Settings & numbering
# ─────────────────────────────────────────────────────────────
class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    whatsapp_enabled = Column(Boolean, nullable=False, default=True)
    reminder_enabled = Column(Boolean, nullable=False, default=True)
    reminder_time_days = Column(Integer, nullable=False, default=60)
    self_invoice_message_enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    def to_dict(self):
        return {
            "whatsapp_enabled": bool(self.whatsapp_enabled),
            "reminder_enabled": bool(self.reminder_enabled),
            "reminder_time_days": self.reminder_time_days,
            "self_invoice_message_enabled": bool(self.self_invoice_message_enabled),
            "updated_at": _iso(self.updated_at),
        }


class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(32), primary_key=True)  # booking | branch | employee
    value = Column(Integer, nullable=False, default=0)


# ─────────────────────────────────────────────────────────────
# Marketing
# ─────────────────────────────────────────────────────────────
class MarketingTemplate(Base):
    __tablename__ = "marketing_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)  # upper-cased
    display_name = Column(String(200), nullable=False)
    channel = Column(String(16), nullable=False, default="whatsapp")
    whatsapp_template_name = Column(String(200), nullable=False)
    language_code = Column(String(16), nullable=False, default="en")
    body_example = Column(Text, nullable=False, default="")
    # [{"key", "position", "type", "required", "description"}]
    parameters = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "channel": self.channel,
            "whatsapp_template_name": self.whatsapp_template_name,
            "language_code": self.language_code,
            "body_example": self.body_example,
            "parameters": list(self.parameters or []),
            "is_active": bool(self.is_active),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }


class MarketingSend(Base):
    __tablename__ = "marketing_sends"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("marketing_templates.id", ondelete="SET NULL"), nullable=True, index=True)
    triggered_by = Column(Integer, nullable=False, index=True)
    audience_type = Column(String(32), nullable=False)
    audience_filter = Column(JSON, nullable=False, default=dict)
    parameters = Column(JSON, nullable=False, default=dict)
    status = Column(String(16), nullable=False, default="pending", index=True)
    total = Column(Integer, nullable=False, default=0)
    success = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=now_local, index=True)
    completed_at = Column(DateTime, nullable=True)

    template = relationship("MarketingTemplate")

    def to_dict(self):
        out = {
            "id": self.id,
            "template_id": self.template_id,
            "triggered_by": self.triggered_by,
            "audience_type": self.audience_type,
            "audience_filter": self.audience_filter or {},
            "parameters": self.parameters or {},
            "status": self.status,
            "stats": {"total": self.total, "success": self.success, "failed": self.failed},
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }
        if self.template is not None:
            out["template"] = {
                "id": self.template.id,
                "name": self.template.name,
                "display_name": self.template.display_name,
            }
        return out
