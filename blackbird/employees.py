# blackbird/employees.py
"""Staff accounts. Each employee belongs to one branch and bumps its employee_count."""

import logging
from sqlalchemy import func, or_, select
from werkzeug.security import generate_password_hash

from . import config
from .branches import change_employee_count, get_branch
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Employee
from .sequences import next_number
from .utils import EMAIL_RE, PHONE_RE

log = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 6
IMMUTABLE_FIELDS = ("employee_number", "role", "id")


def _check_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address")
    return email


def _check_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not PHONE_RE.match(phone):
        raise ValidationError("Please provide a valid phone number (10-15 digits)")
    return phone


def _check_password(password: str) -> str:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return generate_password_hash(password)


def find_by_email(s, email: str):
    return s.execute(select(Employee).where(Employee.email == (email or "").strip().lower())).scalar_one_or_none()


def create_employee(s, data: dict) -> Employee:
    required = ("full_name", "email", "phone_number", "password", "branch_id")
    if any(not data.get(k) for k in required):
        raise ValidationError("All fields are required (full_name, email, phone_number, password, branch_id)")

    email = _check_email(data["email"])
    if find_by_email(s, email):
        raise ConflictError("Employee with this email already exists")
    branch = get_branch(s, data["branch_id"])

    employee = Employee(
        full_name=str(data["full_name"]).strip(),
        email=email,
        phone_number=_check_phone(data["phone_number"]),
        password_hash=_check_password(data["password"]),
        branch_id=branch.id,
        employee_number=next_number(s, "employee", config.EMPLOYEE_NUMBER_PREFIX),
    )
    s.add(employee)
    s.flush()
    change_employee_count(s, branch.id, +1)
    log.info(f"[employee] created {employee.employee_number} at branch {branch.id}")
    return employee


def list_employees(s, branch_id=None):
    q = select(Employee)
    if branch_id is not None:
        q = q.where(Employee.branch_id == branch_id)
    return s.execute(q.order_by(Employee.created_at.desc(), Employee.id.desc())).scalars().all()


def search_employees(s, term: str):
    like = f"%{term.strip()}%"
    q = select(Employee).where(
        or_(
            Employee.full_name.ilike(like),
            Employee.email.ilike(like),
            Employee.employee_number.ilike(like),
            Employee.phone_number.ilike(like),
        )
    )
    return s.execute(q.order_by(Employee.full_name)).scalars().all()


def get_employee(s, employee_id) -> Employee:
    employee = s.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def update_employee(s, employee_id, data: dict) -> Employee:
    employee = get_employee(s, employee_id)
    data = {k: v for k, v in (data or {}).items() if k not in IMMUTABLE_FIELDS}

    if data.get("email"):
        email = _check_email(data["email"])
        other = find_by_email(s, email)
        if other is not None and other.id != employee.id:
            raise ConflictError("Email already in use by another employee")
        employee.email = email
    if data.get("full_name"):
        employee.full_name = str(data["full_name"]).strip()
    if data.get("phone_number"):
        employee.phone_number = _check_phone(data["phone_number"])
    if data.get("password"):
        employee.password_hash = _check_password(data["password"])

    if data.get("branch_id") and int(data["branch_id"]) != employee.branch_id:
        new_branch = get_branch(s, data["branch_id"])
        if employee.branch_id is not None:
            change_employee_count(s, employee.branch_id, -1)
        change_employee_count(s, new_branch.id, +1)
        log.info(f"[employee] {employee.id} moved {employee.branch_id} → {new_branch.id}")
        employee.branch_id = new_branch.id

    s.flush()
    return employee


def delete_employee(s, employee_id) -> Employee:
    employee = get_employee(s, employee_id)
    branch_id = employee.branch_id
    s.delete(employee)
    s.flush()
    if branch_id is not None:
        change_employee_count(s, branch_id, -1)
    log.info(f"[employee] {employee_id} deleted")
    return employee


def count_employees(s) -> int:
    return s.execute(select(func.count(Employee.id))).scalar() or 0
