# blackbird/branches.py
import logging
from sqlalchemy import func, select, update

from . import config
from .errors import NotFoundError, ValidationError
from .models import Branch
from .sequences import next_number

log = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("branch_number", "employee_count")


def create_branch(s, data: dict) -> Branch:
    name = str(data.get("name") or "").strip()
    address = str(data.get("address") or "").strip()
    if not name or not address:
        raise ValidationError("Name and address are required")

    branch = Branch(
        name=name,
        address=address,
        branch_number=next_number(s, "branch", config.BRANCH_NUMBER_PREFIX),
        employee_count=0,
    )
    s.add(branch)
    s.flush()
    log.info(f"[branch] created {branch.branch_number} ({name})")
    return branch


def list_branches(s):
    return s.execute(select(Branch).order_by(Branch.created_at.desc(), Branch.id.desc())).scalars().all()


def find_branch(s, branch_id):
    if branch_id in (None, ""):
        return None
    try:
        return s.get(Branch, int(branch_id))
    except (TypeError, ValueError):
        return None


def get_branch(s, branch_id) -> Branch:
    branch = find_branch(s, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    return branch


def update_branch(s, branch_id, data: dict) -> Branch:
    branch = get_branch(s, branch_id)
    data = {k: v for k, v in (data or {}).items() if k not in IMMUTABLE_FIELDS}

    for field in ("name", "address"):
        if data.get(field) is not None:
            value = str(data[field]).strip()
            if not value:
                raise ValidationError(f"{field} cannot be empty")
            setattr(branch, field, value)
    s.flush()
    return branch


def change_employee_count(s, branch_id, delta: int):
    """Atomic +/- on employee_count, floored at 0."""
    if delta < 0:
        stmt = (
            update(Branch)
            .where(Branch.id == branch_id, Branch.employee_count >= -delta)
            .values(employee_count=Branch.employee_count + delta)
        )
    else:
        stmt = update(Branch).where(Branch.id == branch_id).values(employee_count=Branch.employee_count + delta)
    s.execute(stmt)


def count_branches(s) -> int:
    return s.execute(select(func.count(Branch.id))).scalar() or 0
