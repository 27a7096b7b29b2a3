# blackbird/sequences.py
"""
Human-readable running numbers (INV0001, BRANCH0001, EMP0001).

One counter row per kind, advanced with a single UPDATE inside the caller's
transaction so concurrent creations never hand out the same number.
"""

import logging
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from .models import Counter

log = logging.getLogger(__name__)

KINDS = ("booking", "branch", "employee")


def ensure_counters(s, kinds=KINDS):
    for name in kinds:
        if s.get(Counter, name) is None:
            s.add(Counter(name=name, value=0))
    s.flush()


def next_value(s, name: str) -> int:
    """Atomically bump counter `name` and return the new value."""
    res = s.execute(update(Counter).where(Counter.name == name).values(value=Counter.value + 1))
    if res.rowcount == 0:
        try:
            with s.begin_nested():
                s.add(Counter(name=name, value=1))
            return 1
        except IntegrityError:
            # another transaction created the row first
            s.execute(update(Counter).where(Counter.name == name).values(value=Counter.value + 1))
    return s.execute(select(Counter.value).where(Counter.name == name)).scalar_one()


def next_number(s, name: str, prefix: str, width: int = 4) -> str:
    value = next_value(s, name)
    number = f"{prefix}{str(value).zfill(width)}"
    log.debug(f"[seq] {name} → {number}")
    return number
