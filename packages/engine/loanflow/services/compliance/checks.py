# This project was developed with assistance from AI tools.
"""Compliance check primitives.

Pure functions -- no DB calls, fully testable with plain values.
Each predicate answers whether a single rule is violated.
"""

from datetime import date, datetime, timedelta
from typing import Any

# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------


def to_date(value: Any) -> date | None:
    """Coerce a date, datetime, or ISO-8601 string to a date.

    Returns None for None or empty strings. Raises ValueError for anything
    else that cannot be read as a date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return date.fromisoformat(value)
    raise ValueError(f"Not a date: {value!r}")


def business_days_between(start: date, end: date) -> int:
    """Count weekday days between start and end (exclusive of start, inclusive of end).

    Order-insensitive: a date before the start counts the same span backwards.
    Holidays are not excluded.
    """
    if end < start:
        start, end = end, start
    count = 0
    current = start
    one_day = timedelta(days=1)
    while current < end:
        current += one_day
        if current.weekday() < 5:  # Mon-Fri
            count += 1
    return count


# ---------------------------------------------------------------------------
# Rule predicates (True = violated)
# ---------------------------------------------------------------------------


def presence_violated(snapshot: dict, field: str) -> bool:
    """Required disclosure or notice is missing or falsy."""
    return not snapshot.get(field)


def prohibited_violated(snapshot: dict, field: str) -> bool:
    """Prohibited basis is recorded. Only missing or null counts as absent."""
    return snapshot.get(field) is not None


def timing_violated(reference: Any, delivered: Any, threshold_days: int) -> bool:
    """Disclosure delivered more than ``threshold_days`` business days from reference.

    Either date missing means the rule cannot be evaluated (not a violation).
    """
    start = to_date(reference)
    end = to_date(delivered)
    if start is None or end is None:
        return False
    return business_days_between(start, end) > threshold_days


def flag_violated(snapshot: dict, field: str) -> bool:
    """A prohibited practice flag is set."""
    return bool(snapshot.get(field))


def originator_unlicensed(officer_compliance_data: dict | None) -> bool:
    """Originating officer is missing or lacks SAFE Act licensing."""
    if not officer_compliance_data:
        return True
    return not officer_compliance_data.get("safe_act_compliant")
