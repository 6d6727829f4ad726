"""Due-policy and weekly-refill quantity rules for prescription medicines.

Every function here takes ``today`` as an argument and never reads the
clock, so the policy can be checked for any date.
"""
from datetime import date, datetime
from enum import Enum
from fractions import Fraction
from math import ceil
from typing import Optional

DAYS_PER_WEEK = 7
REFILL_CYCLE_DAYS = 7
# tablets-per-week multiplier when the row's recurrence cannot be read
DEFAULT_WEEKLY_MULTIPLIER = 7


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    INTERVAL = "interval"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value) -> Optional["RecurrenceType"]:
        """Return the member for ``value``, or None for anything unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class PrescriptionType(str, Enum):
    DAILY_MONITORING = "daily_monitoring"
    WEEKLY_REFILL = "weekly_refill"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value) -> Optional["PrescriptionType"]:
        try:
            return cls(value)
        except ValueError:
            return None


def parse_date(value) -> Optional[date]:
    """Accept a date, a datetime, or an ISO string (time part ignored).

    Both ``YYYY-MM-DD`` and the compact ``YYYYMMDD`` form are read. Anything
    else raises ValueError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text[:8].isdigit() and (len(text) == 8 or text[8] in "T "):
        return datetime.strptime(text[:8], "%Y%m%d").date()
    return date.fromisoformat(text[:10])


def days_since(last_executed, today: date) -> int:
    """Whole calendar days from ``last_executed`` to ``today``."""
    return (today - parse_date(last_executed)).days


def _interval(row) -> Optional[int]:
    try:
        interval = int(row["recurrence_interval"])
    except (TypeError, ValueError):
        return None
    return interval if interval > 0 else None


def is_due(row, prescription_type, today: date) -> bool:
    """Decide whether one prescription-medicine row should be reminded today.

    ``row`` is any mapping with ``last_executed_date``, ``recurrence_type``
    and ``recurrence_interval``. A row that was never actioned is always
    due. Weekly-refill prescriptions use a fixed 7 day cycle and ignore the
    row's own recurrence. Unreadable recurrence data is never due.
    """
    last_executed = row["last_executed_date"]
    if last_executed is None or last_executed == "":
        return True

    elapsed = days_since(last_executed, today)
    kind = PrescriptionType.parse(prescription_type)

    if kind is PrescriptionType.WEEKLY_REFILL:
        return elapsed >= REFILL_CYCLE_DAYS

    if kind is PrescriptionType.DAILY_MONITORING:
        recurrence = RecurrenceType.parse(row["recurrence_type"])
        interval = _interval(row)
        if recurrence is None or interval is None:
            return False
        if recurrence is RecurrenceType.WEEKLY:
            return elapsed >= interval * DAYS_PER_WEEK
        # daily and interval both count days
        return elapsed >= interval

    return False


def weekly_multiplier(row) -> Fraction:
    """How many doses of this row one week of refill has to cover.

    daily: 7 / interval (may be fractional), weekly: 1,
    interval: ceil(7 / interval). Anything unreadable falls back to 7.
    """
    recurrence = RecurrenceType.parse(row["recurrence_type"])
    interval = _interval(row)
    if recurrence is RecurrenceType.WEEKLY:
        return Fraction(1)
    if recurrence is None or interval is None:
        return Fraction(DEFAULT_WEEKLY_MULTIPLIER)
    if recurrence is RecurrenceType.DAILY:
        return Fraction(DAYS_PER_WEEK, interval)
    return Fraction(ceil(Fraction(DAYS_PER_WEEK, interval)))


def tablets_needed(row, prescription_type) -> int:
    """Tablets for one instruction, rounded up to a whole tablet."""
    base = row["morning_count"] + row["afternoon_count"] + row["evening_count"]
    if PrescriptionType.parse(prescription_type) is PrescriptionType.WEEKLY_REFILL:
        return ceil(base * weekly_multiplier(row))
    return base
