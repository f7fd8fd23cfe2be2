"""Leave entitlement calculator.

Pure functions only; the allocation batch is the sole writer of the result.
Service is counted in whole calendar months up to 31 December of the target
year (``relativedelta`` floor).
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta

from hrops.common.constants import (
    ANNUAL_LEAVE,
    COMPASSIONATE_LEAVE,
    HAJJ_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    SICK_LEAVE,
    STUDY_LEAVE,
)

PROBATION_MONTHS = 6
HAJJ_MIN_SERVICE_MONTHS = 24


# ── Service & probation helpers ─────────────────────────────────────

def service_months(hire_date: date, as_of: date) -> int:
    """Whole months of service between ``hire_date`` and ``as_of``."""
    if hire_date > as_of:
        return 0
    delta = relativedelta(as_of, hire_date)
    return delta.years * 12 + delta.months


def probation_end(
    hire_date: date,
    probation_end_date: Optional[date] = None,
    *,
    probation_months: int = PROBATION_MONTHS,
) -> date:
    """Explicit probation end date, else hire date plus the probation period."""
    if probation_end_date is not None:
        return probation_end_date
    return hire_date + relativedelta(months=probation_months)


def is_probation_completed(
    hire_date: date,
    as_of: date,
    probation_end_date: Optional[date] = None,
    *,
    probation_months: int = PROBATION_MONTHS,
) -> bool:
    end = probation_end(
        hire_date, probation_end_date, probation_months=probation_months
    )
    return end <= as_of


def year_end(year: int) -> date:
    return date(year, 12, 31)


# ── Rule table ──────────────────────────────────────────────────────

def _annual(months: int, probation_done: bool) -> int:
    if months < 6:
        return 0
    if months < 12:
        return (months - 5) * 2
    return 30


def _sick(months: int, probation_done: bool) -> int:
    return 90 if probation_done else 0


def _hajj(months: int, probation_done: bool) -> int:
    return 30 if months >= HAJJ_MIN_SERVICE_MONTHS else 0


def _flat(days: int) -> Callable[[int, bool], int]:
    def rule(months: int, probation_done: bool) -> int:
        return days

    return rule


ENTITLEMENT_RULES: dict[str, Callable[[int, bool], int]] = {
    ANNUAL_LEAVE: _annual,
    SICK_LEAVE: _sick,
    MATERNITY_LEAVE: _flat(60),
    PARENTAL_LEAVE: _flat(5),
    COMPASSIONATE_LEAVE: _flat(0),
    STUDY_LEAVE: _flat(10),
    HAJJ_LEAVE: _hajj,
}


def entitlement(
    hire_date: date,
    leave_type_name: str,
    year: int,
    *,
    probation_end_date: Optional[date] = None,
    probation_months: int = PROBATION_MONTHS,
    as_of: Optional[date] = None,
) -> int:
    """Allocated days for one employee, leave type and year.

    Service is counted to 31 December of *year*. Probation is judged as of
    *as_of*, which defaults to the same year end; the allocation run passes
    its run date. Unlisted leave types are entitled to nothing.

    >>> entitlement(date(2020, 3, 1), "Annual Leave", 2024)
    30
    """
    rule = ENTITLEMENT_RULES.get(leave_type_name)
    if rule is None:
        return 0

    reference = year_end(year)
    months = service_months(hire_date, reference)
    probation_done = is_probation_completed(
        hire_date,
        as_of or reference,
        probation_end_date,
        probation_months=probation_months,
    )
    return rule(months, probation_done)
