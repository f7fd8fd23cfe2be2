"""Day status classifier. Merges schedule, attendance, leave and exceptions
into one ``DayStatus`` per calendar day.

Precedence (first match wins):
  1. future:        date after ``today``
  2. non-working:   weekday not in the schedule's working days
  3. leave:         inside an approved leave interval (inclusive)
  4. absent:        no record / no clock-in (pending exception → pending-exception)
  5. issue scan:    late arrival, missing clock-out, early departure, short hours
  6. resolution:    approved exceptions cover issues by count, else pending,
                    else issues-no-exception

Everything here is pure: ``today`` and the reference timezone are parameters.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from hrops.attendance.schedule import Schedule
from hrops.common.constants import (
    ISSUE_EARLY_DEPARTURE,
    ISSUE_INCOMPLETE_HOURS,
    ISSUE_LATE_ARRIVAL,
    ISSUE_MISSING_CLOCK_IN,
    ISSUE_MISSING_CLOCK_OUT,
    ISSUE_NO_RECORD,
    WEEKDAY_NAMES,
    DayStatusKind,
    ExceptionStatus,
)
from hrops.common.exceptions import ConfigurationError


# ═════════════════════════════════════════════════════════════════════
# Inputs
# ═════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AttendanceEntry:
    date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    is_wfh: bool = False
    notes: Optional[str] = None


@dataclass(frozen=True)
class LeaveInterval:
    """An approved leave; both ends inclusive."""

    start_date: date
    end_date: date
    leave_type: str

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ExceptionEntry:
    target_date: date
    exception_type: str
    status: ExceptionStatus


# ═════════════════════════════════════════════════════════════════════
# Output
# ═════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DayDetails:
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    issues: tuple[str, ...] = field(default_factory=tuple)
    leave_type: Optional[str] = None
    exceptions_count: int = 0
    is_wfh: bool = False


@dataclass(frozen=True)
class DayStatus:
    date: date
    kind: DayStatusKind
    details: Optional[DayDetails] = None

    @property
    def issues(self) -> tuple[str, ...]:
        return self.details.issues if self.details else ()


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def iter_days(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _local_time_of_day(value: datetime, tz: tzinfo) -> time:
    """Wall-clock time (seconds precision) in the reference timezone.

    Naive timestamps are read as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(tz)
    return value.time().replace(microsecond=0, tzinfo=None)


def detect_issues(
    entry: AttendanceEntry,
    schedule: Schedule,
    tz: tzinfo,
) -> list[str]:
    """Return the attendance anomalies for a single record, in a fixed order.

    Clock times are converted to *tz* before comparison with the schedule.
    """

    issues: list[str] = []

    if entry.clock_in_time is None:
        issues.append(ISSUE_MISSING_CLOCK_IN)
    elif _local_time_of_day(entry.clock_in_time, tz) > schedule.start_time:
        issues.append(ISSUE_LATE_ARRIVAL)

    if entry.clock_out_time is None:
        issues.append(ISSUE_MISSING_CLOCK_OUT)
    elif entry.clock_in_time is not None:
        if _local_time_of_day(entry.clock_out_time, tz) < schedule.end_time:
            issues.append(ISSUE_EARLY_DEPARTURE)

    if entry.total_hours is not None and entry.total_hours < schedule.minimum_daily_hours:
        issues.append(ISSUE_INCOMPLETE_HOURS)

    return issues


def _resolve_with_exceptions(
    issues: list[str],
    day_exceptions: list[ExceptionEntry],
) -> DayStatusKind:
    # Each approved exception is taken to cover one issue, whatever its type.
    if not issues:
        return DayStatusKind.ok
    approved = sum(1 for ex in day_exceptions if ex.status == ExceptionStatus.approved)
    if approved >= len(issues):
        return DayStatusKind.ok
    if any(ex.status == ExceptionStatus.pending for ex in day_exceptions):
        return DayStatusKind.pending_exception
    return DayStatusKind.issues_no_exception


# ═════════════════════════════════════════════════════════════════════
# Classifier
# ═════════════════════════════════════════════════════════════════════


def classify_day(
    day: date,
    schedule: Schedule,
    entry: Optional[AttendanceEntry],
    leaves: Iterable[LeaveInterval],
    day_exceptions: list[ExceptionEntry],
    *,
    today: date,
    tz: tzinfo,
) -> DayStatus:
    """Classify one calendar day."""

    if day > today:
        return DayStatus(day, DayStatusKind.future)

    if not schedule.is_working_day(WEEKDAY_NAMES[day.weekday()]):
        return DayStatus(day, DayStatusKind.non_working)

    on_leave = next((lv for lv in leaves if lv.covers(day)), None)
    if on_leave is not None:
        return DayStatus(
            day, DayStatusKind.leave, DayDetails(leave_type=on_leave.leave_type),
        )

    if entry is None or entry.clock_in_time is None:
        pending = sum(1 for ex in day_exceptions if ex.status == ExceptionStatus.pending)
        return DayStatus(
            day,
            DayStatusKind.pending_exception if pending else DayStatusKind.absent,
            DayDetails(issues=(ISSUE_NO_RECORD,), exceptions_count=pending),
        )

    issues = detect_issues(entry, schedule, tz)
    counted = [ex for ex in day_exceptions if ex.status != ExceptionStatus.rejected]
    return DayStatus(
        day,
        _resolve_with_exceptions(issues, counted),
        DayDetails(
            clock_in_time=entry.clock_in_time,
            clock_out_time=entry.clock_out_time,
            total_hours=entry.total_hours,
            issues=tuple(issues),
            exceptions_count=len(counted),
            is_wfh=entry.is_wfh,
        ),
    )


def classify(
    schedule: Schedule,
    attendance: Iterable[AttendanceEntry],
    leaves: Iterable[LeaveInterval],
    exceptions: Iterable[ExceptionEntry],
    start: date,
    end: date,
    *,
    today: date,
    tz: tzinfo,
) -> dict[date, DayStatus]:
    """Classify every day in ``[start, end]``; keys are in chronological order.

    Args:
        schedule: The employee's active schedule (non-empty working days).
        attendance: Attendance rows; at most one per date.
        leaves: Approved leave intervals overlapping the range.
        exceptions: Exceptions in the range (rejected ones are ignored).
        start, end: Inclusive date range.
        today: "Today" in the employee's reference timezone.
        tz: Reference timezone; clock timestamps are converted to it before
            they are compared to the schedule. Naive timestamps are UTC.
    """

    if not schedule.working_days:
        raise ConfigurationError("Work schedule has no working days configured.")

    records = {entry.date: entry for entry in attendance}
    leave_list = list(leaves)
    by_date: dict[date, list[ExceptionEntry]] = defaultdict(list)
    for ex in exceptions:
        by_date[ex.target_date].append(ex)

    return {
        day: classify_day(
            day,
            schedule,
            records.get(day),
            leave_list,
            by_date.get(day, []),
            today=today,
            tz=tz,
        )
        for day in iter_days(start, end)
    }
