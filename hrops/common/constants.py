"""Enums and constants for HR Ops: matching the PostgreSQL CHECK / ENUM values."""

from __future__ import annotations

import enum


# ── Employee / Auth ─────────────────────────────────────────────────

class EmploymentStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    terminated = "terminated"


class UserRole(str, enum.Enum):
    employee = "employee"
    admin = "admin"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    late = "late"


class ExceptionType(str, enum.Enum):
    late_arrival = "late_arrival"
    early_departure = "early_departure"
    missed_clock_in = "missed_clock_in"
    missed_clock_out = "missed_clock_out"
    wrong_time = "wrong_time"
    short_permission_personal = "short_permission_personal"
    short_permission_official = "short_permission_official"
    wfh = "wfh"


class ExceptionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DayStatusKind(str, enum.Enum):
    ok = "ok"
    pending_exception = "pending-exception"
    issues_no_exception = "issues-no-exception"
    leave = "leave"
    future = "future"
    non_working = "non-working"
    absent = "absent"


class BreachType(str, enum.Enum):
    consecutive = "consecutive"
    monthly = "monthly"


# Issue strings attached to a DayStatus
ISSUE_NO_RECORD = "No attendance record"
ISSUE_MISSING_CLOCK_IN = "Missing clock-in"
ISSUE_LATE_ARRIVAL = "Late arrival"
ISSUE_MISSING_CLOCK_OUT = "Missing clock-out"
ISSUE_EARLY_DEPARTURE = "Early departure"
ISSUE_INCOMPLETE_HOURS = "Incomplete hours"

WEEKDAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
DEFAULT_WORKING_DAYS = WEEKDAY_NAMES[:6]


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PaymentType(str, enum.Enum):
    full_pay = "full_pay"
    half_pay = "half_pay"
    unpaid = "unpaid"


ANNUAL_LEAVE = "Annual Leave"
SICK_LEAVE = "Sick Leave"
MATERNITY_LEAVE = "Maternity Leave"
PARENTAL_LEAVE = "Parental Leave"
COMPASSIONATE_LEAVE = "Compassionate Leave"
STUDY_LEAVE = "Study Leave"
HAJJ_LEAVE = "Hajj Leave"

# Leave types the yearly batch allocates; compassionate leave is granted per event
AUTO_ALLOCATED_LEAVE_TYPES = (
    ANNUAL_LEAVE,
    SICK_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    STUDY_LEAVE,
    HAJJ_LEAVE,
)
