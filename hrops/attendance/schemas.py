"""Attendance Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Request / *Create → request bodies (write)
  - *Response          → response bodies (read)
"""

import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrops.common.constants import (
    AttendanceStatus,
    BreachType,
    DayStatusKind,
    ExceptionStatus,
    ExceptionType,
)


# ═════════════════════════════════════════════════════════════════════
# Clock in / out
# ═════════════════════════════════════════════════════════════════════


class ClockInRequest(BaseModel):
    """Payload for clocking in."""

    is_wfh: bool = False
    notes: Optional[str] = Field(None, max_length=1000)


class ClockOutRequest(BaseModel):
    """Payload for clocking out."""

    notes: Optional[str] = Field(None, max_length=1000)


class ClockResponse(BaseModel):
    """Attendance row after a clock-in or clock-out action."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    total_hours: Optional[float] = None
    status: AttendanceStatus
    is_wfh: bool = False
    notes: Optional[str] = None
    ip_address: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Calendar
# ═════════════════════════════════════════════════════════════════════


class CalendarDayResponse(BaseModel):
    """One classified calendar day."""

    date: date
    status: DayStatusKind
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    total_hours: Optional[float] = None
    issues: list[str] = []
    leave_type: Optional[str] = None
    exceptions_count: int = 0
    is_wfh: bool = False


class BreachResponse(BaseModel):
    type: BreachType
    count: int
    dates: list[date]
    message: str


class CalendarResponse(BaseModel):
    """A month of day statuses with per-kind totals and absence breaches."""

    employee_id: uuid.UUID
    year: int
    month: int
    days: list[CalendarDayResponse]
    summary: dict[str, int]
    breaches: list[BreachResponse]


# ═════════════════════════════════════════════════════════════════════
# Exceptions
# ═════════════════════════════════════════════════════════════════════


class ExceptionCreate(BaseModel):
    """Employee request to excuse or correct an attendance anomaly."""

    target_date: date
    exception_type: ExceptionType
    reason: str = Field(..., min_length=1, max_length=2000)
    document_url: Optional[str] = None
    proposed_clock_in: Optional[time] = Field(
        None, description="Corrected clock-in, local wall-clock time",
    )
    proposed_clock_out: Optional[time] = Field(
        None, description="Corrected clock-out, local wall-clock time",
    )


class ExceptionReviewRequest(BaseModel):
    admin_comments: Optional[str] = Field(None, max_length=2000)


class ExceptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    attendance_id: Optional[uuid.UUID] = None
    target_date: date
    exception_type: ExceptionType
    reason: str
    document_url: Optional[str] = None
    proposed_clock_in: Optional[time] = None
    proposed_clock_out: Optional[time] = None
    status: ExceptionStatus
    admin_comments: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
