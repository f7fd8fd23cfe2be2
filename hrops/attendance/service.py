"""Attendance service layer: clock in/out, monthly calendar, exceptions.

Business logic:
  - Clock in/out against the employee's active schedule (local reference time)
  - Month calendar: load the four sources, classify, detect absence breaches
  - Exception workflow (submit → approve/reject); approved time corrections
    are written back to the attendance row
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.attendance.breaches import detect_breaches, summarize
from hrops.attendance.classifier import (
    AttendanceEntry,
    DayStatus,
    ExceptionEntry,
    LeaveInterval,
    classify,
)
from hrops.attendance.models import AttendanceException, AttendanceRecord, as_utc
from hrops.attendance.schedule import ScheduleResolver
from hrops.attendance.schemas import (
    BreachResponse,
    CalendarDayResponse,
    CalendarResponse,
    ClockResponse,
    ExceptionCreate,
    ExceptionResponse,
)
from hrops.common.audit import create_audit_entry
from hrops.common.constants import (
    AttendanceStatus,
    ExceptionStatus,
    ExceptionType,
    LeaveStatus,
)
from hrops.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrops.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrops.config import settings
from hrops.core_hr.models import Employee
from hrops.leave.models import LeaveRequest, LeaveType

logger = logging.getLogger(__name__)

# Exception types whose approval rewrites the clock pair
TIME_CORRECTION_TYPES = frozenset({
    ExceptionType.missed_clock_in,
    ExceptionType.missed_clock_out,
    ExceptionType.wrong_time,
})


def reference_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_today() -> date:
    return datetime.now(reference_tz()).date()


def _merge_clock_pair(
    record: Optional[AttendanceRecord],
    target_date: date,
    proposed_in: Optional[time],
    proposed_out: Optional[time],
    tz: ZoneInfo,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Proposed local times override the row's stored pair (UTC)."""

    def _at(t: time) -> datetime:
        return datetime.combine(target_date, t, tzinfo=tz).astimezone(timezone.utc)

    current_in = record.clock_in_time if record is not None else None
    current_out = record.clock_out_time if record is not None else None
    clock_in = _at(proposed_in) if proposed_in is not None else current_in
    clock_out = _at(proposed_out) if proposed_out is not None else current_out
    return (
        as_utc(clock_in) if clock_in is not None else None,
        as_utc(clock_out) if clock_out is not None else None,
    )


def _check_clock_pair(clock_in: Optional[datetime], clock_out: Optional[datetime]) -> None:
    if clock_in is not None and clock_out is not None and clock_out <= clock_in:
        raise ValidationException(
            {"proposed_clock_out": ["Clock-out must be after clock-in."]}
        )


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations: clock, calendar, exceptions."""

    # ── Source queries ──────────────────────────────────────────────

    @staticmethod
    async def get_attendance_in_range(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> list[AttendanceEntry]:
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
        )
        return [
            AttendanceEntry(
                date=r.date,
                clock_in_time=r.clock_in_time,
                clock_out_time=r.clock_out_time,
                total_hours=r.total_hours,
                is_wfh=bool(r.is_wfh),
                notes=r.notes,
            )
            for r in result.scalars().all()
        ]

    @staticmethod
    async def get_approved_leaves(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> list[LeaveInterval]:
        """Approved leave intervals overlapping ``[start, end]``."""

        result = await db.execute(
            select(LeaveRequest.start_date, LeaveRequest.end_date, LeaveType.name)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
        )
        return [
            LeaveInterval(start_date=s, end_date=e, leave_type=name)
            for s, e, name in result.all()
        ]

    @staticmethod
    async def get_exceptions_in_range(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        *,
        statuses: Optional[Iterable[ExceptionStatus]] = None,
    ) -> list[ExceptionEntry]:
        query = select(AttendanceException).where(
            AttendanceException.employee_id == employee_id,
            AttendanceException.target_date >= start,
            AttendanceException.target_date <= end,
        )
        if statuses is not None:
            query = query.where(AttendanceException.status.in_(list(statuses)))
        result = await db.execute(query)
        return [
            ExceptionEntry(
                target_date=ex.target_date,
                exception_type=ex.exception_type.value,
                status=ex.status,
            )
            for ex in result.scalars().all()
        ]

    # ── Clock in ────────────────────────────────────────────────────

    @staticmethod
    async def clock_in(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        is_wfh: bool = False,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> ClockResponse:
        """Create today's attendance row; late if after the scheduled start."""

        tz = reference_tz()
        now = datetime.now(timezone.utc)
        today = now.astimezone(tz).date()

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date == today,
            )
        )
        record = result.scalars().first()
        if record is not None and record.clock_in_time is not None:
            raise ConflictError("clock_in", "Already clocked in today")

        status = AttendanceStatus.present
        schedule_row = await ScheduleResolver.get_active_row(db, employee_id)
        if schedule_row is not None:
            local_time = now.astimezone(tz).time().replace(microsecond=0)
            if local_time > schedule_row.start_time:
                status = AttendanceStatus.late

        if record is None:
            record = AttendanceRecord(employee_id=employee_id, date=today)
            db.add(record)
        record.clock_in_time = now
        record.status = status
        record.is_wfh = is_wfh
        record.notes = notes
        record.ip_address = ip_address
        await db.flush()

        await create_audit_entry(
            db,
            action="clock_in",
            entity_type="attendance",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={
                "date": today.isoformat(),
                "clock_in_time": now.isoformat(),
                "status": status.value,
                "is_wfh": is_wfh,
            },
        )

        return ClockResponse.model_validate(record)

    # ── Clock out ───────────────────────────────────────────────────

    @staticmethod
    async def clock_out(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        notes: Optional[str] = None,
    ) -> ClockResponse:
        """Close today's attendance row; ``total_hours`` is derived on flush."""

        now = datetime.now(timezone.utc)
        today = now.astimezone(reference_tz()).date()

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date == today,
            )
        )
        record = result.scalars().first()
        if record is None or record.clock_in_time is None:
            raise ValidationException(
                {"clock_out": ["No clock-in record found for today."]}
            )
        if record.clock_out_time is not None:
            raise ConflictError("clock_out", "Already clocked out today")

        record.clock_out_time = now
        if notes:
            record.notes = notes
        record.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="clock_out",
            entity_type="attendance",
            entity_id=record.id,
            actor_id=employee_id,
            new_values={
                "clock_out_time": now.isoformat(),
                "total_hours": str(record.total_hours),
            },
        )

        return ClockResponse.model_validate(record)

    # ── Calendar ────────────────────────────────────────────────────

    @staticmethod
    async def get_day_statuses(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        *,
        today: Optional[date] = None,
    ) -> dict[date, DayStatus]:
        """Classify every day in ``[start, end]`` for one employee.

        Raises:
            ValidationException: inverted or over-long range.
            ConfigurationError: no active schedule / no working days.
        """

        if start > end:
            raise ValidationException(
                {"date_range": ["start must be before or equal to end."]}
            )
        if (end - start).days + 1 > settings.MAX_CALENDAR_RANGE_DAYS:
            raise ValidationException(
                {"date_range": [
                    f"Date range cannot exceed {settings.MAX_CALENDAR_RANGE_DAYS} days."
                ]}
            )

        schedule = await ScheduleResolver.get_active_schedule(db, employee_id)
        attendance = await AttendanceService.get_attendance_in_range(
            db, employee_id, start, end,
        )
        leaves = await AttendanceService.get_approved_leaves(
            db, employee_id, start, end,
        )
        exceptions = await AttendanceService.get_exceptions_in_range(
            db,
            employee_id,
            start,
            end,
            statuses=(ExceptionStatus.pending, ExceptionStatus.approved),
        )

        return classify(
            schedule,
            attendance,
            leaves,
            exceptions,
            start,
            end,
            today=today or local_today(),
            tz=reference_tz(),
        )

    @staticmethod
    async def get_calendar(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        month: int,
        *,
        today: Optional[date] = None,
    ) -> CalendarResponse:
        """Month view: day statuses, per-kind totals and absence breaches."""

        emp = await db.execute(select(Employee.id).where(Employee.id == employee_id))
        if emp.scalar() is None:
            raise NotFoundException("Employee", str(employee_id))

        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        days = await AttendanceService.get_day_statuses(
            db, employee_id, start, end, today=today,
        )
        breaches = detect_breaches(
            days,
            consecutive_threshold=settings.CONSECUTIVE_ABSENCE_THRESHOLD,
            monthly_threshold=settings.MONTHLY_ABSENCE_THRESHOLD,
        )
        if breaches:
            logger.info(
                "Employee %s has %d absence breach(es) in %04d-%02d",
                employee_id, len(breaches), year, month,
            )

        return CalendarResponse(
            employee_id=employee_id,
            year=year,
            month=month,
            days=[AttendanceService._build_day_response(s) for s in days.values()],
            summary=summarize(days),
            breaches=[
                BreachResponse(
                    type=b.type, count=b.count, dates=list(b.dates), message=b.message,
                )
                for b in breaches
            ],
        )

    @staticmethod
    def _build_day_response(status: DayStatus) -> CalendarDayResponse:
        details = status.details
        if details is None:
            return CalendarDayResponse(date=status.date, status=status.kind)
        return CalendarDayResponse(
            date=status.date,
            status=status.kind,
            clock_in_time=details.clock_in_time,
            clock_out_time=details.clock_out_time,
            total_hours=(
                float(details.total_hours) if details.total_hours is not None else None
            ),
            issues=list(details.issues),
            leave_type=details.leave_type,
            exceptions_count=details.exceptions_count,
            is_wfh=details.is_wfh,
        )

    # ── Exceptions: submit ──────────────────────────────────────────

    @staticmethod
    async def submit_exception(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: ExceptionCreate,
    ) -> ExceptionResponse:
        """Submit an exception for today or a past date."""

        if data.target_date > local_today():
            raise ValidationException(
                {"target_date": ["Exceptions cannot be submitted for future dates."]}
            )
        att = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date == data.target_date,
            )
        )
        record = att.scalars().first()
        if data.exception_type in TIME_CORRECTION_TYPES:
            _check_clock_pair(*_merge_clock_pair(
                record,
                data.target_date,
                data.proposed_clock_in,
                data.proposed_clock_out,
                reference_tz(),
            ))
        elif (
            data.proposed_clock_in is not None
            and data.proposed_clock_out is not None
            and data.proposed_clock_out <= data.proposed_clock_in
        ):
            raise ValidationException(
                {"proposed_clock_out": ["Clock-out must be after clock-in."]}
            )

        existing = await db.execute(
            select(AttendanceException.id).where(
                AttendanceException.employee_id == employee_id,
                AttendanceException.target_date == data.target_date,
                AttendanceException.exception_type == data.exception_type,
                AttendanceException.status == ExceptionStatus.pending,
            )
        )
        if existing.scalars().first() is not None:
            raise ConflictError(
                "exception",
                f"Pending {data.exception_type.value} already exists for {data.target_date}",
            )

        exception = AttendanceException(
            employee_id=employee_id,
            attendance_id=record.id if record is not None else None,
            target_date=data.target_date,
            exception_type=data.exception_type,
            reason=data.reason,
            document_url=data.document_url,
            proposed_clock_in=data.proposed_clock_in,
            proposed_clock_out=data.proposed_clock_out,
            status=ExceptionStatus.pending,
        )
        db.add(exception)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="attendance_exception",
            entity_id=exception.id,
            actor_id=employee_id,
            new_values={
                "target_date": data.target_date.isoformat(),
                "exception_type": data.exception_type.value,
            },
        )

        return ExceptionResponse.model_validate(exception)

    # ── Exceptions: list ────────────────────────────────────────────

    @staticmethod
    async def list_exceptions(
        db: AsyncSession,
        params: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[ExceptionStatus] = None,
    ) -> PaginatedResponse[ExceptionResponse]:
        query = select(AttendanceException).order_by(
            AttendanceException.target_date.desc()
        )
        if employee_id is not None:
            query = query.where(AttendanceException.employee_id == employee_id)
        if status is not None:
            query = query.where(AttendanceException.status == status)

        rows, meta = await paginate(
            db,
            query,
            params,
            sortable={
                "target_date": AttendanceException.target_date,
                "created_at": AttendanceException.created_at,
                "status": AttendanceException.status,
            },
        )
        return PaginatedResponse[ExceptionResponse](
            data=[ExceptionResponse.model_validate(r) for r in rows],
            meta=meta,
        )

    # ── Exceptions: review ──────────────────────────────────────────

    @staticmethod
    async def _get_pending_exception(
        db: AsyncSession,
        exception_id: uuid.UUID,
    ) -> AttendanceException:
        # Re-read under lock so concurrent reviews see the committed status
        result = await db.execute(
            select(AttendanceException)
            .where(AttendanceException.id == exception_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        exception = result.scalars().first()
        if exception is None:
            raise NotFoundException("AttendanceException", str(exception_id))
        if exception.status != ExceptionStatus.pending:
            raise ValidationException(
                {"status": [f"Exception is already {exception.status.value}."]}
            )
        return exception

    @staticmethod
    async def _apply_time_correction(
        db: AsyncSession,
        exception: AttendanceException,
    ) -> Optional[AttendanceRecord]:
        """Write the proposed clock pair onto the attendance row for the day.

        Proposed times are merged with the row's current pair; the merged
        clock-out must fall after the clock-in or nothing is written.
        """

        if exception.proposed_clock_in is None and exception.proposed_clock_out is None:
            return None

        tz = reference_tz()
        result = await db.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == exception.employee_id,
                AttendanceRecord.date == exception.target_date,
            )
            .with_for_update()
        )
        record = result.scalars().first()

        clock_in, clock_out = _merge_clock_pair(
            record,
            exception.target_date,
            exception.proposed_clock_in,
            exception.proposed_clock_out,
            tz,
        )
        _check_clock_pair(clock_in, clock_out)

        if record is None:
            record = AttendanceRecord(
                employee_id=exception.employee_id,
                date=exception.target_date,
                status=AttendanceStatus.present,
                notes=f"Created via exception approval: {exception.reason}",
            )
            db.add(record)

        record.clock_in_time = clock_in
        record.clock_out_time = clock_out
        record.updated_at = datetime.now(timezone.utc)
        await db.flush()

        exception.attendance_id = record.id
        return record

    @staticmethod
    async def approve_exception(
        db: AsyncSession,
        exception_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        admin_comments: Optional[str] = None,
    ) -> ExceptionResponse:
        exception = await AttendanceService._get_pending_exception(db, exception_id)
        if exception.employee_id == reviewer_id:
            raise ForbiddenException("You cannot review your own exception request.")

        if exception.exception_type in TIME_CORRECTION_TYPES:
            await AttendanceService._apply_time_correction(db, exception)

        now = datetime.now(timezone.utc)
        exception.status = ExceptionStatus.approved
        exception.reviewed_by = reviewer_id
        exception.reviewed_at = now
        exception.admin_comments = admin_comments
        exception.updated_at = now

        await db.flush()

        await create_audit_entry(
            db,
            action="approve",
            entity_type="attendance_exception",
            entity_id=exception.id,
            actor_id=reviewer_id,
            old_values={"status": ExceptionStatus.pending.value},
            new_values={
                "status": ExceptionStatus.approved.value,
                "admin_comments": admin_comments,
            },
        )
        logger.info("Exception %s approved by %s", exception.id, reviewer_id)

        return ExceptionResponse.model_validate(exception)

    @staticmethod
    async def reject_exception(
        db: AsyncSession,
        exception_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        admin_comments: Optional[str] = None,
    ) -> ExceptionResponse:
        exception = await AttendanceService._get_pending_exception(db, exception_id)
        if exception.employee_id == reviewer_id:
            raise ForbiddenException("You cannot review your own exception request.")

        now = datetime.now(timezone.utc)
        exception.status = ExceptionStatus.rejected
        exception.reviewed_by = reviewer_id
        exception.reviewed_at = now
        exception.admin_comments = admin_comments
        exception.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="reject",
            entity_type="attendance_exception",
            entity_id=exception.id,
            actor_id=reviewer_id,
            old_values={"status": ExceptionStatus.pending.value},
            new_values={
                "status": ExceptionStatus.rejected.value,
                "admin_comments": admin_comments,
            },
        )
        logger.info("Exception %s rejected by %s", exception.id, reviewer_id)

        return ExceptionResponse.model_validate(exception)
