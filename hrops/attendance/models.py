"""Attendance ORM models: WorkSchedule, AttendanceRecord, AttendanceException."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrops.common.constants import (
    DEFAULT_WORKING_DAYS,
    AttendanceStatus,
    ExceptionStatus,
    ExceptionType,
)
from hrops.database import Base


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the store."""
    # SQLite drops tzinfo on round-trip
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class WorkSchedule(Base):
    __tablename__ = "work_schedules"
    __table_args__ = (
        # One active schedule per employee
        sa.Index(
            "uq_work_schedule_active_employee",
            "employee_id",
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_time: Mapped[time] = mapped_column(
        sa.Time, nullable=False, default=time(9, 0),
    )
    end_time: Mapped[time] = mapped_column(
        sa.Time, nullable=False, default=time(17, 0),
    )
    minimum_daily_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(4, 2), nullable=False, default=Decimal("8.00"),
    )
    working_days: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=lambda: list(DEFAULT_WORKING_DAYS),
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    employee: Mapped["hrops.core_hr.models.Employee"] = relationship(
        back_populates="work_schedules"
    )


class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_emp_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    clock_in_time: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    total_hours: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 2))
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status"),
        default=AttendanceStatus.present,
    )
    is_wfh: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    # Client address seen at clock-in
    ip_address: Mapped[Optional[str]] = mapped_column(sa.String(45))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    employee: Mapped["hrops.core_hr.models.Employee"] = relationship()
    exceptions: Mapped[list[AttendanceException]] = relationship(
        back_populates="attendance"
    )

    def recompute_total_hours(self) -> None:
        """Derive total_hours from the clock pair; cleared while the pair is incomplete."""
        if self.clock_in_time is None or self.clock_out_time is None:
            self.total_hours = None
            return
        seconds = (
            as_utc(self.clock_out_time) - as_utc(self.clock_in_time)
        ).total_seconds()
        self.total_hours = (Decimal(seconds) / Decimal(3600)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP,
        )


@sa.event.listens_for(AttendanceRecord, "before_insert")
@sa.event.listens_for(AttendanceRecord, "before_update")
def _derive_total_hours(mapper, connection, target: AttendanceRecord) -> None:
    target.recompute_total_hours()


class AttendanceException(Base):
    __tablename__ = "attendance_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    attendance_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("attendance.id")
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    target_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    exception_type: Mapped[ExceptionType] = mapped_column(
        sa.Enum(ExceptionType, name="exception_type"), nullable=False,
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    document_url: Mapped[Optional[str]] = mapped_column(sa.Text)
    proposed_clock_in: Mapped[Optional[time]] = mapped_column(sa.Time)
    proposed_clock_out: Mapped[Optional[time]] = mapped_column(sa.Time)
    status: Mapped[ExceptionStatus] = mapped_column(
        sa.Enum(ExceptionStatus, name="exception_status"),
        default=ExceptionStatus.pending,
    )
    admin_comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    attendance: Mapped[Optional[AttendanceRecord]] = relationship(
        back_populates="exceptions"
    )
    employee: Mapped["hrops.core_hr.models.Employee"] = relationship(
        foreign_keys=[employee_id]
    )
    reviewer: Mapped[Optional["hrops.core_hr.models.Employee"]] = relationship(
        foreign_keys=[reviewed_by]
    )
