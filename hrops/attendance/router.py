"""Attendance router: clock in/out, month calendar, exception requests.

All endpoints require authentication. Reviewing exceptions and viewing other
employees' calendars is admin-only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.attendance.schemas import (
    CalendarResponse,
    ClockInRequest,
    ClockOutRequest,
    ClockResponse,
    ExceptionCreate,
    ExceptionResponse,
    ExceptionReviewRequest,
)
from hrops.attendance.service import AttendanceService
from hrops.auth.dependencies import get_current_user, require_role
from hrops.common.constants import ExceptionStatus, UserRole
from hrops.common.exceptions import ForbiddenException
from hrops.common.pagination import PaginatedResponse, PaginationParams
from hrops.common.rate_limit import client_ip, limiter
from hrops.core_hr.models import Employee
from hrops.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


# ── POST /clock-in ──────────────────────────────────────────────────

@router.post("/clock-in", response_model=ClockResponse)
@limiter.limit("10/minute")
async def clock_in(
    request: Request,
    body: ClockInRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record today's clock-in for the current user."""
    return await AttendanceService.clock_in(
        db,
        employee.id,
        is_wfh=body.is_wfh,
        notes=body.notes,
        ip_address=client_ip(request),
    )


# ── POST /clock-out ─────────────────────────────────────────────────

@router.post("/clock-out", response_model=ClockResponse)
@limiter.limit("10/minute")
async def clock_out(
    request: Request,
    body: ClockOutRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record today's clock-out for the current user."""
    return await AttendanceService.clock_out(db, employee.id, notes=body.notes)


# ── GET /calendar ───────────────────────────────────────────────────

@router.get("/calendar", response_model=CalendarResponse)
async def month_calendar(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    employee_id: Optional[uuid.UUID] = Query(
        None, description="Admin only; defaults to the current user",
    ),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Classified month with per-status totals and absence breaches."""
    target_id = employee_id or employee.id
    if target_id != employee.id and employee.role != UserRole.admin:
        raise ForbiddenException("Only admins can view other employees' calendars.")
    return await AttendanceService.get_calendar(db, target_id, year, month)


# ── POST /exceptions ────────────────────────────────────────────────

@router.post("/exceptions", response_model=ExceptionResponse, status_code=201)
async def submit_exception(
    body: ExceptionCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit an attendance exception for today or a past date."""
    return await AttendanceService.submit_exception(db, employee.id, body)


# ── GET /exceptions ─────────────────────────────────────────────────

@router.get("/exceptions", response_model=PaginatedResponse[ExceptionResponse])
async def list_exceptions(
    status: Optional[ExceptionStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None, description="Admin only"),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Own exceptions; admins see everyone's (optionally one employee)."""
    if employee.role != UserRole.admin:
        employee_id = employee.id
    return await AttendanceService.list_exceptions(
        db, params, employee_id=employee_id, status=status,
    )


# ── PUT /exceptions/{id}/approve ────────────────────────────────────

@router.put("/exceptions/{exception_id}/approve", response_model=ExceptionResponse)
async def approve_exception(
    exception_id: uuid.UUID,
    body: ExceptionReviewRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.approve_exception(
        db, exception_id, employee.id, admin_comments=body.admin_comments,
    )


# ── PUT /exceptions/{id}/reject ─────────────────────────────────────

@router.put("/exceptions/{exception_id}/reject", response_model=ExceptionResponse)
async def reject_exception(
    exception_id: uuid.UUID,
    body: ExceptionReviewRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.reject_exception(
        db, exception_id, employee.id, admin_comments=body.admin_comments,
    )
