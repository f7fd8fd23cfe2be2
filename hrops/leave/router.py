"""Leave router: apply, approve/reject, balances, entitlement, allocation.

All endpoints require authentication. Reviewing requests and running the
yearly allocation is admin-only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.attendance.service import local_today
from hrops.auth.dependencies import get_current_user, require_role
from hrops.common.audit import create_audit_entry
from hrops.common.constants import LeaveStatus, UserRole
from hrops.common.pagination import PaginatedResponse, PaginationParams
from hrops.common.rate_limit import limiter
from hrops.core_hr.models import Employee
from hrops.database import get_db
from hrops.leave.allocation import allocate_leave_balances
from hrops.leave.schemas import (
    AllocationRequest,
    AllocationSummaryOut,
    EntitlementOut,
    LeaveApproveRequest,
    LeaveBalanceOut,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from hrops.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("20/minute")
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. The payment tier is derived from the leave-type rules."""
    return await LeaveService.apply_leave(db, employee.id, body)


# ── GET /my-leaves ──────────────────────────────────────────────────

@router.get("/my-leaves", response_model=PaginatedResponse[LeaveRequestOut])
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    params: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's leave requests with pagination."""
    return await LeaveService.get_my_leaves(db, employee.id, params, status=status)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's leave balances for a given year."""
    return await LeaveService.get_balances(db, employee.id, year or local_today().year)


# ── GET /entitlement ────────────────────────────────────────────────

@router.get("/entitlement", response_model=EntitlementOut)
async def get_entitlement(
    leave_type: str = Query(..., min_length=1, description="Leave type name"),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
):
    """Preview the days the yearly allocation grants the current user."""
    today = local_today()
    return LeaveService.preview_entitlement(
        employee, leave_type, year or today.year, as_of=today,
    )


# ── POST /allocate ──────────────────────────────────────────────────

@router.post("/allocate", response_model=AllocationSummaryOut)
async def allocate(
    body: AllocationRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Run the yearly balance allocation for every active employee."""
    summary = await allocate_leave_balances(db, body.year, as_of=local_today())
    await create_audit_entry(
        db,
        action="allocate",
        entity_type="leave_balance",
        actor_id=employee.id,
        new_values={
            "year": body.year,
            "total_allocations": summary.total_allocations,
            "employees_affected": summary.employees_affected,
            "failures": len(summary.failures),
        },
    )
    return AllocationSummaryOut.model_validate(summary)


# ── PUT /{id}/approve ───────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Re-validates and books used days."""
    return await LeaveService.approve_leave(
        db, request_id, employee.id, remarks=body.remarks,
    )


# ── PUT /{id}/reject ────────────────────────────────────────────────

@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request."""
    return await LeaveService.reject_leave(db, request_id, employee.id, body.reason)
