"""Leave service layer: apply, approve/reject, balances, entitlement preview.

Business logic:
  - Leave application runs the leave-type policy against current persisted
    state and stores the derived payment tier
  - Approval re-runs the same policy (excluding the request itself) and
    books the days against the year's balance
  - Balance listing and entitlement preview for the current user

Every write locks the employee row first so two requests for the same
employee cannot both pass validation against the same aggregates.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrops.attendance.service import local_today
from hrops.common.audit import create_audit_entry
from hrops.common.constants import HAJJ_LEAVE, SICK_LEAVE, LeaveStatus
from hrops.common.exceptions import (
    ForbiddenException,
    LeaveValidationError,
    NotFoundException,
    ValidationException,
)
from hrops.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrops.config import settings
from hrops.core_hr.models import Employee
from hrops.leave.entitlement import entitlement, is_probation_completed, service_months
from hrops.leave.models import LeaveBalance, LeaveRequest, LeaveType
from hrops.leave.schemas import (
    EntitlementOut,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from hrops.leave.validation import EmployeeLeaveState, LeaveRequestDraft, validate

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: requests, approvals, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _inclusive_days(start: date, end: date) -> Decimal:
        return Decimal((end - start).days + 1)

    @staticmethod
    async def _lock_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        """Load the employee row with ``FOR UPDATE`` (no-op on SQLite)."""

        result = await db.execute(
            select(Employee).where(Employee.id == employee_id).with_for_update()
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def build_leave_state(
        db: AsyncSession,
        employee: Employee,
        year: int,
        *,
        as_of: date,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> EmployeeLeaveState:
        """Validator inputs from persisted rows, excluding one request."""

        sick_q = (
            select(func.coalesce(func.sum(LeaveRequest.total_days), 0))
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveType.name == SICK_LEAVE,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        )
        hajj_q = (
            select(func.count())
            .select_from(LeaveRequest)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveType.name == HAJJ_LEAVE,
            )
        )
        if exclude_request_id is not None:
            sick_q = sick_q.where(LeaveRequest.id != exclude_request_id)
            hajj_q = hajj_q.where(LeaveRequest.id != exclude_request_id)

        sick_days = (await db.execute(sick_q)).scalar_one()
        hajj_count = (await db.execute(hajj_q)).scalar_one()

        return EmployeeLeaveState(
            hire_date=employee.hire_date,
            as_of=as_of,
            probation_end_date=employee.probation_end_date,
            approved_sick_days_this_year=Decimal(str(sick_days)),
            has_approved_hajj=hajj_count > 0,
            probation_months=settings.PROBATION_MONTHS,
        )

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        leave_type_name: Optional[str] = None,
    ) -> LeaveRequestOut:
        return LeaveRequestOut(
            id=req.id,
            employee_id=req.employee_id,
            leave_type_id=req.leave_type_id,
            leave_type_name=leave_type_name,
            start_date=req.start_date,
            end_date=req.end_date,
            total_days=req.total_days,
            reason=req.reason,
            status=req.status,
            payment_type=req.payment_type,
            medical_certificate_url=req.medical_certificate_url,
            relationship=req.relationship_to_deceased,
            reviewed_by=req.reviewed_by,
            reviewed_at=req.reviewed_at,
            reviewer_remarks=req.reviewer_remarks,
            created_at=req.created_at,
            updated_at=req.updated_at,
        )

    @staticmethod
    async def _get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        """Lock a pending request for review.

        The row is re-read under ``FOR UPDATE`` with ``populate_existing`` so a
        review that waited on a concurrent one sees the committed status rather
        than the copy already in the session.
        """
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(selectinload(LeaveRequest.leave_type))
            .with_for_update(of=LeaveRequest)
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        if leave_req.status != LeaveStatus.pending:
            raise ValidationException(
                {"status": [f"Leave request is already {leave_req.status.value}."]}
            )
        return leave_req

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Apply for leave.

        - No overlap with a pending/approved request
        - Leave-type policy (probation, certificate, one-time Hajj, ...)
        - Payment tier derived by the policy, never taken blindly from input
        """

        employee = await LeaveService._lock_employee(db, employee_id)

        lt_result = await db.execute(
            select(LeaveType).where(
                LeaveType.id == data.leave_type_id,
                LeaveType.is_active.is_(True),
            )
        )
        leave_type = lt_result.scalars().first()
        if leave_type is None:
            raise NotFoundException("LeaveType", str(data.leave_type_id))

        # ── Overlap ─────────────────────────────────────────────────
        overlap_result = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
                LeaveRequest.start_date <= data.end_date,
                LeaveRequest.end_date >= data.start_date,
            )
        )
        if overlap_result.scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

        # ── Policy ──────────────────────────────────────────────────
        total_days = LeaveService._inclusive_days(data.start_date, data.end_date)
        state = await LeaveService.build_leave_state(
            db,
            employee,
            data.start_date.year,
            as_of=today or local_today(),
        )
        draft = LeaveRequestDraft(
            leave_type=leave_type.name,
            total_days=total_days,
            start_date=data.start_date,
            end_date=data.end_date,
            medical_certificate_url=data.medical_certificate_url,
            relationship=data.relationship,
            payment_type=data.payment_type,
        )
        try:
            payment_type = validate(draft, state)
        except LeaveValidationError as exc:
            logger.info(
                "Leave request by %s rejected (%s): %s",
                employee.employee_code, leave_type.name, exc.reason,
            )
            raise

        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            reason=data.reason,
            status=LeaveStatus.pending,
            payment_type=payment_type,
            medical_certificate_url=data.medical_certificate_url,
            relationship_to_deceased=data.relationship,
        )
        db.add(leave_request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee_id,
            new_values={
                "leave_type": leave_type.name,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": str(total_days),
                "payment_type": payment_type.value,
            },
        )

        return LeaveService._build_request_response(leave_request, leave_type.name)

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        *,
        remarks: Optional[str] = None,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request after re-validating it; books used days."""

        leave_req = await LeaveService._get_request(db, request_id)
        if leave_req.employee_id == approver_id:
            raise ForbiddenException("You cannot approve your own leave request.")

        # Lock order is request row, then employee; apply takes only the latter
        employee = await LeaveService._lock_employee(db, leave_req.employee_id)
        leave_type = leave_req.leave_type

        state = await LeaveService.build_leave_state(
            db,
            employee,
            leave_req.start_date.year,
            as_of=today or local_today(),
            exclude_request_id=leave_req.id,
        )
        payment_type = validate(
            LeaveRequestDraft(
                leave_type=leave_type.name,
                total_days=leave_req.total_days,
                start_date=leave_req.start_date,
                end_date=leave_req.end_date,
                medical_certificate_url=leave_req.medical_certificate_url,
                relationship=leave_req.relationship_to_deceased,
                payment_type=leave_req.payment_type,
            ),
            state,
        )

        now = datetime.now(timezone.utc)
        old_values = {
            "status": leave_req.status.value,
            "payment_type": leave_req.payment_type.value,
        }
        leave_req.status = LeaveStatus.approved
        leave_req.payment_type = payment_type
        leave_req.reviewed_by = approver_id
        leave_req.reviewed_at = now
        leave_req.reviewer_remarks = remarks
        leave_req.updated_at = now

        # ── Book against the year's balance ─────────────────────────
        year = leave_req.start_date.year
        bal_result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == leave_req.employee_id,
                LeaveBalance.leave_type_id == leave_req.leave_type_id,
                LeaveBalance.year == year,
            )
        )
        balance = bal_result.scalars().first()
        if balance is None:
            balance = LeaveBalance(
                employee_id=leave_req.employee_id,
                leave_type_id=leave_req.leave_type_id,
                year=year,
                allocated_days=Decimal("0"),
                used_days=Decimal("0"),
                auto_calculated=False,
            )
            db.add(balance)
        balance.used_days = (balance.used_days or Decimal("0")) + leave_req.total_days
        balance.updated_at = now

        await db.flush()

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values=old_values,
            new_values={
                "status": LeaveStatus.approved.value,
                "payment_type": payment_type.value,
                "remarks": remarks,
            },
        )
        logger.info(
            "Leave request %s approved by %s (%s, %s days)",
            leave_req.id, approver_id, payment_type.value, leave_req.total_days,
        )

        return LeaveService._build_request_response(leave_req, leave_type.name)

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        reason: str,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService._get_request(db, request_id)
        if leave_req.employee_id == approver_id:
            raise ForbiddenException("You cannot reject your own leave request.")

        now = datetime.now(timezone.utc)
        leave_req.status = LeaveStatus.rejected
        leave_req.reviewed_by = approver_id
        leave_req.reviewed_at = now
        leave_req.reviewer_remarks = reason
        leave_req.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.rejected.value, "reason": reason},
        )

        return LeaveService._build_request_response(leave_req, leave_req.leave_type.name)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_my_leaves(
        db: AsyncSession,
        employee_id: uuid.UUID,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .options(selectinload(LeaveRequest.leave_type))
            .order_by(LeaveRequest.start_date.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        rows, meta = await paginate(
            db,
            query,
            params,
            sortable={
                "start_date": LeaveRequest.start_date,
                "created_at": LeaveRequest.created_at,
                "total_days": LeaveRequest.total_days,
            },
        )
        return PaginatedResponse[LeaveRequestOut](
            data=[
                LeaveService._build_request_response(r, r.leave_type.name)
                for r in rows
            ],
            meta=meta,
        )

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .options(selectinload(LeaveBalance.leave_type))
        )
        balances = sorted(result.scalars().all(), key=lambda b: b.leave_type.name)
        return [
            LeaveBalanceOut(
                id=b.id,
                employee_id=b.employee_id,
                leave_type_id=b.leave_type_id,
                leave_type_name=b.leave_type.name,
                year=b.year,
                allocated_days=b.allocated_days,
                used_days=b.used_days,
                remaining_days=b.remaining_days,
                auto_calculated=b.auto_calculated,
                service_months_at_allocation=b.service_months_at_allocation,
            )
            for b in balances
        ]

    @staticmethod
    def preview_entitlement(
        employee: Employee,
        leave_type_name: str,
        year: int,
        *,
        as_of: Optional[date] = None,
    ) -> EntitlementOut:
        """What the yearly allocation would grant this employee."""

        if employee.hire_date is None:
            raise ValidationException(
                {"hire_date": ["Hire date is not recorded for this employee."]}
            )
        year_end = date(year, 12, 31)
        return EntitlementOut(
            leave_type=leave_type_name,
            year=year,
            hire_date=employee.hire_date,
            service_months=service_months(employee.hire_date, year_end),
            probation_completed=is_probation_completed(
                employee.hire_date,
                as_of or year_end,
                employee.probation_end_date,
                probation_months=settings.PROBATION_MONTHS,
            ),
            entitled_days=entitlement(
                employee.hire_date,
                leave_type_name,
                year,
                probation_end_date=employee.probation_end_date,
                probation_months=settings.PROBATION_MONTHS,
                as_of=as_of,
            ),
        )
