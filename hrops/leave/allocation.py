"""Yearly leave balance allocation.

For every active employee and every auto-allocated leave type, compute the
entitlement and upsert ``employee_leave_balances``. Re-running for the same
year overwrites ``allocated_days``; ``used_days`` is never touched.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.common.constants import AUTO_ALLOCATED_LEAVE_TYPES, EmploymentStatus
from hrops.config import settings
from hrops.core_hr.models import Employee
from hrops.leave.entitlement import entitlement, service_months, year_end
from hrops.leave.models import LeaveBalance, LeaveType

logger = logging.getLogger(__name__)


@dataclass
class AllocationFailure:
    employee_id: uuid.UUID
    employee_code: str
    reason: str


@dataclass
class AllocationSummary:
    year: int
    total_allocations: int = 0
    employees_affected: int = 0
    allocations_by_type: dict[str, int] = field(default_factory=dict)
    failures: list[AllocationFailure] = field(default_factory=list)


def _compute_allocations(
    employee: Employee,
    leave_types: list[LeaveType],
    year: int,
    as_of: Optional[date] = None,
) -> tuple[int, dict[uuid.UUID, int]]:
    """Service months and per-type days for one employee; raises ValueError."""
    if employee.hire_date is None:
        raise ValueError("hire date is not recorded")

    months = service_months(employee.hire_date, year_end(year))
    days = {
        lt.id: entitlement(
            employee.hire_date,
            lt.name,
            year,
            probation_end_date=employee.probation_end_date,
            probation_months=settings.PROBATION_MONTHS,
            as_of=as_of,
        )
        for lt in leave_types
    }
    return months, days


async def allocate_leave_balances(
    db: AsyncSession,
    year: int,
    *,
    as_of: Optional[date] = None,
) -> AllocationSummary:
    """Allocate ``year`` balances for all active employees.

    Probation is checked as of ``as_of`` (the run date when triggered over
    HTTP) or, when omitted, as of 31 December of ``year``.

    One employee's bad data is recorded in ``summary.failures`` and the run
    carries on with the next employee.
    """

    summary = AllocationSummary(year=year)
    now = datetime.now(timezone.utc)

    lt_result = await db.execute(
        select(LeaveType)
        .where(
            LeaveType.is_active.is_(True),
            LeaveType.name.in_(AUTO_ALLOCATED_LEAVE_TYPES),
        )
        .order_by(LeaveType.name)
    )
    leave_types = list(lt_result.scalars().all())

    emp_result = await db.execute(
        select(Employee)
        .where(Employee.status == EmploymentStatus.active)
        .order_by(Employee.employee_code)
    )
    employees = list(emp_result.scalars().all())

    logger.info(
        "Allocating %d leave balances: %d employees x %d leave types",
        year, len(employees), len(leave_types),
    )

    bal_result = await db.execute(
        select(LeaveBalance).where(LeaveBalance.year == year)
    )
    existing = {
        (bal.employee_id, bal.leave_type_id): bal
        for bal in bal_result.scalars().all()
    }

    by_type: Counter[str] = Counter()
    for employee in employees:
        try:
            months, days = _compute_allocations(
                employee, leave_types, year, as_of,
            )
        except ValueError as exc:
            logger.warning(
                "Skipping employee %s for %d: %s",
                employee.employee_code, year, exc,
            )
            summary.failures.append(
                AllocationFailure(
                    employee_id=employee.id,
                    employee_code=employee.employee_code,
                    reason=str(exc),
                )
            )
            continue

        for lt in leave_types:
            balance = existing.get((employee.id, lt.id))
            if balance is None:
                balance = LeaveBalance(
                    employee_id=employee.id,
                    leave_type_id=lt.id,
                    year=year,
                    used_days=Decimal("0"),
                )
                db.add(balance)
                existing[(employee.id, lt.id)] = balance
            balance.allocated_days = Decimal(days[lt.id])
            balance.auto_calculated = True
            balance.service_months_at_allocation = months
            balance.updated_at = now
            by_type[lt.name] += 1

        summary.employees_affected += 1

    await db.flush()

    summary.total_allocations = sum(by_type.values())
    summary.allocations_by_type = dict(by_type)
    logger.info(
        "Allocation for %d done: %d balances, %d employees, %d failures",
        year,
        summary.total_allocations,
        summary.employees_affected,
        len(summary.failures),
    )
    return summary
