"""Leave request validator: one policy object per leave type.

``validate`` either returns the payment tier the request must be stored with
or raises ``LeaveValidationError`` carrying the rejection reason. The caller
builds ``EmployeeLeaveState`` from persisted rows inside the write
transaction, so aggregates (sick days used, previous Hajj) are current.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from hrops.common.constants import (
    COMPASSIONATE_LEAVE,
    HAJJ_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    SICK_LEAVE,
    STUDY_LEAVE,
    PaymentType,
)
from hrops.common.exceptions import LeaveValidationError
from hrops.leave.entitlement import (
    HAJJ_MIN_SERVICE_MONTHS,
    PROBATION_MONTHS,
    is_probation_completed,
    service_months,
)

SICK_CERTIFICATE_THRESHOLD_DAYS = Decimal("3")
SICK_FULL_PAY_DAYS = Decimal("15")
SICK_HALF_PAY_DAYS = Decimal("45")
MATERNITY_FULL_PAY_DAYS = Decimal("45")
MATERNITY_HALF_PAY_DAYS = Decimal("60")


@dataclass(frozen=True)
class LeaveRequestDraft:
    """The fields of a leave request the policies look at."""

    leave_type: str
    total_days: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    medical_certificate_url: Optional[str] = None
    relationship: Optional[str] = None
    payment_type: Optional[PaymentType] = None


@dataclass(frozen=True)
class EmployeeLeaveState:
    """Employee facts as of ``as_of``, excluding the request being validated."""

    hire_date: Optional[date]
    as_of: date
    probation_end_date: Optional[date] = None
    approved_sick_days_this_year: Decimal = Decimal("0")
    has_approved_hajj: bool = False
    probation_months: int = PROBATION_MONTHS

    @property
    def probation_completed(self) -> bool:
        if self.hire_date is None:
            # No hire date: only an explicit probation end can say otherwise
            return (
                self.probation_end_date is None
                or self.probation_end_date <= self.as_of
            )
        return is_probation_completed(
            self.hire_date,
            self.as_of,
            self.probation_end_date,
            probation_months=self.probation_months,
        )

    @property
    def service_months(self) -> int:
        if self.hire_date is None:
            return 0
        return service_months(self.hire_date, self.as_of)


# ── Policies ────────────────────────────────────────────────────────

class LeavePolicy:
    """Default policy: no constraint, the requested tier or full pay."""

    leave_type: Optional[str] = None

    def validate(
        self,
        request: LeaveRequestDraft,
        state: EmployeeLeaveState,
    ) -> PaymentType:
        return request.payment_type or PaymentType.full_pay

    def reject(self, request: LeaveRequestDraft, reason: str) -> LeaveValidationError:
        return LeaveValidationError(request.leave_type, reason)


class SickLeavePolicy(LeavePolicy):
    leave_type = SICK_LEAVE

    def validate(self, request, state):
        if not state.probation_completed:
            raise self.reject(
                request,
                "Sick leave is only available after completing probation period",
            )
        if (
            request.total_days > SICK_CERTIFICATE_THRESHOLD_DAYS
            and not request.medical_certificate_url
        ):
            raise self.reject(
                request,
                "Medical certificate is required for sick leave exceeding 3 days",
            )

        cumulative = state.approved_sick_days_this_year + request.total_days
        if cumulative <= SICK_FULL_PAY_DAYS:
            return PaymentType.full_pay
        if cumulative <= SICK_HALF_PAY_DAYS:
            return PaymentType.half_pay
        return PaymentType.unpaid


class HajjLeavePolicy(LeavePolicy):
    leave_type = HAJJ_LEAVE

    def validate(self, request, state):
        if state.service_months < HAJJ_MIN_SERVICE_MONTHS:
            raise self.reject(
                request, "Hajj leave requires minimum 2 years of service"
            )
        if state.has_approved_hajj:
            raise self.reject(
                request, "Hajj leave can only be taken once per employment"
            )
        return PaymentType.unpaid


class MaternityLeavePolicy(LeavePolicy):
    leave_type = MATERNITY_LEAVE

    def validate(self, request, state):
        if request.total_days <= MATERNITY_FULL_PAY_DAYS:
            return PaymentType.full_pay
        if request.total_days <= MATERNITY_HALF_PAY_DAYS:
            return PaymentType.half_pay
        return PaymentType.unpaid


class ParentalLeavePolicy(LeavePolicy):
    leave_type = PARENTAL_LEAVE

    def validate(self, request, state):
        return PaymentType.full_pay


class StudyLeavePolicy(LeavePolicy):
    leave_type = STUDY_LEAVE


class CompassionateLeavePolicy(LeavePolicy):
    leave_type = COMPASSIONATE_LEAVE

    def validate(self, request, state):
        if not (request.relationship or "").strip():
            raise self.reject(
                request, "Relationship must be specified for compassionate leave"
            )
        return PaymentType.full_pay


# ── Registry ────────────────────────────────────────────────────────

DEFAULT_POLICY = LeavePolicy()

POLICIES: dict[str, LeavePolicy] = {
    policy.leave_type: policy
    for policy in (
        SickLeavePolicy(),
        HajjLeavePolicy(),
        MaternityLeavePolicy(),
        ParentalLeavePolicy(),
        StudyLeavePolicy(),
        CompassionateLeavePolicy(),
    )
}


def get_policy(leave_type: str) -> LeavePolicy:
    return POLICIES.get(leave_type, DEFAULT_POLICY)


def validate(request: LeaveRequestDraft, state: EmployeeLeaveState) -> PaymentType:
    """Run the leave-type policy; return the payment tier or raise.

    Raises:
        LeaveValidationError: the request breaks a rule of its leave type.
    """
    return get_policy(request.leave_type).validate(request, state)
