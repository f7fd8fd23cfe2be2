"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrops.common.constants import LeaveStatus, PaymentType


# ═════════════════════════════════════════════════════════════════════
# Leave Balance / Entitlement
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type and year."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: Optional[str] = None
    year: int
    allocated_days: Decimal
    used_days: Decimal
    remaining_days: Decimal
    auto_calculated: bool = False
    service_months_at_allocation: int = 0


class EntitlementOut(BaseModel):
    """Entitlement preview for the current user."""

    leave_type: str
    year: int
    hire_date: date
    service_months: int
    probation_completed: bool
    entitled_days: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    medical_certificate_url: Optional[str] = None
    relationship: Optional[str] = Field(
        None, max_length=100, description="Relationship to the deceased (compassionate leave)",
    )
    payment_type: Optional[PaymentType] = Field(
        None, description="Honoured only for leave types without a fixed tier",
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        if (self.end_date - self.start_date).days > 365:
            raise ValueError("Leave request cannot span more than 365 days.")
        return self


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: Optional[str] = None
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    payment_type: PaymentType
    medical_certificate_url: Optional[str] = None
    relationship: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LeaveApproveRequest(BaseModel):
    """Payload for approving a leave request."""

    remarks: Optional[str] = Field(None, max_length=500)


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    reason: str = Field(..., min_length=5, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Allocation
# ═════════════════════════════════════════════════════════════════════


class AllocationRequest(BaseModel):
    year: int = Field(..., ge=2000, le=2100)


class AllocationFailureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: uuid.UUID
    employee_code: str
    reason: str


class AllocationSummaryOut(BaseModel):
    """Result of one yearly allocation run."""

    model_config = ConfigDict(from_attributes=True)

    year: int
    total_allocations: int
    employees_affected: int
    allocations_by_type: dict[str, int]
    failures: list[AllocationFailureOut]
