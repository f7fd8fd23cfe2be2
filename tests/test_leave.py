"""Leave module tests: apply, approve/reject, balances, entitlement, allocation."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from hrops.attendance.service import local_today
from hrops.common.audit import get_audit_history
from hrops.common.constants import (
    ANNUAL_LEAVE,
    COMPASSIONATE_LEAVE,
    HAJJ_LEAVE,
    SICK_LEAVE,
    LeaveStatus,
)
from hrops.common.exceptions import ValidationException
from hrops.leave.models import LeaveRequest
from hrops.leave.service import LeaveService
from tests.conftest import auth_headers_for, create_employee

BASE = "/api/v1/leave"


def _apply_body(leave_type, start, end, **extra) -> dict:
    body = {
        "leave_type_id": str(leave_type.id),
        "start_date": start,
        "end_date": end,
        "reason": "Personal",
    }
    body.update(extra)
    return body


async def _apply(client, headers, leave_type, start, end, **extra):
    return await client.post(
        f"{BASE}/apply", json=_apply_body(leave_type, start, end, **extra), headers=headers,
    )


# ═════════════════════════════════════════════════════════════════════
# Apply
# ═════════════════════════════════════════════════════════════════════


class TestApplyLeave:

    async def test_short_sick_leave(self, client, leave_types, auth_headers):
        resp = await _apply(
            client, auth_headers, leave_types[SICK_LEAVE], "2024-03-04", "2024-03-05",
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["payment_type"] == "full_pay"
        assert data["leave_type_name"] == SICK_LEAVE
        assert float(data["total_days"]) == 2.0

    async def test_sick_leave_needs_certificate(self, client, leave_types, auth_headers):
        resp = await _apply(
            client, auth_headers, leave_types[SICK_LEAVE], "2024-03-04", "2024-03-07",
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["detail"] == (
            "Medical certificate is required for sick leave exceeding 3 days"
        )
        assert body["errors"]["leave_type"] == [body["detail"]]

    async def test_sick_leave_with_certificate(self, client, leave_types, auth_headers):
        resp = await _apply(
            client, auth_headers, leave_types[SICK_LEAVE], "2024-03-04", "2024-03-07",
            medical_certificate_url="https://files.hrops.test/cert.pdf",
        )
        assert resp.status_code == 201

    async def test_hajj_for_new_hire(self, client, db, leave_types):
        emp = await create_employee(db, hire_date=local_today() - timedelta(days=200))
        await db.commit()
        resp = await _apply(
            client, auth_headers_for(emp), leave_types[HAJJ_LEAVE],
            "2024-06-01", "2024-06-20",
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Hajj leave requires minimum 2 years of service"

    async def test_hajj_is_stored_unpaid(self, client, leave_types, auth_headers):
        resp = await _apply(
            client, auth_headers, leave_types[HAJJ_LEAVE], "2024-06-01", "2024-06-20",
            payment_type="full_pay",
        )
        assert resp.status_code == 201
        assert resp.json()["payment_type"] == "unpaid"

    async def test_compassionate_needs_relationship(
        self, client, leave_types, auth_headers,
    ):
        resp = await _apply(
            client, auth_headers, leave_types[COMPASSIONATE_LEAVE],
            "2024-03-04", "2024-03-06",
        )
        assert resp.status_code == 422

        resp = await _apply(
            client, auth_headers, leave_types[COMPASSIONATE_LEAVE],
            "2024-03-04", "2024-03-06", relationship="Grandmother",
        )
        assert resp.status_code == 201
        assert resp.json()["relationship"] == "Grandmother"

    async def test_overlap_rejected(self, client, leave_types, auth_headers):
        await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-08",
        )
        resp = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-08", "2024-03-10",
        )
        assert resp.status_code == 422
        assert "dates" in resp.json()["errors"]

    async def test_end_before_start(self, client, leave_types, auth_headers):
        resp = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-08", "2024-03-04",
        )
        assert resp.status_code == 422

    async def test_unknown_leave_type(self, client, leave_types, auth_headers, admin_employee):
        resp = await client.post(
            f"{BASE}/apply",
            json={
                "leave_type_id": str(admin_employee.id),
                "start_date": "2024-03-04",
                "end_date": "2024-03-04",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# Approve / reject
# ═════════════════════════════════════════════════════════════════════


class TestReviewLeave:

    async def test_approve_books_used_days(
        self, client, leave_types, auth_headers, admin_headers,
    ):
        created = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        resp = await client.put(
            f"{BASE}/{created.json()['id']}/approve",
            json={"remarks": "Enjoy"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert resp.json()["reviewer_remarks"] == "Enjoy"

        balances = await client.get(
            f"{BASE}/balances", params={"year": 2024}, headers=auth_headers,
        )
        annual = next(
            b for b in balances.json() if b["leave_type_name"] == ANNUAL_LEAVE
        )
        assert float(annual["used_days"]) == 3.0
        assert float(annual["remaining_days"]) == -3.0

    async def test_review_is_audited(
        self, client, db, leave_types, auth_headers, admin_headers, admin_employee,
    ):
        created = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-04-01", "2024-04-02",
        )
        request_id = uuid.UUID(created.json()["id"])
        await client.put(f"{BASE}/{request_id}/approve", json={}, headers=admin_headers)

        history = await get_audit_history(db, "leave_request", request_id)
        assert [e.action for e in history] == ["create", "approve"]
        assert history[0].new_values["start_date"] == "2024-04-01"
        assert history[1].actor_id == admin_employee.id
        assert history[1].old_values["status"] == "pending"
        assert history[1].new_values["status"] == "approved"

    async def test_second_approval_does_not_book_twice(
        self, client, db, leave_types, auth_headers, admin_headers, admin_employee,
    ):
        created = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-05-06", "2024-05-08",
        )
        request_id = uuid.UUID(created.json()["id"])

        # The session holds a pending copy while another reviewer approves it
        stale = await db.get(LeaveRequest, request_id)
        assert stale.status == LeaveStatus.pending
        first = await client.put(
            f"{BASE}/{request_id}/approve", json={}, headers=admin_headers,
        )
        assert first.status_code == 200

        with pytest.raises(ValidationException):
            await LeaveService.approve_leave(db, request_id, admin_employee.id)
        with pytest.raises(ValidationException):
            await LeaveService.reject_leave(db, request_id, admin_employee.id, "Late")

        balances = await client.get(
            f"{BASE}/balances", params={"year": 2024}, headers=auth_headers,
        )
        annual = next(
            b for b in balances.json() if b["leave_type_name"] == ANNUAL_LEAVE
        )
        assert float(annual["used_days"]) == 3.0

    async def test_second_hajj_fails_on_approval(
        self, client, leave_types, auth_headers, admin_headers,
    ):
        first = await _apply(
            client, auth_headers, leave_types[HAJJ_LEAVE], "2024-06-01", "2024-06-10",
        )
        second = await _apply(
            client, auth_headers, leave_types[HAJJ_LEAVE], "2025-06-01", "2025-06-10",
        )
        assert second.status_code == 201

        ok = await client.put(
            f"{BASE}/{first.json()['id']}/approve", json={}, headers=admin_headers,
        )
        assert ok.status_code == 200

        resp = await client.put(
            f"{BASE}/{second.json()['id']}/approve", json={}, headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Hajj leave can only be taken once per employment"

    async def test_approval_recomputes_sick_tier(
        self, client, leave_types, auth_headers, admin_headers,
    ):
        cert = {"medical_certificate_url": "https://files.hrops.test/cert.pdf"}
        first = await _apply(
            client, auth_headers, leave_types[SICK_LEAVE],
            "2024-02-01", "2024-02-14", **cert,
        )
        second = await _apply(
            client, auth_headers, leave_types[SICK_LEAVE],
            "2024-03-01", "2024-03-02",
        )
        assert second.json()["payment_type"] == "full_pay"

        await client.put(f"{BASE}/{first.json()['id']}/approve", json={}, headers=admin_headers)
        resp = await client.put(
            f"{BASE}/{second.json()['id']}/approve", json={}, headers=admin_headers,
        )
        # 14 approved + 2 requested crosses the 15-day full-pay tier
        assert resp.json()["payment_type"] == "half_pay"

    async def test_reject(self, client, leave_types, auth_headers, admin_headers):
        created = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        resp = await client.put(
            f"{BASE}/{created.json()['id']}/reject",
            json={"reason": "Peak period"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"

        # A rejected request no longer blocks the dates
        again = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        assert again.status_code == 201

    async def test_employee_cannot_approve(self, client, leave_types, auth_headers):
        created = await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        resp = await client.put(
            f"{BASE}/{created.json()['id']}/approve", json={}, headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_admin_cannot_approve_own(self, client, leave_types, admin_headers):
        created = await _apply(
            client, admin_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        resp = await client.put(
            f"{BASE}/{created.json()['id']}/approve", json={}, headers=admin_headers,
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════


class TestLeaveReads:

    async def test_my_leaves(self, client, leave_types, auth_headers):
        await _apply(
            client, auth_headers, leave_types[ANNUAL_LEAVE], "2024-03-04", "2024-03-06",
        )
        await _apply(
            client, auth_headers, leave_types[SICK_LEAVE], "2024-04-01", "2024-04-01",
        )
        resp = await client.get(f"{BASE}/my-leaves", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["meta"]["total"] == 2
        # newest start date first
        assert data["data"][0]["start_date"] == "2024-04-01"

    async def test_entitlement_preview(self, client, auth_headers):
        resp = await client.get(
            f"{BASE}/entitlement",
            params={"leave_type": ANNUAL_LEAVE, "year": 2024},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["entitled_days"] == 30
        assert data["service_months"] == 59
        assert data["probation_completed"] is True


# ═════════════════════════════════════════════════════════════════════
# Allocation
# ═════════════════════════════════════════════════════════════════════


class TestAllocateEndpoint:

    async def test_admin_runs_allocation(
        self, client, leave_types, test_employee, admin_headers, auth_headers,
    ):
        resp = await client.post(
            f"{BASE}/allocate", json={"year": 2024}, headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["year"] == 2024
        assert data["employees_affected"] == 2
        assert data["total_allocations"] == 12
        assert data["failures"] == []

        balances = await client.get(
            f"{BASE}/balances", params={"year": 2024}, headers=auth_headers,
        )
        assert len(balances.json()) == 6

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.post(
            f"{BASE}/allocate", json={"year": 2024}, headers=auth_headers,
        )
        assert resp.status_code == 403
