"""Entitlement calculator: service months, probation, per-type rules."""

from __future__ import annotations

from datetime import date

import pytest

from hrops.common.constants import (
    ANNUAL_LEAVE,
    COMPASSIONATE_LEAVE,
    HAJJ_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    SICK_LEAVE,
    STUDY_LEAVE,
)
from hrops.leave.entitlement import (
    entitlement,
    is_probation_completed,
    probation_end,
    service_months,
)


class TestServiceMonths:

    def test_whole_months_floor(self):
        assert service_months(date(2024, 7, 2), date(2024, 12, 31)) == 5
        assert service_months(date(2024, 6, 30), date(2024, 12, 31)) == 6

    def test_years_count_as_twelve(self):
        assert service_months(date(2020, 1, 15), date(2024, 12, 31)) == 59

    def test_future_hire_is_zero(self):
        assert service_months(date(2025, 3, 1), date(2024, 12, 31)) == 0


class TestProbation:

    def test_default_period_is_six_months(self):
        assert probation_end(date(2024, 1, 10)) == date(2024, 7, 10)

    def test_explicit_end_date_wins(self):
        assert probation_end(date(2024, 1, 10), date(2024, 3, 1)) == date(2024, 3, 1)

    def test_completed_on_the_end_date(self):
        assert is_probation_completed(date(2024, 1, 10), date(2024, 7, 10))
        assert not is_probation_completed(date(2024, 1, 10), date(2024, 7, 9))


# ═════════════════════════════════════════════════════════════════════
# Per-type rules
# ═════════════════════════════════════════════════════════════════════


class TestAnnualLeave:

    @pytest.mark.parametrize(
        "hire, expected",
        [
            (date(2024, 7, 2), 0),     # 5 months at year end
            (date(2024, 6, 30), 2),    # 6 months
            (date(2024, 1, 31), 12),   # 11 months
            (date(2023, 12, 31), 30),  # 12 months
            (date(2015, 5, 1), 30),
        ],
    )
    def test_service_scale(self, hire, expected):
        assert entitlement(hire, ANNUAL_LEAVE, 2024) == expected

    def test_hired_after_the_year(self):
        assert entitlement(date(2025, 2, 1), ANNUAL_LEAVE, 2024) == 0


class TestSickLeave:

    def test_probation_complete_by_year_end(self):
        assert entitlement(date(2024, 6, 30), SICK_LEAVE, 2024) == 90

    def test_probation_still_running_at_year_end(self):
        assert entitlement(date(2024, 7, 2), SICK_LEAVE, 2024) == 0

    def test_probation_reference_date(self):
        # Probation ends 2024-09-01
        assert entitlement(date(2024, 3, 1), SICK_LEAVE, 2024) == 90
        assert entitlement(
            date(2024, 3, 1), SICK_LEAVE, 2024, as_of=date(2024, 6, 1),
        ) == 0
        assert entitlement(
            date(2024, 7, 2), SICK_LEAVE, 2024, as_of=date(2025, 1, 2),
        ) == 90

    def test_explicit_probation_end_date(self):
        assert entitlement(
            date(2024, 1, 1), SICK_LEAVE, 2024, probation_end_date=date(2025, 1, 15),
        ) == 0
        assert entitlement(
            date(2024, 9, 1), SICK_LEAVE, 2024, probation_end_date=date(2024, 11, 1),
        ) == 90


class TestHajjLeave:

    def test_just_under_two_years(self):
        assert entitlement(date(2023, 1, 1), HAJJ_LEAVE, 2024) == 0

    def test_exactly_two_years(self):
        assert entitlement(date(2022, 12, 31), HAJJ_LEAVE, 2024) == 30


class TestFlatTypes:

    @pytest.mark.parametrize(
        "name, expected",
        [
            (MATERNITY_LEAVE, 60),
            (PARENTAL_LEAVE, 5),
            (STUDY_LEAVE, 10),
            (COMPASSIONATE_LEAVE, 0),
        ],
    )
    def test_flat_allocation_regardless_of_service(self, name, expected):
        assert entitlement(date(2024, 11, 1), name, 2024) == expected

    def test_unknown_type_is_zero(self):
        assert entitlement(date(2010, 1, 1), "Sabbatical", 2024) == 0
