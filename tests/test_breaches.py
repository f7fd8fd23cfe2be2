"""Absence breach detection and per-status summaries."""

from __future__ import annotations

from datetime import date, timedelta

from hrops.attendance.breaches import Breach, detect_breaches, summarize
from hrops.attendance.classifier import DayStatus
from hrops.common.constants import BreachType, DayStatusKind

A = DayStatusKind.absent
K = DayStatusKind.ok
P = DayStatusKind.pending_exception
N = DayStatusKind.non_working


def _month(kinds, start=date(2024, 3, 1)) -> dict[date, DayStatus]:
    """Build a classified range from a list of kinds starting at ``start``."""
    return {
        start + timedelta(days=i): DayStatus(start + timedelta(days=i), kind)
        for i, kind in enumerate(kinds)
    }


class TestConsecutiveBreach:

    def test_three_consecutive_absences(self):
        days = _month([K, A, A, A, K])
        breaches = detect_breaches(days)
        assert len(breaches) == 1
        breach = breaches[0]
        assert breach.type == BreachType.consecutive
        assert breach.count == 3
        assert breach.dates == (date(2024, 3, 2), date(2024, 3, 3), date(2024, 3, 4))
        assert breach.message == "3 consecutive absences detected (Mar 02 - Mar 04)"

    def test_two_consecutive_is_not_a_breach(self):
        assert detect_breaches(_month([A, A, K, A, A])) == []

    def test_run_at_end_of_range(self):
        breaches = detect_breaches(_month([K, K, A, A, A, A]))
        assert [b.count for b in breaches] == [4]

    def test_pending_exception_breaks_a_run(self):
        assert detect_breaches(_month([A, A, P, A, A])) == []

    def test_non_working_day_breaks_a_run(self):
        assert detect_breaches(_month([A, A, N, A])) == []

    def test_runs_reported_in_order(self):
        days = _month([A, A, A, K, A, A, A])
        breaches = detect_breaches(days, monthly_threshold=10)
        assert [b.dates[0] for b in breaches] == [date(2024, 3, 1), date(2024, 3, 5)]

    def test_custom_threshold(self):
        breaches = detect_breaches(_month([A, A, K]), consecutive_threshold=2)
        assert len(breaches) == 1


class TestMonthlyBreach:

    def test_six_scattered_absences(self):
        days = _month([A, K, A, K, A, K, A, K, A, K, A])
        breaches = detect_breaches(days)
        assert len(breaches) == 1
        breach = breaches[0]
        assert breach.type == BreachType.monthly
        assert breach.count == 6
        assert breach.message == (
            "Total of 6 absences this month (exceeds 5-day threshold)"
        )

    def test_exactly_five_is_not_a_breach(self):
        assert detect_breaches(_month([A, K, A, K, A, K, A, K, A])) == []

    def test_monthly_comes_after_consecutive(self):
        breaches = detect_breaches(_month([A, A, A, K, A, A, A]))
        assert [b.type for b in breaches] == [
            BreachType.consecutive,
            BreachType.consecutive,
            BreachType.monthly,
        ]

    def test_breaches_are_frozen_values(self):
        breach = detect_breaches(_month([A, A, A]))[0]
        assert breach == Breach(
            type=BreachType.consecutive,
            count=3,
            dates=(date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)),
            message="3 consecutive absences detected (Mar 01 - Mar 03)",
        )


class TestSummarize:

    def test_every_kind_is_present(self):
        summary = summarize(_month([A, A, K, P, N]))
        assert set(summary) == {kind.value for kind in DayStatusKind}
        assert summary["absent"] == 2
        assert summary["ok"] == 1
        assert summary["pending-exception"] == 1
        assert summary["non-working"] == 1
        assert summary["leave"] == 0

    def test_totals_match_day_count(self):
        days = _month([A, K, P, N, K, K])
        assert sum(summarize(days).values()) == len(days)
