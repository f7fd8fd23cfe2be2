"""Breach detection over a classified date range (usually one month).

Only the literal ``absent`` kind counts; ``pending-exception`` days break a
consecutive run like any other non-absent day.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Mapping

from hrops.attendance.classifier import DayStatus
from hrops.common.constants import BreachType, DayStatusKind

CONSECUTIVE_ABSENCE_THRESHOLD = 3
MONTHLY_ABSENCE_THRESHOLD = 5


@dataclass(frozen=True)
class Breach:
    type: BreachType
    count: int
    dates: tuple[date, ...]
    message: str


def _short(d: date) -> str:
    return d.strftime("%b %d")


def _consecutive_breach(run: list[date]) -> Breach:
    return Breach(
        type=BreachType.consecutive,
        count=len(run),
        dates=tuple(run),
        message=(
            f"{len(run)} consecutive absences detected "
            f"({_short(run[0])} - {_short(run[-1])})"
        ),
    )


def detect_breaches(
    days: Mapping[date, DayStatus],
    *,
    consecutive_threshold: int = CONSECUTIVE_ABSENCE_THRESHOLD,
    monthly_threshold: int = MONTHLY_ABSENCE_THRESHOLD,
) -> list[Breach]:
    """Return consecutive-absence breaches (chronological), then the monthly one.

    A run of ``consecutive_threshold`` or more absent days is one breach; more
    than ``monthly_threshold`` absent days in the range is one further breach.
    """

    breaches: list[Breach] = []
    ordered = sorted(days)

    run: list[date] = []
    for d in ordered:
        if days[d].kind == DayStatusKind.absent:
            run.append(d)
            continue
        if len(run) >= consecutive_threshold:
            breaches.append(_consecutive_breach(run))
        run = []
    if len(run) >= consecutive_threshold:
        breaches.append(_consecutive_breach(run))

    absences = [d for d in ordered if days[d].kind == DayStatusKind.absent]
    if len(absences) > monthly_threshold:
        breaches.append(
            Breach(
                type=BreachType.monthly,
                count=len(absences),
                dates=tuple(absences),
                message=(
                    f"Total of {len(absences)} absences this month "
                    f"(exceeds {monthly_threshold}-day threshold)"
                ),
            )
        )

    return breaches


def summarize(days: Mapping[date, DayStatus]) -> dict[str, int]:
    """Count days per status kind; every kind is present, zero when unused."""
    counts = Counter(status.kind for status in days.values())
    return {kind.value: counts.get(kind, 0) for kind in DayStatusKind}
