"""Schedule resolver: loads an employee's active work schedule.

The classifier never touches the database; it receives a frozen ``Schedule``
built here from the single active ``work_schedules`` row.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import time
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrops.attendance.models import WorkSchedule
from hrops.common.constants import WEEKDAY_NAMES
from hrops.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_WEEKDAY_LOOKUP = {name.lower(): name for name in WEEKDAY_NAMES}


@dataclass(frozen=True)
class Schedule:
    """Immutable view of a work schedule used by the day classifier."""

    start_time: time
    end_time: time
    minimum_daily_hours: Decimal
    working_days: frozenset[str]

    def is_working_day(self, weekday_name: str) -> bool:
        return weekday_name in self.working_days


def normalize_working_days(days: Optional[Iterable[str]]) -> frozenset[str]:
    """Canonicalise weekday names ("monday " → "Monday").

    Raises ConfigurationError for an empty set or an unknown day name; an
    empty set never means "every day is a working day".
    """
    names = [d.strip() for d in (days or []) if d and d.strip()]
    if not names:
        raise ConfigurationError(
            "Work schedule has no working days configured.",
            errors={"working_days": ["At least one working day is required."]},
        )

    normalized = set()
    for name in names:
        canonical = _WEEKDAY_LOOKUP.get(name.lower())
        if canonical is None:
            raise ConfigurationError(
                f"Unknown weekday name '{name}' in work schedule.",
                errors={"working_days": [f"'{name}' is not a weekday name."]},
            )
        normalized.add(canonical)
    return frozenset(normalized)


def to_schedule(row: WorkSchedule) -> Schedule:
    """Build a classifier ``Schedule`` from an ORM row."""
    return Schedule(
        start_time=row.start_time,
        end_time=row.end_time,
        minimum_daily_hours=Decimal(str(row.minimum_daily_hours)),
        working_days=normalize_working_days(row.working_days),
    )


class ScheduleResolver:
    """Async lookup of the active schedule for an employee."""

    @staticmethod
    async def get_active_row(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[WorkSchedule]:
        result = await db.execute(
            select(WorkSchedule)
            .where(
                WorkSchedule.employee_id == employee_id,
                WorkSchedule.is_active.is_(True),
            )
            .order_by(WorkSchedule.updated_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def get_active_schedule(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Schedule:
        """Return the employee's active schedule or raise ConfigurationError."""

        row = await ScheduleResolver.get_active_row(db, employee_id)
        if row is None:
            logger.warning("No active work schedule for employee %s", employee_id)
            raise ConfigurationError(
                f"Employee '{employee_id}' has no active work schedule.",
            )
        return to_schedule(row)
