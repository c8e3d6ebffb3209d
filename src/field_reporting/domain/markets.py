"""Domain models for market schedules, collections and rollups."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from field_reporting.domain.sessions import day_of_week
from field_reporting.domain.tasks import TaskType


@dataclass(frozen=True)
class MarketScheduleEntry:
    """Declares whether a market runs reporting on a weekday."""

    market_id: UUID
    day_of_week: int
    is_active: bool = True


@dataclass(frozen=True)
class DatedScheduleEntry:
    """Schedules a market on one specific date."""

    market_id: UUID
    schedule_date: date


@dataclass(frozen=True)
class MarketSchedule:
    """Which markets are expected to report on a given date."""

    entries: tuple[MarketScheduleEntry, ...] = ()
    dated: tuple[DatedScheduleEntry, ...] = ()
    off_days: frozenset[int] = frozenset()

    def active_market_ids(self, on_date: date) -> set[UUID]:
        """Return the markets scheduled to run on the given date."""
        weekday = day_of_week(on_date)
        market_ids: set[UUID] = set()
        if weekday not in self.off_days:
            market_ids.update(
                entry.market_id
                for entry in self.entries
                if entry.is_active and entry.day_of_week == weekday
            )
        market_ids.update(
            entry.market_id for entry in self.dated if entry.schedule_date == on_date
        )
        return market_ids


@dataclass(frozen=True)
class CollectionRecord:
    """Rent collected at a market on a date."""

    id: UUID
    market_id: UUID
    market_date: date
    collected_by: UUID
    amount: Decimal
    mode: str
    created_at: datetime | None = None


def empty_task_counts() -> dict[TaskType, int]:
    return {task_type: 0 for task_type in TaskType}


@dataclass(frozen=True)
class MarketActivity:
    """Precomputed per-market daily activity row."""

    market_id: UUID
    session_date: date
    session_count: int
    active_sessions: int
    active_employees: int
    task_counts: dict[TaskType, int] = field(default_factory=empty_task_counts)
    collections_total: Decimal = Decimal(0)
    collections_count: int = 0
    last_punch_in_at: datetime | None = None


@dataclass(frozen=True)
class AggregateSnapshot:
    """Derived per-market, per-date rollup shown on dashboards."""

    market_id: UUID
    session_date: date
    active_sessions: int
    active_employees: int
    task_counts: dict[TaskType, int] = field(default_factory=empty_task_counts)
    collections_total: Decimal = Decimal(0)
    collections_count: int = 0
    last_punch_in_at: datetime | None = None
