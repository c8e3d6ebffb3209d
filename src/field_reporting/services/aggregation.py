"""Per-market, per-date rollups for live dashboards."""

import logging
from collections import Counter, defaultdict
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from field_reporting.domain.errors import ValidationError
from field_reporting.domain.events import (
    COLLECTIONS_TABLE,
    MARKET_SCHEDULE_TABLE,
    MARKETS_TABLE,
    SESSIONS_TABLE,
    TASK_EVENTS_TABLE,
)
from field_reporting.domain.markets import (
    AggregateSnapshot,
    CollectionRecord,
    MarketActivity,
    MarketSchedule,
    empty_task_counts,
)
from field_reporting.domain.sessions import WORKED_STATUSES, Session, SessionStatus
from field_reporting.domain.tasks import TaskType
from field_reporting.services.notifications import ChangeHandler, ChangeNotifier

logger = logging.getLogger(__name__)

# Tables whose changes make a dashboard re-request its aggregates.
AGGREGATE_SOURCE_TABLES = (
    SESSIONS_TABLE,
    TASK_EVENTS_TABLE,
    COLLECTIONS_TABLE,
    MARKETS_TABLE,
    MARKET_SCHEDULE_TABLE,
)


class AggregateViewUnavailable(Exception):  # noqa: N818
    """The precomputed activity view cannot be read."""


class AggregationRepository(Protocol):
    """Read interface for aggregation inputs."""

    def list_market_activity(self, on_date: date) -> list[MarketActivity]:
        """Return precomputed activity rows; raise AggregateViewUnavailable."""

    def list_sessions_for_date(self, on_date: date) -> list[Session]:
        """Return every session on a date, in any status."""

    def list_task_types(
        self, session_ids: Collection[UUID]
    ) -> list[tuple[UUID, TaskType]]:
        """Return one (session_id, task_type) pair per task record."""

    def list_collections_for_date(self, on_date: date) -> list[CollectionRecord]:
        """Return every collection record for a date."""


@dataclass
class AggregationEngine:
    """Builds aggregate snapshots from the fast path or raw records."""

    repository: AggregationRepository
    use_view: bool = True

    def summarize(
        self,
        on_date: date,
        schedule: MarketSchedule,
        market_filter: Collection[UUID] | None = None,
    ) -> list[AggregateSnapshot]:
        """Return one snapshot per candidate market, ordered by market id.

        Candidates are markets with any session on the date plus markets the
        schedule marks active; scheduled markets with no activity are kept
        with zero counts.
        """
        if not isinstance(on_date, date):
            raise ValidationError("date must be a calendar date", field="date")
        activity = self._activity(on_date)
        candidates = {
            market_id for market_id, row in activity.items() if row.session_count > 0
        }
        candidates |= schedule.active_market_ids(on_date)
        if market_filter is not None:
            candidates &= set(market_filter)
        return [
            _snapshot(market_id, on_date, activity.get(market_id))
            for market_id in sorted(candidates, key=str)
        ]

    def _activity(self, on_date: date) -> dict[UUID, MarketActivity]:
        if self.use_view:
            try:
                rows = self.repository.list_market_activity(on_date)
            except AggregateViewUnavailable:
                logger.warning(
                    "Activity view unavailable, recomputing from raw records",
                    extra={"date": on_date.isoformat()},
                )
            else:
                return {row.market_id: row for row in rows}
        sessions = self.repository.list_sessions_for_date(on_date)
        task_rows = (
            self.repository.list_task_types([session.id for session in sessions])
            if sessions
            else []
        )
        collections = self.repository.list_collections_for_date(on_date)
        return compute_market_activity(on_date, sessions, task_rows, collections)


def compute_market_activity(
    on_date: date,
    sessions: Iterable[Session],
    task_rows: Iterable[tuple[UUID, TaskType]],
    collections: Iterable[CollectionRecord],
) -> dict[UUID, MarketActivity]:
    """Roll raw records up into per-market activity for one date."""
    day_sessions = [s for s in sessions if s.session_date == on_date]
    market_of = {session.id: session.market_id for session in day_sessions}

    session_count: Counter[UUID] = Counter()
    active_sessions: Counter[UUID] = Counter()
    workers: dict[UUID, set[UUID]] = defaultdict(set)
    last_punch_in: dict[UUID, datetime] = {}
    for session in day_sessions:
        session_count[session.market_id] += 1
        punched = session.punch_in_at
        if punched is not None and (
            session.market_id not in last_punch_in
            or punched > last_punch_in[session.market_id]
        ):
            last_punch_in[session.market_id] = punched
        if session.status is SessionStatus.ACTIVE:
            active_sessions[session.market_id] += 1
        if session.status in WORKED_STATUSES:
            workers[session.market_id].add(session.owner_id)

    task_counts: dict[UUID, dict[TaskType, int]] = defaultdict(empty_task_counts)
    for session_id, task_type in task_rows:
        market_id = market_of.get(session_id)
        if market_id is not None:
            task_counts[market_id][task_type] += 1

    totals: dict[UUID, Decimal] = defaultdict(Decimal)
    counts: Counter[UUID] = Counter()
    for record in collections:
        if record.market_date != on_date:
            continue
        totals[record.market_id] += record.amount
        counts[record.market_id] += 1

    market_ids = set(session_count) | set(counts)
    return {
        market_id: MarketActivity(
            market_id=market_id,
            session_date=on_date,
            session_count=session_count[market_id],
            active_sessions=active_sessions[market_id],
            active_employees=len(workers[market_id]),
            task_counts=dict(task_counts[market_id]),
            collections_total=totals[market_id],
            collections_count=counts[market_id],
            last_punch_in_at=last_punch_in.get(market_id),
        )
        for market_id in market_ids
    }


def subscribe_dashboard(
    notifier: ChangeNotifier, handler: ChangeHandler
) -> Callable[[], None]:
    """Subscribe a handler to every table that feeds the aggregates."""
    unsubscribers = [
        notifier.subscribe(table, handler) for table in AGGREGATE_SOURCE_TABLES
    ]

    def unsubscribe() -> None:
        for remove in unsubscribers:
            remove()

    return unsubscribe


def _snapshot(
    market_id: UUID, on_date: date, row: MarketActivity | None
) -> AggregateSnapshot:
    if row is None:
        return AggregateSnapshot(
            market_id=market_id,
            session_date=on_date,
            active_sessions=0,
            active_employees=0,
        )
    task_counts = empty_task_counts()
    task_counts.update(row.task_counts)
    return AggregateSnapshot(
        market_id=market_id,
        session_date=on_date,
        active_sessions=row.active_sessions,
        active_employees=row.active_employees,
        task_counts=task_counts,
        collections_total=Decimal(row.collections_total),
        collections_count=row.collections_count,
        last_punch_in_at=row.last_punch_in_at,
    )


def order_by_recent_punch_in(
    snapshots: Iterable[AggregateSnapshot],
) -> list[AggregateSnapshot]:
    """Order snapshots by latest punch-in, most recent first.

    Markets nobody has punched in at follow, ordered by market id.
    """
    return sorted(snapshots, key=_recent_punch_in_key)


def _recent_punch_in_key(snapshot: AggregateSnapshot) -> tuple[int, float, str]:
    punched = snapshot.last_punch_in_at
    if punched is None:
        return (1, 0.0, str(snapshot.market_id))
    return (0, -punched.timestamp(), str(snapshot.market_id))
