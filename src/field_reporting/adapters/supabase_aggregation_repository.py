"""Supabase reads for live market aggregation."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

import httpx
from supabase import Client, PostgrestAPIError

from field_reporting.adapters.supabase_collection_repository import parse_collection
from field_reporting.adapters.supabase_errors import (
    parse_date,
    parse_datetime,
    storage_errors,
)
from field_reporting.adapters.supabase_session_repository import (
    SESSION_COLUMNS,
    parse_session,
)
from field_reporting.domain.markets import (
    CollectionRecord,
    MarketActivity,
    empty_task_counts,
)
from field_reporting.domain.sessions import Session
from field_reporting.domain.tasks import TaskType
from field_reporting.services.aggregation import (
    AggregateViewUnavailable,
    AggregationRepository,
)

_TASK_TYPE_VALUES = {task_type.value for task_type in TaskType}


@dataclass
class SupabaseAggregationRepository(AggregationRepository):
    """Supabase implementation for aggregation inputs."""

    client: Client
    view_name: str = "market_daily_activity"

    def list_market_activity(self, on_date: date) -> list[MarketActivity]:
        """Return rows of the precomputed activity view for a date."""
        try:
            response = (
                self.client.table(self.view_name)
                .select("*")
                .eq("session_date", on_date.isoformat())
                .execute()
            )
        except PostgrestAPIError as exc:
            raise AggregateViewUnavailable(exc.message) from exc
        except httpx.HTTPError as exc:
            raise AggregateViewUnavailable(str(exc)) from exc
        if response.data is None:
            raise AggregateViewUnavailable(f"{self.view_name} returned no data")
        return [_parse_activity(row) for row in response.data]

    def list_sessions_for_date(self, on_date: date) -> list[Session]:
        """Return all sessions on a date."""
        with storage_errors("list sessions"):
            response = (
                self.client.table("sessions")
                .select(SESSION_COLUMNS)
                .eq("session_date", on_date.isoformat())
                .execute()
            )
        return [parse_session(row) for row in response.data or []]

    def list_task_types(
        self, session_ids: Collection[UUID]
    ) -> list[tuple[UUID, TaskType]]:
        """Return (session_id, task_type) for every task in the sessions."""
        if not session_ids:
            return []
        with storage_errors("list tasks"):
            response = (
                self.client.table("task_events")
                .select("session_id, task_type")
                .in_("session_id", [str(session_id) for session_id in session_ids])
                .execute()
            )
        return [
            (UUID(str(row["session_id"])), TaskType(row["task_type"]))
            for row in response.data or []
            if row.get("task_type") in _TASK_TYPE_VALUES
        ]

    def list_collections_for_date(self, on_date: date) -> list[CollectionRecord]:
        """Return all collections on a date."""
        with storage_errors("list collections"):
            response = (
                self.client.table("collections")
                .select("id, market_id, market_date, collected_by, amount, mode")
                .eq("market_date", on_date.isoformat())
                .execute()
            )
        return [parse_collection(row) for row in response.data or []]


def _parse_activity(row: dict[str, object]) -> MarketActivity:
    task_counts = empty_task_counts()
    raw_counts = row.get("task_counts")
    if isinstance(raw_counts, dict):
        for key, value in raw_counts.items():
            if key in _TASK_TYPE_VALUES:
                task_counts[TaskType(key)] = int(value or 0)
    return MarketActivity(
        market_id=UUID(str(row["market_id"])),
        session_date=parse_date(row["session_date"]),
        session_count=int(row.get("session_count") or 0),
        active_sessions=int(row.get("active_sessions") or 0),
        active_employees=int(row.get("active_employees") or 0),
        task_counts=task_counts,
        collections_total=Decimal(str(row.get("collections_total") or 0)),
        collections_count=int(row.get("collections_count") or 0),
        last_punch_in_at=parse_datetime(row.get("last_punch_in_at")),
    )
