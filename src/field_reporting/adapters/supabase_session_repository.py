"""Supabase-backed session repository."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID

from supabase import Client, PostgrestAPIError

from field_reporting.adapters.supabase_errors import (
    is_unique_violation,
    parse_date,
    parse_datetime,
    storage_errors,
)
from field_reporting.domain.errors import DuplicateSessionError, StorageError
from field_reporting.domain.sessions import (
    OPEN_STATUSES,
    Session,
    SessionStatus,
    day_of_week,
)
from field_reporting.services.sessions import SessionRepository

SESSION_COLUMNS = (
    "id, user_id, market_id, session_date, day_of_week, status, "
    "punch_in_time, punch_out_time, finalized_at, created_at"
)

# Session field name -> sessions table column.
_FIELD_COLUMNS = {
    "status": "status",
    "punch_in_at": "punch_in_time",
    "punch_out_at": "punch_out_time",
    "finalized_at": "finalized_at",
}


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for reporting sessions.

    Duplicate open sessions are rejected by the unique partial index on
    ``(user_id, session_date)``; transitions are conditional updates whose
    filters carry the expected state.
    """

    client: Client

    def create_session(
        self, owner_id: UUID, market_id: UUID, session_date: date, day_of_week: int
    ) -> Session:
        """Insert a draft session row and return it."""
        with storage_errors("create session"):
            try:
                response = (
                    self.client.table("sessions")
                    .insert(
                        {
                            "user_id": str(owner_id),
                            "market_id": str(market_id),
                            "session_date": session_date.isoformat(),
                            "day_of_week": day_of_week,
                            "status": SessionStatus.DRAFT.value,
                        }
                    )
                    .execute()
                )
            except PostgrestAPIError as exc:
                if is_unique_violation(exc):
                    raise DuplicateSessionError(
                        f"An open session already exists for {session_date}"
                    ) from exc
                raise
        if not response.data:
            raise StorageError("Failed to create session")
        return parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""
        with storage_errors("read session"):
            response = (
                self.client.table("sessions")
                .select(SESSION_COLUMNS)
                .eq("id", str(session_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return parse_session(response.data[0])

    def get_open_session(self, owner_id: UUID, session_date: date) -> Session | None:
        """Return the owner's draft or active session for a date."""
        with storage_errors("read open session"):
            response = (
                self.client.table("sessions")
                .select(SESSION_COLUMNS)
                .eq("user_id", str(owner_id))
                .eq("session_date", session_date.isoformat())
                .in_("status", [status.value for status in OPEN_STATUSES])
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return parse_session(response.data[0])

    def list_owner_sessions(self, owner_id: UUID, limit: int) -> list[Session]:
        """Return the owner's sessions, newest date first."""
        with storage_errors("list sessions"):
            response = (
                self.client.table("sessions")
                .select(SESSION_COLUMNS)
                .eq("user_id", str(owner_id))
                .order("session_date", desc=True)
                .limit(limit)
                .execute()
            )
        return [parse_session(row) for row in response.data or []]

    def transition(
        self,
        session_id: UUID,
        expected: Mapping[str, object],
        changes: Mapping[str, object],
    ) -> Session | None:
        """Apply a conditional update and return the row it changed."""
        payload = {
            _FIELD_COLUMNS[name]: _serialize(value) for name, value in changes.items()
        }
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        query = self.client.table("sessions").update(payload).eq("id", str(session_id))
        for name, value in expected.items():
            column = _FIELD_COLUMNS[name]
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, _serialize(value))
        with storage_errors("update session"):
            response = query.execute()
        if not response.data:
            return None
        return parse_session(response.data[0])


def _serialize(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def parse_session(row: dict[str, object]) -> Session:
    session_date = parse_date(row["session_date"])
    stored_weekday = row.get("day_of_week")
    return Session(
        id=UUID(str(row["id"])),
        owner_id=UUID(str(row["user_id"])),
        market_id=UUID(str(row["market_id"])),
        session_date=session_date,
        day_of_week=(
            stored_weekday
            if isinstance(stored_weekday, int)
            else day_of_week(session_date)
        ),
        status=SessionStatus(row["status"]),
        punch_in_at=parse_datetime(row.get("punch_in_time")),
        punch_out_at=parse_datetime(row.get("punch_out_time")),
        finalized_at=parse_datetime(row.get("finalized_at")),
        created_at=parse_datetime(row.get("created_at")),
    )
