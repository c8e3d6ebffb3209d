"""Supabase-backed task ledger repository."""

from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client, PostgrestAPIError

from field_reporting.adapters.supabase_errors import (
    is_session_locked,
    is_unique_violation,
    parse_datetime,
    storage_errors,
)
from field_reporting.domain.errors import (
    DuplicateTaskError,
    SessionLockedError,
    StorageError,
)
from field_reporting.domain.tasks import TaskRecord, TaskType
from field_reporting.services.tasks import TaskRepository

_COLUMNS = "id, session_id, task_type, payload, created_at, updated_at"


@dataclass
class SupabaseTaskRepository(TaskRepository):
    """Supabase implementation for task records in ``task_events``."""

    client: Client

    def create_task(
        self, session_id: UUID, task_type: TaskType, payload: dict[str, object]
    ) -> TaskRecord:
        """Insert a task row; singleton types rely on a unique partial index."""
        with _task_write_errors("record task"):
            try:
                response = (
                    self.client.table("task_events")
                    .insert(
                        {
                            "session_id": str(session_id),
                            "task_type": task_type.value,
                            "payload": payload,
                        }
                    )
                    .execute()
                )
            except PostgrestAPIError as exc:
                if is_unique_violation(exc):
                    raise DuplicateTaskError(
                        f"{task_type.value} is already recorded for this session"
                    ) from exc
                raise
        if not response.data:
            raise StorageError("Failed to record task")
        return _parse_task(response.data[0])

    def get_task(self, task_id: UUID) -> TaskRecord | None:
        """Return a task record by id, if present."""
        with storage_errors("read task"):
            response = (
                self.client.table("task_events")
                .select(_COLUMNS)
                .eq("id", str(task_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_task(response.data[0])

    def update_task(self, task_id: UUID, payload: dict[str, object]) -> TaskRecord:
        """Replace the payload of a task row."""
        with _task_write_errors("update task"):
            response = (
                self.client.table("task_events")
                .update(
                    {
                        "payload": payload,
                        "updated_at": datetime.now(tz=UTC).isoformat(),
                    }
                )
                .eq("id", str(task_id))
                .execute()
            )
        if not response.data:
            raise StorageError(f"Task record {task_id} was not updated")
        return _parse_task(response.data[0])

    def delete_task(self, task_id: UUID) -> None:
        """Delete a task row."""
        with _task_write_errors("delete task"):
            self.client.table("task_events").delete().eq("id", str(task_id)).execute()

    def count_tasks(self, session_id: UUID, task_type: TaskType) -> int:
        """Return the number of rows of a type in a session."""
        with storage_errors("count tasks"):
            response = (
                self.client.table("task_events")
                .select("id", count="exact", head=True)
                .eq("session_id", str(session_id))
                .eq("task_type", task_type.value)
                .execute()
            )
        return response.count or 0

    def count_by_type(self, session_id: UUID) -> dict[TaskType, int]:
        """Return row counts per task type for a session."""
        with storage_errors("count tasks"):
            response = (
                self.client.table("task_events")
                .select("task_type")
                .eq("session_id", str(session_id))
                .execute()
            )
        return dict(Counter(TaskType(row["task_type"]) for row in response.data or []))


@contextmanager
def _task_write_errors(action: str) -> Iterator[None]:
    with storage_errors(action):
        try:
            yield
        except PostgrestAPIError as exc:
            if is_session_locked(exc):
                raise SessionLockedError("Session is finalized") from exc
            raise


def _parse_task(row: dict[str, object]) -> TaskRecord:
    payload = row.get("payload")
    return TaskRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        task_type=TaskType(row["task_type"]),
        payload=payload if isinstance(payload, dict) else {},
        created_at=parse_datetime(row.get("created_at")) or datetime.now(tz=UTC),
        updated_at=parse_datetime(row.get("updated_at")),
    )
