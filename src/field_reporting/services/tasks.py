"""Append-only ledger of task completions."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from field_reporting.domain.errors import (
    AuthorizationError,
    ImmutableRecordError,
    NotFoundError,
    SessionLockedError,
    ValidationError,
)
from field_reporting.domain.events import TASK_EVENTS_TABLE, ChangeAction, ChangeEvent
from field_reporting.domain.models import Actor
from field_reporting.domain.sessions import Session, SessionStatus
from field_reporting.domain.tasks import (
    MUTABLE_TASK_TYPES,
    SINGLETON_TASK_TYPES,
    SessionProgress,
    TaskRecord,
    TaskType,
)
from field_reporting.services.clock import Clock, utc_now
from field_reporting.services.notifications import ChangeNotifier, publish_committed

logger = logging.getLogger(__name__)


class SessionLookup(Protocol):
    """Read access to sessions needed by the ledger."""

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""


class TaskRepository(Protocol):
    """Persistence interface for task records."""

    def create_task(
        self, session_id: UUID, task_type: TaskType, payload: dict[str, object]
    ) -> TaskRecord:
        """Insert a record; raise DuplicateTaskError for a repeated singleton."""

    def get_task(self, task_id: UUID) -> TaskRecord | None:
        """Return a record by id, if present."""

    def update_task(self, task_id: UUID, payload: dict[str, object]) -> TaskRecord:
        """Replace a record's payload and return the updated record."""

    def delete_task(self, task_id: UUID) -> None:
        """Delete a record."""

    def count_tasks(self, session_id: UUID, task_type: TaskType) -> int:
        """Return the number of records of a type in a session."""

    def count_by_type(self, session_id: UUID) -> dict[TaskType, int]:
        """Return record counts per task type for a session."""


@dataclass
class TaskLedger:
    """Records task completions and enforces session locking."""

    repository: TaskRepository
    sessions: SessionLookup
    notifier: ChangeNotifier
    clock: Clock = field(default=utc_now)

    def record(
        self,
        actor: Actor,
        session_id: UUID,
        task_type: TaskType,
        payload: Mapping[str, object] | None = None,
    ) -> TaskRecord:
        """Append a completed task to an open session."""
        parsed = task_type_from(task_type)
        if parsed in SINGLETON_TASK_TYPES:
            raise ValidationError(
                f"{parsed.value} is recorded by punching in or out", field="task_type"
            )
        return self._append(actor, session_id, parsed, payload)

    def record_marker(
        self,
        actor: Actor,
        session_id: UUID,
        task_type: TaskType,
        payload: Mapping[str, object] | None = None,
    ) -> TaskRecord:
        """Append a punch_in or punch_out record on behalf of the session manager."""
        parsed = task_type_from(task_type)
        if parsed not in SINGLETON_TASK_TYPES:
            raise ValidationError(
                f"{parsed.value} is not a punch marker", field="task_type"
            )
        return self._append(actor, session_id, parsed, payload)

    def _append(
        self,
        actor: Actor,
        session_id: UUID,
        task_type: TaskType,
        payload: Mapping[str, object] | None,
    ) -> TaskRecord:
        session = self._writable_session(actor, session_id)
        record = self.repository.create_task(
            session.id, task_type, _validated_payload(payload)
        )
        logger.info(
            "Recorded task",
            extra={"session_id": str(session.id), "task_type": record.task_type.value},
        )
        self._publish(ChangeAction.INSERT, record.id, record)
        return record

    def update(
        self, actor: Actor, record_id: UUID, payload: Mapping[str, object]
    ) -> TaskRecord:
        """Replace the payload of a mutable record."""
        record = self._mutable_record(actor, record_id)
        updated = self.repository.update_task(record.id, _validated_payload(payload))
        self._publish(ChangeAction.UPDATE, updated.id, updated)
        return updated

    def delete(self, actor: Actor, record_id: UUID) -> None:
        """Delete a mutable record."""
        record = self._mutable_record(actor, record_id)
        self.repository.delete_task(record.id)
        self._publish(ChangeAction.DELETE, record.id, None)

    def count(self, session_id: UUID, task_type: TaskType) -> int:
        """Return how many records of a type the session holds."""
        return self.repository.count_tasks(session_id, task_type_from(task_type))

    def count_distinct_task_types_completed(self, session_id: UUID) -> int:
        """Return how many task types have at least one record."""
        return len(self.progress(session_id).completed_types)

    def progress(self, session_id: UUID) -> SessionProgress:
        """Return per-type counts for progress indicators."""
        counts = {task_type: 0 for task_type in TaskType}
        counts.update(self.repository.count_by_type(session_id))
        return SessionProgress(session_id=session_id, counts=counts)

    def _writable_session(self, actor: Actor, session_id: UUID) -> Session:
        session = self.sessions.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        if session.owner_id != actor.owner_id:
            raise AuthorizationError("Only the session owner can write tasks")
        if session.status is SessionStatus.FINALIZED:
            raise SessionLockedError(f"Session {session_id} is finalized")
        return session

    def _mutable_record(self, actor: Actor, record_id: UUID) -> TaskRecord:
        record = self.repository.get_task(record_id)
        if record is None:
            raise NotFoundError(f"Task record {record_id} not found")
        if record.task_type not in MUTABLE_TASK_TYPES:
            raise ImmutableRecordError(
                f"{record.task_type.value} records cannot be modified"
            )
        self._writable_session(actor, record.session_id)
        return record

    def _publish(self, action: ChangeAction, record_id: UUID, result: object) -> None:
        event = ChangeEvent(
            table=TASK_EVENTS_TABLE,
            action=action,
            record_id=record_id,
            occurred_at=self.clock(),
        )
        publish_committed(self.notifier, event, result)


def task_type_from(value: object) -> TaskType:
    """Parse a task type, raising ValidationError for unknown values."""
    try:
        return TaskType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown task type: {value}", field="task_type") from exc


def _validated_payload(payload: Mapping[str, object] | None) -> dict[str, object]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("payload must be an object", field="payload")
    return dict(payload)
