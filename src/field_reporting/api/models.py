"""Pydantic models for the HTTP surface."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from field_reporting.domain.markets import AggregateSnapshot, CollectionRecord
from field_reporting.domain.sessions import Session
from field_reporting.domain.tasks import SessionProgress, TaskRecord
from field_reporting.domain.windows import WindowDecision


class CreateSessionRequest(BaseModel):
    """Body for starting a session."""

    market_id: UUID
    session_date: date
    reuse_open: bool = False


class PunchRequest(BaseModel):
    """Optional punch evidence such as a selfie URL and GPS fix."""

    payload: dict[str, object] = Field(default_factory=dict)


class RecordTaskRequest(BaseModel):
    """Body for recording a task."""

    task_type: str
    payload: dict[str, object] = Field(default_factory=dict)


class UpdateTaskRequest(BaseModel):
    """Replacement payload for a mutable task record."""

    payload: dict[str, object]


class RecordCollectionRequest(BaseModel):
    """Body for recording a collection."""

    market_id: UUID
    market_date: date
    amount: Decimal
    mode: str


class SessionResponse(BaseModel):
    id: UUID
    owner_id: UUID
    market_id: UUID
    session_date: date
    day_of_week: int
    status: str
    punch_in_at: datetime | None = None
    punch_out_at: datetime | None = None
    finalized_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: Session) -> "SessionResponse":
        return cls(
            id=session.id,
            owner_id=session.owner_id,
            market_id=session.market_id,
            session_date=session.session_date,
            day_of_week=session.day_of_week,
            status=session.status.value,
            punch_in_at=session.punch_in_at,
            punch_out_at=session.punch_out_at,
            finalized_at=session.finalized_at,
        )


class TaskResponse(BaseModel):
    id: UUID
    session_id: UUID
    task_type: str
    payload: dict[str, object]
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, record: TaskRecord) -> "TaskResponse":
        return cls(
            id=record.id,
            session_id=record.session_id,
            task_type=record.task_type.value,
            payload=record.payload,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ProgressResponse(BaseModel):
    session_id: UUID
    counts: dict[str, int]
    completed_types: int
    completion_percent: float

    @classmethod
    def from_domain(cls, progress: SessionProgress) -> "ProgressResponse":
        return cls(
            session_id=progress.session_id,
            counts={task.value: count for task, count in progress.counts.items()},
            completed_types=len(progress.completed_types),
            completion_percent=progress.completion_percent,
        )


class CollectionResponse(BaseModel):
    id: UUID
    market_id: UUID
    market_date: date
    collected_by: UUID
    amount: Decimal
    mode: str

    @classmethod
    def from_domain(cls, record: CollectionRecord) -> "CollectionResponse":
        return cls(
            id=record.id,
            market_id=record.market_id,
            market_date=record.market_date,
            collected_by=record.collected_by,
            amount=record.amount,
            mode=record.mode,
        )


class WindowResponse(BaseModel):
    """Outcome of evaluating a window at the current instant."""

    window: str
    allowed: bool
    reason: str | None = None
    opens_at: time | None = None
    closes_at: time | None = None

    @classmethod
    def from_decision(cls, decision: WindowDecision) -> "WindowResponse":
        reason = getattr(decision, "reason", None)
        return cls(
            window=decision.window_name,
            allowed=decision.allowed,
            reason=reason.value if reason is not None else None,
            opens_at=decision.opens_at,
            closes_at=decision.closes_at,
        )


class AggregateResponse(BaseModel):
    market_id: UUID
    session_date: date
    active_sessions: int
    active_employees: int
    task_counts: dict[str, int]
    collections_total: Decimal
    collections_count: int
    last_punch_in_at: datetime | None = None

    @classmethod
    def from_domain(cls, snapshot: AggregateSnapshot) -> "AggregateResponse":
        return cls(
            market_id=snapshot.market_id,
            session_date=snapshot.session_date,
            active_sessions=snapshot.active_sessions,
            active_employees=snapshot.active_employees,
            task_counts={
                task.value: count for task, count in snapshot.task_counts.items()
            },
            collections_total=snapshot.collections_total,
            collections_count=snapshot.collections_count,
            last_punch_in_at=snapshot.last_punch_in_at,
        )
