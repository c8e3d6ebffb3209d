"""Domain models for the task ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class TaskType(str, Enum):
    """Kinds of work recorded within a session."""

    ALLOCATION = "allocation"
    PUNCH_IN = "punch_in"
    LAND_SEARCH = "land_search"
    STALL_SEARCH = "stall_search"
    MONEY_RECOVERY = "money_recovery"
    ASSETS_USAGE = "assets_usage"
    FEEDBACK = "feedback"
    INSPECTION = "inspection"
    PUNCH_OUT = "punch_out"


# At most one record of these types per session.
SINGLETON_TASK_TYPES = frozenset({TaskType.PUNCH_IN, TaskType.PUNCH_OUT})

# Owners may edit or delete these until the session is finalized.
MUTABLE_TASK_TYPES = frozenset({TaskType.FEEDBACK})


@dataclass(frozen=True)
class TaskRecord:
    """A completed unit of work within a session."""

    id: UUID
    session_id: UUID
    task_type: TaskType
    payload: dict[str, object]
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_mutable(self) -> bool:
        return self.task_type in MUTABLE_TASK_TYPES


@dataclass(frozen=True)
class SessionProgress:
    """Progress indicators for a session."""

    session_id: UUID
    counts: dict[TaskType, int] = field(default_factory=dict)

    @property
    def completed_types(self) -> frozenset[TaskType]:
        return frozenset(task for task, count in self.counts.items() if count > 0)

    @property
    def completion_percent(self) -> float:
        return round(100 * len(self.completed_types) / len(TaskType), 1)
