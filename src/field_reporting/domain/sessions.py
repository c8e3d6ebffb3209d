"""Domain models for reporting sessions."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID


class SessionStatus(str, Enum):
    """Lifecycle state of a reporting session."""

    DRAFT = "draft"
    ACTIVE = "active"
    FINALIZED = "finalized"


OPEN_STATUSES = frozenset({SessionStatus.DRAFT, SessionStatus.ACTIVE})
WORKED_STATUSES = frozenset({SessionStatus.ACTIVE, SessionStatus.FINALIZED})


@dataclass(frozen=True)
class Session:
    """One owner's reporting shift for one market on one date."""

    id: UUID
    owner_id: UUID
    market_id: UUID
    session_date: date
    day_of_week: int
    status: SessionStatus
    punch_in_at: datetime | None = None
    punch_out_at: datetime | None = None
    finalized_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


def day_of_week(day: date) -> int:
    """Return the weekday number used by market data (0 = Sunday)."""
    return (day.weekday() + 1) % 7
