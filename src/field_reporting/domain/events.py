"""Change events published after committed mutations."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

SESSIONS_TABLE = "sessions"
TASK_EVENTS_TABLE = "task_events"
COLLECTIONS_TABLE = "collections"
MARKETS_TABLE = "markets"
MARKET_SCHEDULE_TABLE = "market_schedule"
APP_SETTINGS_TABLE = "app_settings"


class ChangeAction(str, Enum):
    """Kind of committed mutation."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """Tells subscribers that a row in a table changed."""

    table: str
    action: ChangeAction
    record_id: UUID
    occurred_at: datetime
