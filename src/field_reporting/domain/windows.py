"""Domain models for clock-time action windows."""

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum

ATTENDANCE_WINDOW = "attendance"
OUTSIDE_RATES_WINDOW = "outside_rates"
SELFIE_GPS_WINDOW = "selfie_gps"
MARKET_VIDEO_WINDOW = "market_video"
FINALIZATION_WINDOW = "eod_finalization"

DEFAULT_TIMEZONE = "Asia/Kolkata"


@dataclass(frozen=True)
class TimeWindow:
    """A time-of-day interval with a grace extension after its end."""

    name: str
    start_time: time
    end_time: time
    grace_minutes: int = 0

    @property
    def spans_midnight(self) -> bool:
        return self.end_time < self.start_time


@dataclass(frozen=True)
class TimeWindowConfig:
    """Organization-wide window configuration snapshot."""

    windows: dict[str, TimeWindow] = field(default_factory=dict)
    timezone: str = DEFAULT_TIMEZONE
    finalization_deadline_offset_days: int = 0

    def get(self, name: str) -> TimeWindow | None:
        return self.windows.get(name)


class DenialReason(str, Enum):
    """Why an action was refused by the window policy."""

    WINDOW_NOT_CONFIGURED = "window_not_configured"
    OUTSIDE_WINDOW = "outside_window"


@dataclass(frozen=True)
class Allowed:
    """The action is permitted now."""

    window_name: str
    opens_at: time
    closes_at: time
    deadline: datetime | None = None

    allowed = True


@dataclass(frozen=True)
class Denied:
    """The action is refused; bounds are set when the window is configured."""

    window_name: str
    reason: DenialReason
    opens_at: time | None = None
    closes_at: time | None = None
    deadline: datetime | None = None

    allowed = False


WindowDecision = Allowed | Denied
