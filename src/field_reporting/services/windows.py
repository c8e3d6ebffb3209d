"""Clock-time window policy."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from field_reporting.domain.errors import ValidationError
from field_reporting.domain.windows import (
    Allowed,
    Denied,
    DenialReason,
    TimeWindow,
    TimeWindowConfig,
    WindowDecision,
)

_DAY = timedelta(days=1)


@dataclass(frozen=True)
class TimeWindowPolicy:
    """Evaluates actions against one configuration snapshot.

    Every evaluation takes ``now`` explicitly; the policy never reads a clock
    and has no side effects, so the same inputs always give the same decision.
    """

    config: TimeWindowConfig

    def evaluate(self, window_name: str, now: datetime) -> WindowDecision:
        """Return whether ``now`` falls inside the named window plus grace."""
        window = self.config.get(window_name)
        if window is None:
            return Denied(window_name, DenialReason.WINDOW_NOT_CONFIGURED)
        local = self._to_local(now)
        closes_at = _effective_end(window)
        if _within(window, local.time()):
            return Allowed(window_name, window.start_time, closes_at)
        return Denied(
            window_name,
            DenialReason.OUTSIDE_WINDOW,
            opens_at=window.start_time,
            closes_at=closes_at,
        )

    def deadline_for(self, window_name: str, anchor_date: date) -> datetime | None:
        """Return the absolute cutoff of a window relative to a calendar date."""
        window = self.config.get(window_name)
        if window is None:
            return None
        offset = timedelta(days=self.config.finalization_deadline_offset_days)
        day = anchor_date + offset
        cutoff = datetime.combine(day, window.end_time, tzinfo=self._zone)
        return cutoff + timedelta(minutes=window.grace_minutes)

    def evaluate_deadline(
        self, window_name: str, now: datetime, anchor_date: date
    ) -> WindowDecision:
        """Return whether ``now`` is at or before the window's dated cutoff."""
        window = self.config.get(window_name)
        deadline = self.deadline_for(window_name, anchor_date)
        if window is None or deadline is None:
            return Denied(window_name, DenialReason.WINDOW_NOT_CONFIGURED)
        closes_at = _effective_end(window)
        if self._to_local(now) <= deadline:
            return Allowed(window_name, window.start_time, closes_at, deadline)
        return Denied(
            window_name,
            DenialReason.OUTSIDE_WINDOW,
            opens_at=window.start_time,
            closes_at=closes_at,
            deadline=deadline,
        )

    @property
    def _zone(self) -> ZoneInfo:
        return ZoneInfo(self.config.timezone)

    def _to_local(self, now: datetime) -> datetime:
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValidationError("now must be timezone-aware", field="now")
        return now.astimezone(self._zone)


def _offset(value: time) -> timedelta:
    return timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


def _effective_end(window: TimeWindow) -> time:
    end = datetime.combine(date.min, window.end_time) + timedelta(
        minutes=window.grace_minutes
    )
    return end.time()


def _within(window: TimeWindow, local_time: time) -> bool:
    start = _offset(window.start_time)
    end = _offset(window.end_time) + timedelta(minutes=window.grace_minutes)
    if window.spans_midnight:
        end += _DAY
    current = _offset(local_time)
    # The second check covers the part of the window past midnight.
    return start <= current <= end or start <= current + _DAY <= end
