"""Organization configuration snapshots."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from field_reporting.domain.errors import StorageError
from field_reporting.domain.events import (
    APP_SETTINGS_TABLE,
    MARKET_SCHEDULE_TABLE,
    MARKETS_TABLE,
    ChangeEvent,
)
from field_reporting.domain.markets import (
    DatedScheduleEntry,
    MarketSchedule,
    MarketScheduleEntry,
)
from field_reporting.domain.windows import DEFAULT_TIMEZONE, TimeWindowConfig
from field_reporting.services.cache import Cache
from field_reporting.services.notifications import ChangeNotifier

logger = logging.getLogger(__name__)

_WINDOWS_KEY = "time_windows"
_WEEKDAY_SCHEDULE_KEY = "weekday_schedule"
_DATED_SCHEDULE_KEY = "dated_schedule"


class OrgConfigRepository(Protocol):
    """Read interface for organization configuration."""

    def get_time_windows(self, timezone: str) -> TimeWindowConfig | None:
        """Return the configured windows, or None when no settings row exists."""

    def list_weekday_schedule(self) -> list[MarketScheduleEntry]:
        """Return weekday schedule entries for every market."""

    def list_dated_schedule(self, on_date: date) -> list[DatedScheduleEntry]:
        """Return markets scheduled explicitly on a date."""


@dataclass
class OrgConfigService:
    """Serves cached point-in-time configuration snapshots."""

    repository: OrgConfigRepository
    cache: Cache
    timezone: str = DEFAULT_TIMEZONE
    off_days: frozenset[int] = field(default_factory=frozenset)
    ttl_seconds: int = 60

    def time_windows(self) -> TimeWindowConfig:
        """Return the current window configuration."""
        cached = self.cache.get(_WINDOWS_KEY)
        if isinstance(cached, TimeWindowConfig):
            return cached
        config = self.repository.get_time_windows(self.timezone)
        if config is None:
            raise StorageError("Organization settings are not configured")
        self.cache.set(_WINDOWS_KEY, config, self.ttl_seconds)
        return config

    def market_schedule(self, on_date: date) -> MarketSchedule:
        """Return the market schedule relevant to a date."""
        entries = self.cache.get(_WEEKDAY_SCHEDULE_KEY)
        if not isinstance(entries, tuple):
            entries = tuple(self.repository.list_weekday_schedule())
            self.cache.set(_WEEKDAY_SCHEDULE_KEY, entries, self.ttl_seconds)
        by_date = self.cache.get(_DATED_SCHEDULE_KEY)
        if not isinstance(by_date, dict):
            by_date = {}
            self.cache.set(_DATED_SCHEDULE_KEY, by_date, self.ttl_seconds)
        dated = by_date.get(on_date)
        if dated is None:
            dated = tuple(self.repository.list_dated_schedule(on_date))
            by_date[on_date] = dated
        return MarketSchedule(entries=entries, dated=dated, off_days=self.off_days)

    def local_date(self, now: datetime) -> date:
        """Return the organization calendar date for an instant."""
        return now.astimezone(ZoneInfo(self.timezone)).date()

    def invalidate(self, event: ChangeEvent | None = None) -> None:
        """Drop cached snapshots so the next read refetches them."""
        self.cache.delete(_WINDOWS_KEY)
        self.cache.delete(_WEEKDAY_SCHEDULE_KEY)
        self.cache.delete(_DATED_SCHEDULE_KEY)
        if event is not None:
            logger.info("Configuration changed", extra={"table": event.table})

    def watch(self, notifier: ChangeNotifier) -> None:
        """Invalidate snapshots whenever configuration tables change."""
        for table in (APP_SETTINGS_TABLE, MARKETS_TABLE, MARKET_SCHEDULE_TABLE):
            notifier.subscribe(table, self.invalidate)
