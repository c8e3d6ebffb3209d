"""Supabase reads for organization settings and market schedules."""

from dataclasses import dataclass
from datetime import date, time
from uuid import UUID

from supabase import Client

from field_reporting.adapters.supabase_errors import parse_date, storage_errors
from field_reporting.domain.markets import DatedScheduleEntry, MarketScheduleEntry
from field_reporting.domain.windows import (
    ATTENDANCE_WINDOW,
    FINALIZATION_WINDOW,
    MARKET_VIDEO_WINDOW,
    OUTSIDE_RATES_WINDOW,
    SELFIE_GPS_WINDOW,
    TimeWindow,
    TimeWindowConfig,
)
from field_reporting.services.org_config import OrgConfigRepository

# Window name -> (start column, end column) in app_settings.
_WINDOW_COLUMNS = {
    ATTENDANCE_WINDOW: ("attendance_start", "attendance_end"),
    OUTSIDE_RATES_WINDOW: ("outside_rates_start", "outside_rates_end"),
    SELFIE_GPS_WINDOW: ("selfie_gps_start", "selfie_gps_end"),
    MARKET_VIDEO_WINDOW: ("market_video_start", "market_video_end"),
}


@dataclass
class SupabaseOrgConfigRepository(OrgConfigRepository):
    """Supabase implementation for configuration reads."""

    client: Client

    def get_time_windows(self, timezone: str) -> TimeWindowConfig | None:
        """Build the window configuration from the app_settings row."""
        with storage_errors("read app settings"):
            response = self.client.table("app_settings").select("*").limit(1).execute()
        if not response.data:
            return None
        return parse_time_windows(response.data[0], timezone)

    def list_weekday_schedule(self) -> list[MarketScheduleEntry]:
        """Return weekday entries from the markets table."""
        with storage_errors("read markets"):
            response = (
                self.client.table("markets")
                .select("id, day_of_week, is_active")
                .execute()
            )
        return [
            MarketScheduleEntry(
                market_id=UUID(str(row["id"])),
                day_of_week=int(row["day_of_week"]),
                is_active=bool(row.get("is_active", True)),
            )
            for row in response.data or []
            if row.get("day_of_week") is not None
        ]

    def list_dated_schedule(self, on_date: date) -> list[DatedScheduleEntry]:
        """Return markets explicitly scheduled on a date."""
        with storage_errors("read market schedule"):
            response = (
                self.client.table("market_schedule")
                .select("market_id, schedule_date")
                .eq("schedule_date", on_date.isoformat())
                .execute()
            )
        return [
            DatedScheduleEntry(
                market_id=UUID(str(row["market_id"])),
                schedule_date=parse_date(row["schedule_date"]),
            )
            for row in response.data or []
            if row.get("market_id")
        ]


def parse_time_windows(row: dict[str, object], timezone: str) -> TimeWindowConfig:
    """Translate an app_settings row into a window configuration."""
    grace = int(row.get("grace_minutes") or 0)
    windows: dict[str, TimeWindow] = {}
    for name, (start_column, end_column) in _WINDOW_COLUMNS.items():
        start = _parse_time(row.get(start_column))
        end = _parse_time(row.get(end_column))
        if start is not None and end is not None:
            windows[name] = TimeWindow(name, start, end, grace)
    eod_due = _parse_time(row.get("eod_due_time"))
    if eod_due is not None:
        windows[FINALIZATION_WINDOW] = TimeWindow(
            FINALIZATION_WINDOW, time(0, 0), eod_due, grace
        )
    return TimeWindowConfig(
        windows=windows,
        timezone=timezone,
        finalization_deadline_offset_days=int(
            row.get("finalization_deadline_offset_days") or 0
        ),
    )


def _parse_time(raw: object) -> time | None:
    if isinstance(raw, str) and raw:
        return time.fromisoformat(raw)
    return None
