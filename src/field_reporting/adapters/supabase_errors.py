"""Translation of Supabase client failures into workflow errors."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime

import httpx
from supabase import PostgrestAPIError

from field_reporting.domain.errors import StorageError

UNIQUE_VIOLATION = "23505"
# Raised by the task_events trigger when the session is finalized.
SESSION_LOCKED = "55000"


def is_unique_violation(exc: PostgrestAPIError) -> bool:
    """Return True when the error is a unique constraint violation."""
    return exc.code == UNIQUE_VIOLATION


def is_session_locked(exc: PostgrestAPIError) -> bool:
    return exc.code == SESSION_LOCKED


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise client and transport failures as StorageError."""
    try:
        yield
    except PostgrestAPIError as exc:
        raise StorageError(f"Failed to {action}: {exc.message}") from exc
    except httpx.HTTPError as exc:
        raise StorageError(f"Failed to {action}: {exc}") from exc


def parse_datetime(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def parse_date(raw: object) -> date:
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])
