"""Server clock used for timestamps assigned by the engine."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current server time in UTC."""
    return datetime.now(tz=UTC)
