"""Change notification bus."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from field_reporting.domain.errors import NotificationError
from field_reporting.domain.events import ChangeEvent

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], None]


class ChangeNotifier(Protocol):
    """Publish/subscribe interface keyed by table name."""

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to subscribers of its table."""

    def subscribe(self, table: str, handler: ChangeHandler) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""


@dataclass
class InMemoryEventBus(ChangeNotifier):
    """Synchronous in-process event bus."""

    _handlers: dict[str, list[ChangeHandler]] = field(default_factory=dict)

    def publish(self, event: ChangeEvent) -> None:
        """Run every handler for the event's table.

        All handlers run even when one fails; failures are raised together
        afterwards as a single ``NotificationError``.
        """
        failures = 0
        for handler in list(self._handlers.get(event.table, [])):
            try:
                handler(event)
            except Exception:
                failures += 1
                logger.exception(
                    "Change handler failed",
                    extra={"table": event.table, "record_id": str(event.record_id)},
                )
        if failures:
            raise NotificationError(
                f"{failures} subscriber(s) failed for {event.table} change"
            )

    def subscribe(self, table: str, handler: ChangeHandler) -> Callable[[], None]:
        """Register a handler for a table."""
        self._handlers.setdefault(table, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(table, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe


def publish_committed(
    notifier: ChangeNotifier, event: ChangeEvent, result: object
) -> None:
    """Publish an event for a mutation that already committed.

    A failure is re-raised with the committed ``result`` attached so callers
    know the write itself succeeded.
    """
    try:
        notifier.publish(event)
    except NotificationError as exc:
        raise NotificationError(str(exc), result=result) from exc
    except Exception as exc:
        raise NotificationError(
            f"Failed to publish {event.table} change", result=result
        ) from exc
