"""Tests for container wiring."""

import asyncio
from datetime import UTC, datetime
from uuid import uuid4

from field_reporting.containers import build_container
from field_reporting.domain.events import APP_SETTINGS_TABLE, ChangeAction, ChangeEvent


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.session_manager.task_ledger is container.task_ledger
    assert container.aggregation_engine.use_view is True
    assert container.org_config_service.timezone == "Asia/Kolkata"
    asyncio.run(container.close_resources())


def test_container_invalidates_config_on_settings_change(settings) -> None:
    container = build_container(settings)
    cache = container.org_config_service.cache
    cache.set("time_windows", object(), 60)

    container.notifier.publish(
        ChangeEvent(
            table=APP_SETTINGS_TABLE,
            action=ChangeAction.UPDATE,
            record_id=uuid4(),
            occurred_at=datetime.now(tz=UTC),
        )
    )

    assert cache.get("time_windows") is None
