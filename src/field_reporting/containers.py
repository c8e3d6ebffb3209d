"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from field_reporting.adapters.supabase_aggregation_repository import (
    SupabaseAggregationRepository,
)
from field_reporting.adapters.supabase_collection_repository import (
    SupabaseCollectionRepository,
)
from field_reporting.adapters.supabase_org_config_repository import (
    SupabaseOrgConfigRepository,
)
from field_reporting.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from field_reporting.adapters.supabase_task_repository import SupabaseTaskRepository
from field_reporting.config import Settings, parse_off_days
from field_reporting.services.aggregation import AggregationEngine
from field_reporting.services.cache import InMemoryCache
from field_reporting.services.collections import CollectionLedger
from field_reporting.services.notifications import ChangeNotifier, InMemoryEventBus
from field_reporting.services.org_config import OrgConfigService
from field_reporting.services.sessions import SessionManager
from field_reporting.services.tasks import TaskLedger


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    notifier: ChangeNotifier
    org_config_service: OrgConfigService
    session_manager: SessionManager
    task_ledger: TaskLedger
    collection_ledger: CollectionLedger
    aggregation_engine: AggregationEngine
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    task_repository = SupabaseTaskRepository(supabase_client)
    collection_repository = SupabaseCollectionRepository(supabase_client)
    aggregation_repository = SupabaseAggregationRepository(supabase_client)
    org_config_repository = SupabaseOrgConfigRepository(supabase_client)

    event_bus = InMemoryEventBus()
    org_config_service = OrgConfigService(
        repository=org_config_repository,
        cache=InMemoryCache(),
        timezone=resolved_settings.organization_timezone,
        off_days=parse_off_days(resolved_settings.schedule_off_days),
        ttl_seconds=resolved_settings.config_cache_ttl_seconds,
    )
    org_config_service.watch(event_bus)
    task_ledger = TaskLedger(
        repository=task_repository,
        sessions=session_repository,
        notifier=event_bus,
    )
    session_manager = SessionManager(
        repository=session_repository,
        task_ledger=task_ledger,
        notifier=event_bus,
    )
    collection_ledger = CollectionLedger(
        repository=collection_repository,
        notifier=event_bus,
    )
    aggregation_engine = AggregationEngine(
        repository=aggregation_repository,
        use_view=resolved_settings.aggregate_view_enabled,
    )

    async def close_resources() -> None:
        org_config_service.invalidate()

    return AppContainer(
        settings=resolved_settings,
        notifier=event_bus,
        org_config_service=org_config_service,
        session_manager=session_manager,
        task_ledger=task_ledger,
        collection_ledger=collection_ledger,
        aggregation_engine=aggregation_engine,
        close_resources=close_resources,
    )
