"""Ledger of rent collections per market and date."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Protocol
from uuid import UUID

from field_reporting.domain.errors import AuthorizationError, ValidationError
from field_reporting.domain.events import COLLECTIONS_TABLE, ChangeAction, ChangeEvent
from field_reporting.domain.markets import CollectionRecord
from field_reporting.domain.models import FIELD_ROLES, Actor
from field_reporting.services.clock import Clock, utc_now
from field_reporting.services.notifications import ChangeNotifier, publish_committed

logger = logging.getLogger(__name__)


class CollectionRepository(Protocol):
    """Persistence interface for collection records."""

    def create_collection(
        self,
        market_id: UUID,
        market_date: date,
        collected_by: UUID,
        amount: Decimal,
        mode: str,
    ) -> CollectionRecord:
        """Insert a collection record and return it."""

    def list_collections(
        self, market_id: UUID, market_date: date
    ) -> list[CollectionRecord]:
        """Return collection records for a market on a date."""


@dataclass
class CollectionLedger:
    """Records collections and announces them to dashboards."""

    repository: CollectionRepository
    notifier: ChangeNotifier
    clock: Clock = field(default=utc_now)

    def record(  # noqa: PLR0913
        self,
        actor: Actor,
        market_id: UUID,
        market_date: date,
        amount: Decimal | float | str,
        mode: str,
    ) -> CollectionRecord:
        """Record an amount collected at a market."""
        if actor.role not in FIELD_ROLES and not actor.is_admin:
            raise AuthorizationError(
                f"Role {actor.role.value} cannot record collections"
            )
        value = _parse_amount(amount)
        cleaned_mode = (mode or "").strip().lower()
        if not cleaned_mode:
            raise ValidationError("mode is required", field="mode")
        record = self.repository.create_collection(
            market_id=market_id,
            market_date=market_date,
            collected_by=actor.owner_id,
            amount=value,
            mode=cleaned_mode,
        )
        logger.info(
            "Recorded collection",
            extra={"market_id": str(market_id), "market_date": market_date.isoformat()},
        )
        event = ChangeEvent(
            table=COLLECTIONS_TABLE,
            action=ChangeAction.INSERT,
            record_id=record.id,
            occurred_at=self.clock(),
        )
        publish_committed(self.notifier, event, record)
        return record

    def list_for(self, market_id: UUID, market_date: date) -> list[CollectionRecord]:
        """Return the collections recorded for a market on a date."""
        return self.repository.list_collections(market_id, market_date)


def _parse_amount(raw: Decimal | float | str) -> Decimal:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("amount must be a number", field="amount") from exc
    if not value.is_finite() or value < 0:
        raise ValidationError("amount must be zero or more", field="amount")
    return value
