"""Supabase-backed collection repository."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from supabase import Client

from field_reporting.adapters.supabase_errors import (
    parse_date,
    parse_datetime,
    storage_errors,
)
from field_reporting.domain.errors import StorageError
from field_reporting.domain.markets import CollectionRecord
from field_reporting.services.collections import CollectionRepository

_COLUMNS = "id, market_id, market_date, collected_by, amount, mode, created_at"


@dataclass
class SupabaseCollectionRepository(CollectionRepository):
    """Supabase implementation for rent collections."""

    client: Client

    def create_collection(
        self,
        market_id: UUID,
        market_date: date,
        collected_by: UUID,
        amount: Decimal,
        mode: str,
    ) -> CollectionRecord:
        """Insert a collection row and return it."""
        with storage_errors("record collection"):
            response = (
                self.client.table("collections")
                .insert(
                    {
                        "market_id": str(market_id),
                        "market_date": market_date.isoformat(),
                        "collected_by": str(collected_by),
                        "amount": str(amount),
                        "mode": mode,
                    }
                )
                .execute()
            )
        if not response.data:
            raise StorageError("Failed to record collection")
        return parse_collection(response.data[0])

    def list_collections(
        self, market_id: UUID, market_date: date
    ) -> list[CollectionRecord]:
        """Return collections for a market on a date."""
        with storage_errors("list collections"):
            response = (
                self.client.table("collections")
                .select(_COLUMNS)
                .eq("market_id", str(market_id))
                .eq("market_date", market_date.isoformat())
                .order("created_at", desc=False)
                .execute()
            )
        return [parse_collection(row) for row in response.data or []]


def parse_collection(row: dict[str, object]) -> CollectionRecord:
    return CollectionRecord(
        id=UUID(str(row["id"])),
        market_id=UUID(str(row["market_id"])),
        market_date=parse_date(row["market_date"]),
        collected_by=UUID(str(row["collected_by"])),
        amount=Decimal(str(row.get("amount", 0))),
        mode=str(row.get("mode", "")),
        created_at=parse_datetime(row.get("created_at")),
    )
