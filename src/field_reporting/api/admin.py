"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from field_reporting.api.models import AggregateResponse
from field_reporting.services.aggregation import order_by_recent_punch_in

if TYPE_CHECKING:
    from field_reporting.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/live-markets", dependencies=[Depends(require_admin)])
def live_markets(
    request: Request, on_date: date | None = None
) -> dict[str, object]:
    """Return rollups for live markets, most recent punch-in first."""
    container: AppContainer = request.app.state.container
    config = container.org_config_service
    day = on_date or config.local_date(container.session_manager.clock())
    snapshots = container.aggregation_engine.summarize(
        day, config.market_schedule(day)
    )
    return {
        "date": day.isoformat(),
        "markets": [
            AggregateResponse.from_domain(snapshot).model_dump(mode="json")
            for snapshot in order_by_recent_punch_in(snapshots)
        ],
    }
