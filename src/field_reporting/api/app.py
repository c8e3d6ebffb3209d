"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from field_reporting.api.admin import router as admin_router
from field_reporting.api.models import (
    AggregateResponse,
    CollectionResponse,
    CreateSessionRequest,
    ProgressResponse,
    PunchRequest,
    RecordCollectionRequest,
    RecordTaskRequest,
    SessionResponse,
    TaskResponse,
    UpdateTaskRequest,
    WindowResponse,
)
from field_reporting.app_logging import configure_logging
from field_reporting.containers import AppContainer
from field_reporting.domain.errors import (
    AuthorizationError,
    ConflictError,
    ImmutableRecordError,
    NotFoundError,
    NotificationError,
    PolicyDeniedError,
    SessionLockedError,
    StorageError,
    ValidationError,
    WorkflowError,
)
from field_reporting.domain.models import Actor, Role
from field_reporting.services.tasks import task_type_from
from field_reporting.services.windows import TimeWindowPolicy

# First match wins.
_STATUS_CODES: tuple[tuple[type[WorkflowError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ImmutableRecordError, status.HTTP_409_CONFLICT),
    (PolicyDeniedError, status.HTTP_403_FORBIDDEN),
    (SessionLockedError, status.HTTP_423_LOCKED),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (NotificationError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(error: WorkflowError) -> int:
    """Map a workflow error to its HTTP status."""
    for error_type, code in _STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Build the caller identity from headers set by the auth proxy."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        owner_id = UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError as exc:
        raise AuthorizationError(f"Unknown role: {x_user_role}") from exc
    return Actor(owner_id=owner_id, role=role)


ContainerDep = Annotated[AppContainer, Depends(get_container)]
ActorDep = Annotated[Actor, Depends(get_actor)]


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(
        request: Request, exc: WorkflowError
    ) -> JSONResponse:
        code = status_code_for(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning(
                "Request failed",
                extra={"path": request.url.path, "error": exc.code},
            )
        body = {"error": exc.code, "message": str(exc), **exc.details()}
        return JSONResponse(status_code=code, content=body)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    def create_session(
        body: CreateSessionRequest, actor: ActorDep, deps: ContainerDep
    ) -> SessionResponse:
        """Start a session, or return the open one when ``reuse_open`` is set."""
        manager = deps.session_manager
        if body.reuse_open:
            session = manager.open_for_day(actor, body.market_id, body.session_date)
        else:
            session = manager.create(actor, body.market_id, body.session_date)
        return SessionResponse.from_domain(session)

    @app.get("/sessions")
    def list_sessions(
        actor: ActorDep, deps: ContainerDep, limit: int = 30
    ) -> list[SessionResponse]:
        """Return the caller's recent sessions."""
        sessions = deps.session_manager.history(actor, limit)
        return [SessionResponse.from_domain(session) for session in sessions]

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: UUID, actor: ActorDep, deps: ContainerDep
    ) -> SessionResponse:
        return SessionResponse.from_domain(deps.session_manager.get(actor, session_id))

    @app.post("/sessions/{session_id}/activate")
    def activate_session(
        session_id: UUID, actor: ActorDep, deps: ContainerDep
    ) -> SessionResponse:
        session = deps.session_manager.activate(actor, session_id)
        return SessionResponse.from_domain(session)

    @app.post("/sessions/{session_id}/punch-in")
    def punch_in(
        session_id: UUID,
        actor: ActorDep,
        deps: ContainerDep,
        body: PunchRequest | None = None,
    ) -> SessionResponse:
        """Punch in using the server clock."""
        session = deps.session_manager.punch_in(
            actor,
            session_id,
            deps.org_config_service.time_windows(),
            body.payload if body else None,
        )
        return SessionResponse.from_domain(session)

    @app.post("/sessions/{session_id}/punch-out")
    def punch_out(
        session_id: UUID,
        actor: ActorDep,
        deps: ContainerDep,
        body: PunchRequest | None = None,
    ) -> SessionResponse:
        session = deps.session_manager.punch_out(
            actor, session_id, body.payload if body else None
        )
        return SessionResponse.from_domain(session)

    @app.post("/sessions/{session_id}/finalize")
    def finalize_session(
        session_id: UUID, actor: ActorDep, deps: ContainerDep
    ) -> SessionResponse:
        session = deps.session_manager.finalize(
            actor, session_id, deps.org_config_service.time_windows()
        )
        return SessionResponse.from_domain(session)

    @app.post("/sessions/{session_id}/tasks", status_code=status.HTTP_201_CREATED)
    def record_task(
        session_id: UUID,
        body: RecordTaskRequest,
        actor: ActorDep,
        deps: ContainerDep,
    ) -> TaskResponse:
        """Append a task record to an open session."""
        record = deps.task_ledger.record(
            actor, session_id, task_type_from(body.task_type), body.payload
        )
        return TaskResponse.from_domain(record)

    @app.get("/sessions/{session_id}/progress")
    def session_progress(
        session_id: UUID, actor: ActorDep, deps: ContainerDep
    ) -> ProgressResponse:
        deps.session_manager.get(actor, session_id)
        return ProgressResponse.from_domain(deps.task_ledger.progress(session_id))

    @app.patch("/tasks/{record_id}")
    def update_task(
        record_id: UUID,
        body: UpdateTaskRequest,
        actor: ActorDep,
        deps: ContainerDep,
    ) -> TaskResponse:
        record = deps.task_ledger.update(actor, record_id, body.payload)
        return TaskResponse.from_domain(record)

    @app.delete("/tasks/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_task(record_id: UUID, actor: ActorDep, deps: ContainerDep) -> Response:
        deps.task_ledger.delete(actor, record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/collections", status_code=status.HTTP_201_CREATED)
    def record_collection(
        body: RecordCollectionRequest, actor: ActorDep, deps: ContainerDep
    ) -> CollectionResponse:
        record = deps.collection_ledger.record(
            actor, body.market_id, body.market_date, body.amount, body.mode
        )
        return CollectionResponse.from_domain(record)

    @app.get("/windows/{window_name}")
    def evaluate_window(
        window_name: str, actor: ActorDep, deps: ContainerDep
    ) -> WindowResponse:
        """Report whether a window is open right now."""
        policy = TimeWindowPolicy(deps.org_config_service.time_windows())
        decision = policy.evaluate(window_name, deps.session_manager.clock())
        return WindowResponse.from_decision(decision)

    @app.get("/aggregates")
    def aggregates(
        actor: ActorDep,
        deps: ContainerDep,
        on_date: Annotated[date | None, Query(alias="date")] = None,
        market_id: Annotated[list[UUID] | None, Query()] = None,
    ) -> list[AggregateResponse]:
        """Return per-market rollups for a date; admin only."""
        if not actor.is_admin:
            raise AuthorizationError("Only admins can read aggregates")
        config = deps.org_config_service
        day = on_date or config.local_date(deps.session_manager.clock())
        snapshots = deps.aggregation_engine.summarize(
            day, config.market_schedule(day), market_id
        )
        return [AggregateResponse.from_domain(snapshot) for snapshot in snapshots]

    return app
