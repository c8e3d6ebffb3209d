"""Session lifecycle state machine."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol
from uuid import UUID

from field_reporting.domain.errors import (
    AlreadyPunchedInError,
    AlreadyPunchedOutError,
    AuthorizationError,
    DuplicateSessionError,
    FinalizationExpiredError,
    InvalidTransitionError,
    NotFoundError,
    NotificationError,
    NotPunchedInError,
    SessionLockedError,
    ValidationError,
    WindowClosedError,
    WorkflowError,
)
from field_reporting.domain.events import SESSIONS_TABLE, ChangeAction, ChangeEvent
from field_reporting.domain.models import FIELD_ROLES, Actor
from field_reporting.domain.sessions import Session, SessionStatus, day_of_week
from field_reporting.domain.tasks import TaskType
from field_reporting.domain.windows import (
    ATTENDANCE_WINDOW,
    FINALIZATION_WINDOW,
    Denied,
    DenialReason,
    TimeWindowConfig,
)
from field_reporting.services.clock import Clock, utc_now
from field_reporting.services.notifications import ChangeNotifier, publish_committed
from field_reporting.services.tasks import TaskLedger
from field_reporting.services.windows import TimeWindowPolicy

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(
        self, owner_id: UUID, market_id: UUID, session_date: date, day_of_week: int
    ) -> Session:
        """Insert a draft session; raise DuplicateSessionError on an open one."""

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""

    def get_open_session(self, owner_id: UUID, session_date: date) -> Session | None:
        """Return the owner's draft or active session for a date, if any."""

    def list_owner_sessions(self, owner_id: UUID, limit: int) -> list[Session]:
        """Return the owner's sessions, newest date first."""

    def transition(
        self,
        session_id: UUID,
        expected: Mapping[str, object],
        changes: Mapping[str, object],
    ) -> Session | None:
        """Apply ``changes`` only if every ``expected`` field still matches.

        Returns the updated session, or None when no row matched. ``None`` in
        ``expected`` means the column must be null.
        """


@dataclass
class SessionManager:
    """Owns every session state transition."""

    repository: SessionRepository
    task_ledger: TaskLedger
    notifier: ChangeNotifier
    clock: Clock = field(default=utc_now)

    def create(self, actor: Actor, market_id: UUID, session_date: date) -> Session:
        """Start a draft session for the actor on a date."""
        _require_field_role(actor)
        if not isinstance(session_date, date):
            raise ValidationError("session_date must be a date", field="session_date")
        session = self.repository.create_session(
            owner_id=actor.owner_id,
            market_id=market_id,
            session_date=session_date,
            day_of_week=day_of_week(session_date),
        )
        logger.info(
            "Created session",
            extra={"session_id": str(session.id), "owner_id": str(actor.owner_id)},
        )
        self._publish(ChangeAction.INSERT, session)
        return session

    def open_for_day(
        self, actor: Actor, market_id: UUID, session_date: date
    ) -> Session:
        """Return the actor's open session for the date, creating it if needed."""
        _require_field_role(actor)
        existing = self.repository.get_open_session(actor.owner_id, session_date)
        if existing is None:
            try:
                return self.create(actor, market_id, session_date)
            except DuplicateSessionError:
                existing = self.repository.get_open_session(
                    actor.owner_id, session_date
                )
                if existing is None:
                    raise
        if existing.market_id != market_id:
            raise DuplicateSessionError(
                f"An open session for {session_date} exists at another market"
            )
        return existing

    def get(self, actor: Actor, session_id: UUID) -> Session:
        """Return a session visible to the actor."""
        session = self._load(session_id)
        if session.owner_id != actor.owner_id and not actor.is_admin:
            raise AuthorizationError("Session belongs to another owner")
        return session

    def history(self, actor: Actor, limit: int = 30) -> list[Session]:
        """Return the actor's recent sessions."""
        if limit <= 0:
            raise ValidationError("limit must be positive", field="limit")
        return self.repository.list_owner_sessions(actor.owner_id, limit)

    def activate(self, actor: Actor, session_id: UUID) -> Session:
        """Move a draft session to active."""
        session = self._owned(actor, session_id)
        if session.status is not SessionStatus.DRAFT:
            raise InvalidTransitionError(
                f"Cannot activate a {session.status.value} session"
            )
        updated = self.repository.transition(
            session_id,
            expected={"status": SessionStatus.DRAFT},
            changes={"status": SessionStatus.ACTIVE},
        )
        if updated is None:
            raise InvalidTransitionError("Session is no longer a draft")
        logger.info("Activated session", extra={"session_id": str(session_id)})
        self._publish(ChangeAction.UPDATE, updated)
        return updated

    def punch_in(
        self,
        actor: Actor,
        session_id: UUID,
        windows: TimeWindowConfig,
        payload: Mapping[str, object] | None = None,
    ) -> Session:
        """Record the server punch-in time inside the attendance window."""
        session = self._owned(actor, session_id)
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Cannot punch in to a {session.status.value} session"
            )
        if session.punch_in_at is not None:
            raise AlreadyPunchedInError("Session is already punched in")

        now = self.clock()
        decision = TimeWindowPolicy(windows).evaluate(ATTENDANCE_WINDOW, now)
        if isinstance(decision, Denied):
            raise _window_error(
                WindowClosedError, "Punch-in window is closed", decision
            )

        updated = self.repository.transition(
            session_id,
            expected={"status": SessionStatus.ACTIVE, "punch_in_at": None},
            changes={"punch_in_at": now},
        )
        if updated is None:
            current = self._load(session_id)
            if current.punch_in_at is not None:
                raise AlreadyPunchedInError("Session is already punched in")
            raise InvalidTransitionError("Session is no longer active")

        self._record_marker(
            actor, updated, TaskType.PUNCH_IN, payload, revert={"punch_in_at": now}
        )
        logger.info("Punched in", extra={"session_id": str(session_id)})
        return updated

    def punch_out(
        self,
        actor: Actor,
        session_id: UUID,
        payload: Mapping[str, object] | None = None,
    ) -> Session:
        """Record the server punch-out time; the status is left unchanged."""
        session = self._owned(actor, session_id)
        if session.status is SessionStatus.FINALIZED:
            raise SessionLockedError(f"Session {session_id} is finalized")
        if session.punch_in_at is None:
            raise NotPunchedInError("Punch in before punching out")
        if session.punch_out_at is not None:
            raise AlreadyPunchedOutError("Session is already punched out")

        now = self.clock()
        updated = self.repository.transition(
            session_id,
            expected={"status": SessionStatus.ACTIVE, "punch_out_at": None},
            changes={"punch_out_at": now},
        )
        if updated is None:
            current = self._load(session_id)
            if current.punch_out_at is not None:
                raise AlreadyPunchedOutError("Session is already punched out")
            raise SessionLockedError(f"Session {session_id} is finalized")

        self._record_marker(
            actor, updated, TaskType.PUNCH_OUT, payload, revert={"punch_out_at": now}
        )
        logger.info("Punched out", extra={"session_id": str(session_id)})
        return updated

    def finalize(
        self, actor: Actor, session_id: UUID, windows: TimeWindowConfig
    ) -> Session:
        """Lock an active session before the configured deadline."""
        session = self._owned(actor, session_id)
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Cannot finalize a {session.status.value} session"
            )

        now = self.clock()
        decision = TimeWindowPolicy(windows).evaluate_deadline(
            FINALIZATION_WINDOW, now, session.session_date
        )
        if isinstance(decision, Denied):
            if decision.reason is DenialReason.WINDOW_NOT_CONFIGURED:
                raise _window_error(
                    WindowClosedError, "Finalization window is not configured", decision
                )
            raise _window_error(
                FinalizationExpiredError, "Finalization deadline has passed", decision
            )

        updated = self.repository.transition(
            session_id,
            expected={"status": SessionStatus.ACTIVE},
            changes={"status": SessionStatus.FINALIZED, "finalized_at": now},
        )
        if updated is None:
            raise InvalidTransitionError("Session is no longer active")
        logger.info("Finalized session", extra={"session_id": str(session_id)})
        self._publish(ChangeAction.UPDATE, updated)
        return updated

    def _record_marker(
        self,
        actor: Actor,
        session: Session,
        task_type: TaskType,
        payload: Mapping[str, object] | None,
        revert: dict[str, object],
    ) -> None:
        """Record a punch task, undoing the timestamp if the record fails."""
        try:
            self.task_ledger.record_marker(actor, session.id, task_type, payload)
        except NotificationError:
            self._publish(ChangeAction.UPDATE, session)
            raise NotificationError(
                f"Failed to publish {task_type.value} change", result=session
            ) from None
        except WorkflowError:
            self.repository.transition(
                session.id,
                expected=revert,
                changes={column: None for column in revert},
            )
            raise
        self._publish(ChangeAction.UPDATE, session)

    def _owned(self, actor: Actor, session_id: UUID) -> Session:
        _require_field_role(actor)
        session = self._load(session_id)
        if session.owner_id != actor.owner_id:
            raise AuthorizationError("Only the session owner can change it")
        return session

    def _load(self, session_id: UUID) -> Session:
        session = self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def _publish(self, action: ChangeAction, session: Session) -> None:
        event = ChangeEvent(
            table=SESSIONS_TABLE,
            action=action,
            record_id=session.id,
            occurred_at=self.clock(),
        )
        publish_committed(self.notifier, event, session)


def _require_field_role(actor: Actor) -> None:
    if actor.role not in FIELD_ROLES:
        raise AuthorizationError(f"Role {actor.role.value} cannot own sessions")


def _window_error(
    error_type: type[WindowClosedError] | type[FinalizationExpiredError],
    message: str,
    decision: Denied,
) -> WindowClosedError | FinalizationExpiredError:
    return error_type(
        message,
        window_name=decision.window_name,
        reason=decision.reason.value,
        opens_at=decision.opens_at,
        closes_at=decision.closes_at,
        deadline=decision.deadline,
    )
