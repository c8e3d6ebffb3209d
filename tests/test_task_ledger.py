"""Tests for the task ledger."""

from uuid import uuid4

import pytest

from field_reporting.domain.errors import (
    AuthorizationError,
    DuplicateTaskError,
    ImmutableRecordError,
    NotFoundError,
    NotificationError,
    SessionLockedError,
    ValidationError,
)
from field_reporting.domain.events import TASK_EVENTS_TABLE, ChangeAction
from field_reporting.domain.tasks import TaskRecord, TaskType
from field_reporting.services.tasks import task_type_from
from tests.conftest import TODAY, Workflow, build_windows, employee


def _open_session(workflow: Workflow, actor):  # type: ignore[no-untyped-def]
    session = workflow.session_manager.create(actor, uuid4(), TODAY)
    return workflow.session_manager.activate(actor, session.id)


def test_record_appends_tasks(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    first = workflow.task_ledger.record(
        actor, session.id, TaskType.STALL_SEARCH, {"stall": "A-12"}
    )
    workflow.task_ledger.record(actor, session.id, TaskType.STALL_SEARCH)

    assert first.payload == {"stall": "A-12"}
    assert workflow.task_ledger.count(session.id, TaskType.STALL_SEARCH) == 2
    assert workflow.task_ledger.count(session.id, TaskType.INSPECTION) == 0


def test_tasks_can_be_recorded_on_drafts(workflow: Workflow) -> None:
    actor = employee()
    session = workflow.session_manager.create(actor, uuid4(), TODAY)

    record = workflow.task_ledger.record(actor, session.id, TaskType.ALLOCATION)

    assert record.session_id == session.id


def test_singleton_types_are_recorded_once(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    workflow.task_ledger.record_marker(actor, session.id, TaskType.PUNCH_OUT)

    with pytest.raises(DuplicateTaskError):
        workflow.task_ledger.record_marker(actor, session.id, TaskType.PUNCH_OUT)


@pytest.mark.parametrize("task_type", ["punch_in", "punch_out"])
def test_record_refuses_punch_markers(workflow: Workflow, task_type: str) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    with pytest.raises(ValidationError) as exc_info:
        workflow.task_ledger.record(actor, session.id, task_type)  # type: ignore[arg-type]

    assert exc_info.value.field == "task_type"
    assert workflow.task_ledger.count(session.id, TaskType(task_type)) == 0


def test_record_marker_only_accepts_punch_types(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    with pytest.raises(ValidationError):
        workflow.task_ledger.record_marker(actor, session.id, TaskType.INSPECTION)


def test_refused_marker_leaves_punch_in_available(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    with pytest.raises(ValidationError):
        workflow.task_ledger.record(actor, session.id, TaskType.PUNCH_IN)

    punched = workflow.session_manager.punch_in(actor, session.id, build_windows())

    assert punched.punch_in_at is not None
    assert workflow.task_ledger.count(session.id, TaskType.PUNCH_IN) == 1


def test_record_rejects_unknown_session_and_foreign_owner(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    with pytest.raises(NotFoundError):
        workflow.task_ledger.record(actor, uuid4(), TaskType.FEEDBACK)
    with pytest.raises(AuthorizationError):
        workflow.task_ledger.record(employee(), session.id, TaskType.FEEDBACK)


def test_record_rejects_non_mapping_payload(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    with pytest.raises(ValidationError):
        workflow.task_ledger.record(
            actor,
            session.id,
            TaskType.FEEDBACK,
            ["not", "a", "mapping"],  # type: ignore[arg-type]
        )


def test_task_type_parsing() -> None:
    assert task_type_from("money_recovery") is TaskType.MONEY_RECOVERY
    with pytest.raises(ValidationError):
        task_type_from("selfie")


def test_finalized_session_rejects_writes(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    feedback = workflow.task_ledger.record(actor, session.id, TaskType.FEEDBACK)
    workflow.session_manager.finalize(actor, session.id, build_windows())

    with pytest.raises(SessionLockedError):
        workflow.task_ledger.record(actor, session.id, TaskType.INSPECTION)
    with pytest.raises(SessionLockedError):
        workflow.task_ledger.update(actor, feedback.id, {"rating": 1})
    with pytest.raises(SessionLockedError):
        workflow.task_ledger.delete(actor, feedback.id)


def test_feedback_can_be_edited_and_deleted(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    feedback = workflow.task_ledger.record(
        actor, session.id, TaskType.FEEDBACK, {"rating": 3}
    )

    updated = workflow.task_ledger.update(actor, feedback.id, {"rating": 5})
    assert updated.payload == {"rating": 5}
    assert updated.updated_at is not None

    workflow.task_ledger.delete(actor, feedback.id)
    assert workflow.task_ledger.count(session.id, TaskType.FEEDBACK) == 0


def test_other_records_are_immutable(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    inspection = workflow.task_ledger.record(actor, session.id, TaskType.INSPECTION)

    with pytest.raises(ImmutableRecordError):
        workflow.task_ledger.update(actor, inspection.id, {"note": "changed"})
    with pytest.raises(ImmutableRecordError):
        workflow.task_ledger.delete(actor, inspection.id)
    with pytest.raises(NotFoundError):
        workflow.task_ledger.delete(actor, uuid4())


def test_only_owner_edits_feedback(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    feedback = workflow.task_ledger.record(actor, session.id, TaskType.FEEDBACK)

    with pytest.raises(AuthorizationError):
        workflow.task_ledger.update(employee(), feedback.id, {"rating": 1})


def test_progress_counts_distinct_types(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    workflow.session_manager.punch_in(actor, session.id, build_windows())
    workflow.task_ledger.record(actor, session.id, TaskType.STALL_SEARCH)
    workflow.task_ledger.record(actor, session.id, TaskType.STALL_SEARCH)
    workflow.task_ledger.record(actor, session.id, TaskType.INSPECTION)

    progress = workflow.task_ledger.progress(session.id)

    assert workflow.task_ledger.count_distinct_task_types_completed(session.id) == 3
    assert progress.counts[TaskType.STALL_SEARCH] == 2
    assert progress.counts[TaskType.LAND_SEARCH] == 0
    assert progress.completed_types == {
        TaskType.PUNCH_IN,
        TaskType.STALL_SEARCH,
        TaskType.INSPECTION,
    }
    assert progress.completion_percent == 33.3


def test_changes_are_published(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)
    events = []
    workflow.bus.subscribe(TASK_EVENTS_TABLE, events.append)

    feedback = workflow.task_ledger.record(actor, session.id, TaskType.FEEDBACK)
    workflow.task_ledger.update(actor, feedback.id, {"rating": 4})
    workflow.task_ledger.delete(actor, feedback.id)

    assert [event.action for event in events] == [
        ChangeAction.INSERT,
        ChangeAction.UPDATE,
        ChangeAction.DELETE,
    ]
    assert {event.record_id for event in events} == {feedback.id}


def test_publish_failure_carries_committed_record(workflow: Workflow) -> None:
    actor = employee()
    session = _open_session(workflow, actor)

    def boom(_event) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("subscriber down")

    workflow.bus.subscribe(TASK_EVENTS_TABLE, boom)

    with pytest.raises(NotificationError) as exc_info:
        workflow.task_ledger.record(actor, session.id, TaskType.LAND_SEARCH)

    record = exc_info.value.result
    assert isinstance(record, TaskRecord)
    assert workflow.tasks.get_task(record.id) == record
