"""Goal lifecycle tests."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError

from core.errors import StorageError
from lifecycle.goal_machine import (
    AbandonGoal,
    CompleteGoal,
    CompleteMilestone,
    GoalContext,
    GoalMachine,
    GoalState,
    PauseGoal,
    ResumeGoal,
    StartGoal,
    UpdateProgress,
    create_goal_context,
)

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
T1 = datetime(2026, 1, 2, 9, 0, tzinfo=UTC)

EVENTS = {
    "START": StartGoal(),
    "PAUSE": PauseGoal(),
    "RESUME": ResumeGoal(),
    "COMPLETE": CompleteGoal(),
    "ABANDON": AbandonGoal(),
    "UPDATE_PROGRESS": UpdateProgress(progress=40),
    "COMPLETE_MILESTONE": CompleteMilestone(milestone_id="m1"),
}

# state -> {event: resulting state}; missing events are ignored
TABLE = {
    GoalState.NOT_STARTED: {"START": GoalState.IN_PROGRESS, "ABANDON": GoalState.ABANDONED},
    GoalState.IN_PROGRESS: {
        "PAUSE": GoalState.PAUSED,
        "COMPLETE": GoalState.COMPLETED,
        "ABANDON": GoalState.ABANDONED,
        "UPDATE_PROGRESS": GoalState.IN_PROGRESS,
        "COMPLETE_MILESTONE": GoalState.IN_PROGRESS,
    },
    GoalState.PAUSED: {"RESUME": GoalState.IN_PROGRESS, "ABANDON": GoalState.ABANDONED},
    GoalState.COMPLETED: {},
    GoalState.ABANDONED: {},
}


def make_goal(state: GoalState = GoalState.NOT_STARTED, **fields) -> GoalMachine:
    fields.setdefault("title", "Run a marathon")
    fields.setdefault(
        "milestones", [{"id": "m1", "title": "10k"}, {"id": "m2", "title": "Half"}]
    )
    context = create_goal_context("goal_1", created_at=T0, updated_at=T0, **fields)
    return GoalMachine(context, state=state, clock=lambda: T1)


@pytest.mark.parametrize(
    ("state", "event_type"),
    [(state, event_type) for state in GoalState for event_type in EVENTS],
)
def test_transition_table(state: GoalState, event_type: str) -> None:
    machine = make_goal(state)
    before = machine.context
    expected = TABLE[state].get(event_type)

    applied = machine.send(EVENTS[event_type])

    if expected is None:
        assert applied is False
        assert machine.state is state
        assert machine.context is before
        assert machine.context.updated_at == T0
    else:
        assert applied is True
        assert machine.state is expected
        assert machine.context.updated_at == T1


def test_new_goal_defaults() -> None:
    context = create_goal_context("goal_x", title="Read more")
    machine = GoalMachine(context)

    assert machine.state is GoalState.NOT_STARTED
    assert context.category == "Personal"
    assert context.progress == 0
    assert context.milestones == []
    assert context.due_date is None
    assert context.created_at == context.updated_at


@pytest.mark.parametrize(("raw", "stored"), [(150, 100), (-10, 0), (0, 0), (100, 100), (42, 42)])
def test_progress_is_clamped(raw: int, stored: int) -> None:
    machine = make_goal(GoalState.IN_PROGRESS)

    machine.send(UpdateProgress(progress=raw))

    assert machine.context.progress == stored


def test_progress_ignored_unless_in_progress() -> None:
    machine = make_goal(GoalState.PAUSED, progress=10)

    assert machine.send(UpdateProgress(progress=90)) is False
    assert machine.context.progress == 10


def test_complete_forces_full_progress() -> None:
    machine = make_goal()
    machine.send(StartGoal())
    machine.send(UpdateProgress(progress=30))

    machine.send(CompleteGoal())

    assert machine.state is GoalState.COMPLETED
    assert machine.context.progress == 100
    assert machine.is_terminal


def test_abandoned_goal_ignores_everything() -> None:
    machine = make_goal()
    machine.send(StartGoal())
    machine.send(AbandonGoal())
    snapshot = machine.context.model_dump()

    for event in EVENTS.values():
        assert machine.send(event) is False

    assert machine.state is GoalState.ABANDONED
    assert machine.context.model_dump() == snapshot


def test_pause_and_resume() -> None:
    machine = make_goal()

    machine.send(StartGoal())
    machine.send(PauseGoal())
    assert machine.state is GoalState.PAUSED

    machine.send(ResumeGoal())
    assert machine.state is GoalState.IN_PROGRESS


def test_complete_milestone_marks_only_matching_id() -> None:
    machine = make_goal(GoalState.IN_PROGRESS)

    machine.send(CompleteMilestone(milestone_id="m2"))

    assert [m.completed for m in machine.context.milestones] == [False, True]


def test_unknown_milestone_is_a_no_op() -> None:
    machine = make_goal(GoalState.IN_PROGRESS)
    before = machine.context

    assert machine.send(CompleteMilestone(milestone_id="nope")) is False

    assert machine.state is GoalState.IN_PROGRESS
    assert machine.context is before
    assert machine.context.updated_at == T0
    assert [m.completed for m in machine.context.milestones] == [False, False]


def test_edit_replaces_fields_without_state_change() -> None:
    machine = make_goal(GoalState.PAUSED)

    assert machine.edit(title="Run an ultra", due_date="2026-09-01") is True

    assert machine.state is GoalState.PAUSED
    assert machine.context.title == "Run an ultra"
    assert machine.context.due_date == date(2026, 9, 1)
    assert machine.context.updated_at == T1


def test_edit_with_same_values_is_a_no_op() -> None:
    machine = make_goal()
    before = machine.context

    assert machine.edit(title="Run a marathon") is False
    assert machine.context is before
    assert machine.context.updated_at == T0


@pytest.mark.parametrize("field", ["id", "progress", "created_at", "unknown"])
def test_edit_rejects_protected_fields(field: str) -> None:
    with pytest.raises(ValueError, match=field):
        make_goal().edit(**{field: "x"})


def test_edit_validates_values() -> None:
    machine = make_goal()

    with pytest.raises(ValidationError):
        machine.edit(due_date="not a date")
    assert machine.context.updated_at == T0


@pytest.mark.parametrize(
    "record",
    [
        {"id": "goal_1", "title": "x", "state": "bogus"},
        {"id": "goal_1", "progress": 400, "state": "paused"},
    ],
)
def test_from_record_reports_corrupt_documents(record: dict) -> None:
    with pytest.raises(StorageError) as exc_info:
        GoalMachine.from_record(record)

    assert exc_info.value.code == "STORAGE_ERROR"


def test_transition_does_not_mutate_previous_context() -> None:
    machine = make_goal(GoalState.IN_PROGRESS)
    before = machine.context

    machine.send(CompleteMilestone(milestone_id="m1"))

    assert before.milestones[0].completed is False
    assert before.updated_at == T0
    assert machine.context.milestones[0].completed is True


def test_parse_event_from_mapping() -> None:
    event = GoalMachine.parse_event({"type": "UPDATE_PROGRESS", "progress": 55})

    assert isinstance(event, UpdateProgress)
    assert event.progress == 55


@pytest.mark.parametrize(
    "payload", [{"type": "FLY"}, {"type": "UPDATE_PROGRESS"}, {"progress": 3}]
)
def test_parse_event_rejects_bad_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        GoalMachine.parse_event(payload)


def test_record_round_trip() -> None:
    machine = make_goal(due_date=date(2026, 6, 1))
    machine.send(StartGoal())
    machine.send(UpdateProgress(progress=25))

    record = machine.to_record()
    restored = GoalMachine.from_record(record)

    assert record["state"] == "in_progress"
    assert record["due_date"] == "2026-06-01"
    assert set(record) == set(GoalContext.model_fields) | {"state"}
    assert restored.state is GoalState.IN_PROGRESS
    assert restored.context == machine.context
