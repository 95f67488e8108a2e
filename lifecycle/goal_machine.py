"""Goal lifecycle.

not_started -> in_progress <-> paused, with completed and abandoned as
terminal states. Progress and milestone updates only apply while
in_progress.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from lifecycle.machine import StateMachine, Transition


class GoalState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Milestone(BaseModel):
    id: str
    title: str
    completed: bool = False


class GoalContext(BaseModel):
    """Goal record owned by its machine."""

    id: str
    title: str = ""
    category: str = "Personal"
    description: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    milestones: list[Milestone] = Field(default_factory=list)
    due_date: date | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StartGoal(BaseModel):
    type: Literal["START"] = "START"


class PauseGoal(BaseModel):
    type: Literal["PAUSE"] = "PAUSE"


class ResumeGoal(BaseModel):
    type: Literal["RESUME"] = "RESUME"


class CompleteGoal(BaseModel):
    type: Literal["COMPLETE"] = "COMPLETE"


class AbandonGoal(BaseModel):
    type: Literal["ABANDON"] = "ABANDON"


class UpdateProgress(BaseModel):
    type: Literal["UPDATE_PROGRESS"] = "UPDATE_PROGRESS"
    progress: int


class CompleteMilestone(BaseModel):
    type: Literal["COMPLETE_MILESTONE"] = "COMPLETE_MILESTONE"
    milestone_id: str


GoalEvent = Annotated[
    Union[
        StartGoal,
        PauseGoal,
        ResumeGoal,
        CompleteGoal,
        AbandonGoal,
        UpdateProgress,
        CompleteMilestone,
    ],
    Field(discriminator="type"),
]


def _set_progress(context: GoalContext, event: UpdateProgress, now: datetime) -> None:
    context.progress = min(100, max(0, event.progress))


def _complete_milestone(context: GoalContext, event: CompleteMilestone, now: datetime) -> bool:
    matched = False
    for milestone in context.milestones:
        if milestone.id == event.milestone_id:
            milestone.completed = True
            matched = True
    return matched


def _force_full_progress(context: GoalContext, event: CompleteGoal, now: datetime) -> None:
    context.progress = 100


S = GoalState

GOAL_TRANSITIONS: dict[tuple[Enum, str], Transition] = {
    (S.NOT_STARTED, "START"): Transition(S.IN_PROGRESS),
    (S.NOT_STARTED, "ABANDON"): Transition(S.ABANDONED),
    (S.IN_PROGRESS, "PAUSE"): Transition(S.PAUSED),
    (S.IN_PROGRESS, "COMPLETE"): Transition(S.COMPLETED, _force_full_progress),
    (S.IN_PROGRESS, "ABANDON"): Transition(S.ABANDONED),
    (S.IN_PROGRESS, "UPDATE_PROGRESS"): Transition(None, _set_progress),
    (S.IN_PROGRESS, "COMPLETE_MILESTONE"): Transition(None, _complete_milestone),
    (S.PAUSED, "RESUME"): Transition(S.IN_PROGRESS),
    (S.PAUSED, "ABANDON"): Transition(S.ABANDONED),
}


def create_goal_context(id: str, **overrides: Any) -> GoalContext:
    """Build a GoalContext from defaults plus caller overrides."""
    now = datetime.now(UTC)
    data: dict[str, Any] = {"created_at": now, "updated_at": now}
    data.update({k: v for k, v in overrides.items() if v is not None})
    data["id"] = id
    return GoalContext.model_validate(data)


class GoalMachine(StateMachine[GoalState, GoalContext]):
    """State machine for a single goal."""

    kind = "goal"
    state_type = GoalState
    context_type = GoalContext
    initial_state = GoalState.NOT_STARTED
    terminal_states = frozenset({GoalState.COMPLETED, GoalState.ABANDONED})
    transitions = GOAL_TRANSITIONS
    event_adapter: TypeAdapter[Any] = TypeAdapter(GoalEvent)
