"""Todo lifecycle.

No state is terminal: done and cancelled todos can be reopened.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from lifecycle.machine import StateMachine, Transition


class TodoState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    DONE = "done"
    CANCELLED = "cancelled"


class TodoPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TodoContext(BaseModel):
    """Todo record owned by its machine."""

    id: str
    title: str = ""
    description: str = ""
    priority: TodoPriority = TodoPriority.MEDIUM
    due_date: date | None = None
    tags: list[str] = Field(default_factory=list)
    goal_id: str | None = None
    blocked_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None


class StartTodo(BaseModel):
    type: Literal["START"] = "START"


class CompleteTodo(BaseModel):
    type: Literal["COMPLETE"] = "COMPLETE"


class BlockTodo(BaseModel):
    type: Literal["BLOCK"] = "BLOCK"
    blocked_by: str


class UnblockTodo(BaseModel):
    type: Literal["UNBLOCK"] = "UNBLOCK"


class DeferTodo(BaseModel):
    type: Literal["DEFER"] = "DEFER"
    until: date


class CancelTodo(BaseModel):
    type: Literal["CANCEL"] = "CANCEL"


class ReopenTodo(BaseModel):
    type: Literal["REOPEN"] = "REOPEN"


TodoEvent = Annotated[
    Union[
        StartTodo,
        CompleteTodo,
        BlockTodo,
        UnblockTodo,
        DeferTodo,
        CancelTodo,
        ReopenTodo,
    ],
    Field(discriminator="type"),
]


def _mark_done(context: TodoContext, event: CompleteTodo, now: datetime) -> None:
    context.completed_at = now


def _block(context: TodoContext, event: BlockTodo, now: datetime) -> None:
    context.blocked_by = event.blocked_by


def _unblock(context: TodoContext, event: UnblockTodo, now: datetime) -> None:
    context.blocked_by = None


def _defer(context: TodoContext, event: DeferTodo, now: datetime) -> None:
    context.due_date = event.until


def _reopen(context: TodoContext, event: ReopenTodo, now: datetime) -> None:
    context.completed_at = None


S = TodoState

TODO_TRANSITIONS: dict[tuple[Enum, str], Transition] = {
    (S.PENDING, "START"): Transition(S.IN_PROGRESS),
    (S.PENDING, "COMPLETE"): Transition(S.DONE, _mark_done),
    (S.PENDING, "DEFER"): Transition(S.DEFERRED, _defer),
    (S.PENDING, "CANCEL"): Transition(S.CANCELLED),
    (S.IN_PROGRESS, "COMPLETE"): Transition(S.DONE, _mark_done),
    (S.IN_PROGRESS, "BLOCK"): Transition(S.BLOCKED, _block),
    (S.IN_PROGRESS, "DEFER"): Transition(S.DEFERRED, _defer),
    (S.IN_PROGRESS, "CANCEL"): Transition(S.CANCELLED),
    (S.BLOCKED, "UNBLOCK"): Transition(S.IN_PROGRESS, _unblock),
    (S.BLOCKED, "CANCEL"): Transition(S.CANCELLED),
    (S.DEFERRED, "START"): Transition(S.IN_PROGRESS),
    (S.DEFERRED, "CANCEL"): Transition(S.CANCELLED),
    (S.DONE, "REOPEN"): Transition(S.PENDING, _reopen),
    (S.CANCELLED, "REOPEN"): Transition(S.PENDING, _reopen),
}


def create_todo_context(id: str, **overrides: Any) -> TodoContext:
    """Build a TodoContext from defaults plus caller overrides."""
    now = datetime.now(UTC)
    data: dict[str, Any] = {"created_at": now, "updated_at": now}
    data.update({k: v for k, v in overrides.items() if v is not None})
    data["id"] = id
    return TodoContext.model_validate(data)


class TodoMachine(StateMachine[TodoState, TodoContext]):
    """State machine for a single todo."""

    kind = "todo"
    state_type = TodoState
    context_type = TodoContext
    initial_state = TodoState.PENDING
    transitions = TODO_TRANSITIONS
    event_adapter: TypeAdapter[Any] = TypeAdapter(TodoEvent)
