"""Goal and todo lifecycle state machines."""

from lifecycle.goal_machine import (
    GoalContext,
    GoalMachine,
    GoalState,
    Milestone,
    create_goal_context,
)
from lifecycle.machine import StateMachine, Transition
from lifecycle.todo_machine import (
    TodoContext,
    TodoMachine,
    TodoPriority,
    TodoState,
    create_todo_context,
)

MACHINES: dict[str, type[StateMachine]] = {
    GoalMachine.kind: GoalMachine,
    TodoMachine.kind: TodoMachine,
}

__all__ = [
    "GoalContext",
    "GoalMachine",
    "GoalState",
    "Milestone",
    "create_goal_context",
    "StateMachine",
    "Transition",
    "TodoContext",
    "TodoMachine",
    "TodoPriority",
    "TodoState",
    "create_todo_context",
    "MACHINES",
]
