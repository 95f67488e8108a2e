"""CLI entrypoint for dadgpt."""

from __future__ import annotations

from typing import Optional

import typer

from core.logging_setup import configure_logging
from ui.cli import commands

app = typer.Typer(help="DadGPT policy and lifecycle core")
config_app = typer.Typer(help="Configuration commands")
permission_app = typer.Typer(help="Permission commands")
goals_app = typer.Typer(help="Goal commands")
todos_app = typer.Typer(help="Todo commands")

YES_OPTION = typer.Option(False, "--yes", "-y", help="Approve 'ask' permissions without prompting")


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", help="Verbose logging with tracebacks"),
) -> None:
    """Configure logging for every command."""
    configure_logging("DEBUG" if debug else "WARN")


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


@config_app.command("set")
def config_set_cmd(
    key: str = typer.Argument(..., help="Dotted key, e.g. theme or providers.openai.api_key"),
    value: str = typer.Argument(..., help="Value, parsed as YAML"),
) -> None:
    """Save a value to the global config."""
    commands.config_set(key=key, value=value)


@permission_app.command("check")
def permission_check_cmd(
    tool: str = typer.Argument(..., help="Tool identifier"),
    resource: Optional[str] = typer.Option(None, "--resource", "-r"),
) -> None:
    """Print allow, deny or ask for a tool."""
    commands.permission_check(tool=tool, resource=resource)


@goals_app.command("add")
def goals_add_cmd(
    title: str = typer.Argument(..., help="Goal title"),
    category: Optional[str] = typer.Option(None, help="Goal category"),
    description: Optional[str] = typer.Option(None, help="Goal description"),
    due: Optional[str] = typer.Option(None, help="Due date (YYYY-MM-DD)"),
    milestone: list[str] = typer.Option([], "--milestone", "-m", help="Milestone title (repeatable)"),
    yes: bool = YES_OPTION,
) -> None:
    """Add a new goal."""
    commands.goals_add(
        title=title,
        category=category,
        description=description,
        due=due,
        milestones=milestone,
        assume_yes=yes,
    )


@goals_app.command("list")
def goals_list_cmd(state: Optional[str] = typer.Option(None, help="Filter by state")) -> None:
    """List goals."""
    commands.records_list("goal", state=state)


@goals_app.command("event")
def goals_event_cmd(
    goal_id: str = typer.Argument(...),
    event: str = typer.Argument(..., help="START, PAUSE, RESUME, COMPLETE, ABANDON, UPDATE_PROGRESS, COMPLETE_MILESTONE"),
    progress: Optional[int] = typer.Option(None, help="Progress for UPDATE_PROGRESS"),
    milestone_id: Optional[str] = typer.Option(None, help="Milestone for COMPLETE_MILESTONE"),
    yes: bool = YES_OPTION,
) -> None:
    """Send a lifecycle event to a goal."""
    commands.records_event(
        "goal", goal_id, event, yes, progress=progress, milestone_id=milestone_id
    )


@goals_app.command("update")
def goals_update_cmd(
    goal_id: str = typer.Argument(...),
    title: Optional[str] = typer.Option(None, help="New title"),
    category: Optional[str] = typer.Option(None, help="New category"),
    description: Optional[str] = typer.Option(None, help="New description"),
    due: Optional[str] = typer.Option(None, help="New due date (YYYY-MM-DD)"),
    yes: bool = YES_OPTION,
) -> None:
    """Edit a goal without changing its state."""
    commands.records_update(
        "goal",
        goal_id,
        yes,
        title=title,
        category=category,
        description=description,
        due_date=due,
    )


@goals_app.command("remove")
def goals_remove_cmd(goal_id: str = typer.Argument(...), yes: bool = YES_OPTION) -> None:
    """Delete a goal."""
    commands.records_remove("goal", goal_id, yes)


@todos_app.command("add")
def todos_add_cmd(
    title: str = typer.Argument(..., help="Todo title"),
    priority: Optional[str] = typer.Option(None, help="low, medium or high"),
    due: Optional[str] = typer.Option(None, help="Due date (YYYY-MM-DD)"),
    tag: list[str] = typer.Option([], "--tag", "-t", help="Tag (repeatable)"),
    goal: Optional[str] = typer.Option(None, help="Linked goal id"),
    yes: bool = YES_OPTION,
) -> None:
    """Add a new todo."""
    commands.todos_add(
        title=title, priority=priority, due=due, tags=tag, goal_id=goal, assume_yes=yes
    )


@todos_app.command("list")
def todos_list_cmd(state: Optional[str] = typer.Option(None, help="Filter by state")) -> None:
    """List todos."""
    commands.records_list("todo", state=state)


@todos_app.command("event")
def todos_event_cmd(
    todo_id: str = typer.Argument(...),
    event: str = typer.Argument(..., help="START, COMPLETE, BLOCK, UNBLOCK, DEFER, CANCEL, REOPEN"),
    blocked_by: Optional[str] = typer.Option(None, help="Blocking todo id for BLOCK"),
    until: Optional[str] = typer.Option(None, help="Target date for DEFER (YYYY-MM-DD)"),
    yes: bool = YES_OPTION,
) -> None:
    """Send a lifecycle event to a todo."""
    commands.records_event("todo", todo_id, event, yes, blocked_by=blocked_by, until=until)


@todos_app.command("update")
def todos_update_cmd(
    todo_id: str = typer.Argument(...),
    title: Optional[str] = typer.Option(None, help="New title"),
    description: Optional[str] = typer.Option(None, help="New description"),
    priority: Optional[str] = typer.Option(None, help="low, medium or high"),
    due: Optional[str] = typer.Option(None, help="New due date (YYYY-MM-DD)"),
    goal: Optional[str] = typer.Option(None, help="Linked goal id"),
    tag: list[str] = typer.Option([], "--tag", "-t", help="Replacement tags (repeatable)"),
    yes: bool = YES_OPTION,
) -> None:
    """Edit a todo without changing its state."""
    commands.records_update(
        "todo",
        todo_id,
        yes,
        title=title,
        description=description,
        priority=priority,
        due_date=due,
        goal_id=goal,
        tags=tag or None,
    )


@todos_app.command("remove")
def todos_remove_cmd(todo_id: str = typer.Argument(...), yes: bool = YES_OPTION) -> None:
    """Delete a todo."""
    commands.records_remove("todo", todo_id, yes)


app.add_typer(config_app, name="config")
app.add_typer(permission_app, name="permission")
app.add_typer(goals_app, name="goals")
app.add_typer(todos_app, name="todos")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
