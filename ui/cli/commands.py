"""Typer command handlers."""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
import yaml

from core.errors import ConfigError, DadGPTError
from core.logging_setup import format_error
from core.orchestrator import Orchestrator, RuntimeBundle


def _runtime(assume_yes: bool = False) -> RuntimeBundle:
    def approve(tool: str, resource: str | None) -> bool:
        if assume_yes:
            return True
        return typer.confirm(f"Allow '{tool}' on {resource or 'new record'}?", default=False)

    return Orchestrator(approve=approve).build()


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(exc: BaseException) -> NoReturn:
    typer.echo(format_error(exc), err=True)
    raise typer.Exit(code=1)


def _finish(result: dict[str, Any]) -> None:
    _echo_json(result)
    if not result.get("success"):
        raise typer.Exit(code=1)


def _nested(dotted_key: str, value: Any) -> dict[str, Any]:
    """Turn ``providers.openai.api_key`` + value into a nested mapping."""
    partial: dict[str, Any] = {}
    cursor = partial
    *parents, leaf = dotted_key.split(".")
    for part in parents:
        cursor = cursor.setdefault(part, {})
    cursor[leaf] = value
    return partial


def config_show() -> None:
    """Show effective configuration."""
    bundle = _runtime()
    try:
        config = bundle.resolver.get()
    except DadGPTError as exc:
        _fail(exc)
    _echo_json(config.model_dump(mode="json"))


def config_set(key: str, value: str) -> None:
    """Persist one value into the global config document."""
    bundle = _runtime()
    try:
        parsed = yaml.safe_load(value) if value.strip() else value
    except yaml.YAMLError as exc:
        _fail(ConfigError(f"Cannot parse value for {key}: {exc}"))
    try:
        bundle.resolver.save(_nested(key, parsed))
    except DadGPTError as exc:
        _fail(exc)
    typer.echo(f"Saved {key} to {bundle.resolver.global_config_path}")


def permission_check(tool: str, resource: str | None) -> None:
    """Print the permission decision for a tool."""
    bundle = _runtime()
    typer.echo(bundle.permissions.check(tool, resource).value)


def goals_add(
    title: str,
    category: str | None,
    description: str | None,
    due: str | None,
    milestones: list[str],
    assume_yes: bool,
) -> None:
    bundle = _runtime(assume_yes)
    result = bundle.runner.create_goal(
        title,
        category=category,
        description=description,
        due_date=due,
        milestones=[
            {"id": f"m{index}", "title": text} for index, text in enumerate(milestones, start=1)
        ],
    )
    _finish(result)


def todos_add(
    title: str,
    priority: str | None,
    due: str | None,
    tags: list[str],
    goal_id: str | None,
    assume_yes: bool,
) -> None:
    bundle = _runtime(assume_yes)
    result = bundle.runner.create_todo(
        title, priority=priority, due_date=due, tags=tags, goal_id=goal_id
    )
    _finish(result)


def records_list(kind: str, state: str | None) -> None:
    bundle = _runtime()
    _echo_json(bundle.runner.list_records(kind, state=state))


def records_update(kind: str, entity_id: str, assume_yes: bool, **fields: Any) -> None:
    """Edit fields of a stored goal or todo; unset options are left alone."""
    bundle = _runtime(assume_yes)
    _finish(bundle.runner.update(kind, entity_id, **fields))


def records_remove(kind: str, entity_id: str, assume_yes: bool) -> None:
    bundle = _runtime(assume_yes)
    _finish(bundle.runner.remove(kind, entity_id))


def records_event(kind: str, entity_id: str, event_type: str, assume_yes: bool, **fields: Any) -> None:
    """Send one lifecycle event to a stored goal or todo."""
    bundle = _runtime(assume_yes)
    payload = {"type": event_type.upper()}
    payload.update({key: value for key, value in fields.items() if value is not None})
    _finish(bundle.runner.dispatch(kind, entity_id, payload))
