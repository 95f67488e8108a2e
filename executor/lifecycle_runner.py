"""Permission-gated execution of goal/todo lifecycle operations."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from core.errors import StorageError
from core.event_bus import EventBus
from governance.audit_logger import AuditLogger
from governance.permission_engine import PermissionDecision, PermissionEngine
from lifecycle import MACHINES, StateMachine, create_goal_context, create_todo_context
from storage.entity_store import EntityStore

logger = logging.getLogger("dadgpt.runner")

ApprovalCallback = Callable[[str, str | None], bool]

_FACTORIES = {
    "goal": create_goal_context,
    "todo": create_todo_context,
}


def new_entity_id(kind: str) -> str:
    return f"{kind}_{uuid.uuid4().hex}"


class LifecycleRunner:
    """Runs lifecycle requests only when policy allows.

    A request flows permission check -> state machine -> store. ``ask``
    decisions are resolved through ``approve(tool, resource)``; without a
    callback they are treated as refused.
    """

    def __init__(
        self,
        permission_engine: PermissionEngine,
        store: EntityStore,
        audit_logger: AuditLogger | None = None,
        event_bus: EventBus | None = None,
        approve: ApprovalCallback | None = None,
    ) -> None:
        self.permission_engine = permission_engine
        self.store = store
        self.audit_logger = audit_logger or AuditLogger()
        self.event_bus = event_bus or EventBus()
        self.approve = approve

    def _authorize(
        self, tool: str, resource: str | None
    ) -> tuple[PermissionDecision, str | None]:
        """Return the decision and a block reason (None when permitted)."""
        decision = self.permission_engine.check(tool, resource)
        if decision is PermissionDecision.DENY:
            return decision, f"Tool '{tool}' denied by policy."
        if decision is PermissionDecision.ASK:
            if self.approve is None or not self.approve(tool, resource):
                return decision, f"Tool '{tool}' requires confirmation."
        return decision, None

    def _blocked(
        self,
        tool: str,
        resource: str | None,
        decision: PermissionDecision,
        reason: str,
        inputs: dict[str, Any],
    ) -> dict[str, Any]:
        self.audit_logger.log(
            tool=tool,
            resource=resource,
            decision=decision.value,
            outcome="blocked",
            inputs=inputs,
            reason=reason,
        )
        return {
            "success": False,
            "tool": tool,
            "resource": resource,
            "decision": decision.value,
            "outcome": f"Blocked: {reason}",
        }

    def _failed(
        self,
        tool: str,
        resource: str | None,
        decision: PermissionDecision,
        reason: str,
        inputs: dict[str, Any],
    ) -> dict[str, Any]:
        self.audit_logger.log(
            tool=tool,
            resource=resource,
            decision=decision.value,
            outcome="failed",
            inputs=inputs,
            reason=reason,
        )
        return {
            "success": False,
            "tool": tool,
            "resource": resource,
            "decision": decision.value,
            "outcome": f"Failed: {reason}",
        }

    def create(self, kind: str, **fields: Any) -> dict[str, Any]:
        """Create and persist a new entity in its initial state."""
        machine_cls = MACHINES[kind]
        decision, reason = self._authorize(kind, None)
        if reason is not None:
            return self._blocked(kind, None, decision, reason, fields)

        entity_id = new_entity_id(kind)
        try:
            context = _FACTORIES[kind](entity_id, **fields)
        except ValidationError as exc:
            return self._failed(kind, entity_id, decision, str(exc), fields)

        machine = machine_cls(context=context)
        record = machine.to_record()
        with self.store.lock(kind, entity_id):
            self.store.write(kind, entity_id, record)
        self.audit_logger.log(
            tool=kind, resource=entity_id, decision=decision.value, outcome="created", inputs=fields
        )
        self.event_bus.emit(f"{kind}.created", {"id": entity_id, "record": record})
        logger.info("Created %s %s", kind, entity_id)
        return {
            "success": True,
            "tool": kind,
            "resource": entity_id,
            "decision": decision.value,
            "outcome": f"Created {kind} {entity_id}",
            "state": machine.state.value,
            "changed": True,
            "record": record,
        }

    def create_goal(self, title: str, **fields: Any) -> dict[str, Any]:
        return self.create("goal", title=title, **fields)

    def create_todo(self, title: str, **fields: Any) -> dict[str, Any]:
        return self.create("todo", title=title, **fields)

    def load(self, kind: str, entity_id: str) -> StateMachine[Any, Any] | None:
        """Rebuild the machine for a stored entity (no permission check).

        Raises:
            StorageError: when the stored document cannot be decoded.
        """
        record = self.store.read(kind, entity_id)
        if record is None:
            return None
        return MACHINES[kind].from_record(record)

    def dispatch(self, kind: str, entity_id: str, event: Any) -> dict[str, Any]:
        """Apply one lifecycle event to a stored entity.

        ``event`` may be an event model or a mapping such as
        ``{"type": "UPDATE_PROGRESS", "progress": 40}``. An event the current
        state ignores is reported with ``changed: False``; it is not an error.
        """
        machine_cls = MACHINES[kind]
        inputs = event.model_dump(mode="json") if isinstance(event, BaseModel) else dict(event)
        decision, reason = self._authorize(kind, entity_id)
        if reason is not None:
            return self._blocked(kind, entity_id, decision, reason, inputs)

        try:
            parsed = machine_cls.parse_event(event)
        except ValidationError as exc:
            return self._failed(kind, entity_id, decision, f"invalid event: {exc}", inputs)

        with self.store.lock(kind, entity_id):
            try:
                machine = self.load(kind, entity_id)
            except StorageError as exc:
                return self._failed(kind, entity_id, decision, exc.message, inputs)
            if machine is None:
                return self._failed(kind, entity_id, decision, f"{kind} {entity_id} not found", inputs)
            previous = machine.state
            changed = machine.send(parsed)
            record = machine.to_record()
            if changed:
                self.store.write(kind, entity_id, record)

        outcome = "transitioned" if changed else "ignored"
        self.audit_logger.log(
            tool=kind,
            resource=entity_id,
            decision=decision.value,
            outcome=outcome,
            inputs=inputs,
            reason="" if changed else f"{parsed.type} had no effect in state {previous.value}",
        )
        if changed:
            self.event_bus.emit(
                f"{kind}.transitioned",
                {
                    "id": entity_id,
                    "event": parsed.type,
                    "from": previous.value,
                    "to": machine.state.value,
                },
            )
        return {
            "success": True,
            "tool": kind,
            "resource": entity_id,
            "decision": decision.value,
            "outcome": f"{parsed.type} {outcome}",
            "previous_state": previous.value,
            "state": machine.state.value,
            "changed": changed,
            "record": record,
        }

    def update(self, kind: str, entity_id: str, **fields: Any) -> dict[str, Any]:
        """Edit context fields of a stored entity without changing its state.

        ``None`` values mean "leave as is". An edit that changes nothing is
        reported with ``changed: False`` and nothing is written.
        """
        inputs = {key: value for key, value in fields.items() if value is not None}
        decision, reason = self._authorize(kind, entity_id)
        if reason is not None:
            return self._blocked(kind, entity_id, decision, reason, inputs)

        with self.store.lock(kind, entity_id):
            try:
                machine = self.load(kind, entity_id)
            except StorageError as exc:
                return self._failed(kind, entity_id, decision, exc.message, inputs)
            if machine is None:
                return self._failed(kind, entity_id, decision, f"{kind} {entity_id} not found", inputs)
            try:
                changed = machine.edit(**inputs)
            except ValueError as exc:
                return self._failed(kind, entity_id, decision, str(exc), inputs)
            record = machine.to_record()
            if changed:
                self.store.write(kind, entity_id, record)

        outcome = "updated" if changed else "unchanged"
        self.audit_logger.log(
            tool=kind, resource=entity_id, decision=decision.value, outcome=outcome, inputs=inputs
        )
        if changed:
            self.event_bus.emit(
                f"{kind}.updated", {"id": entity_id, "fields": sorted(inputs)}
            )
        return {
            "success": True,
            "tool": kind,
            "resource": entity_id,
            "decision": decision.value,
            "outcome": f"{kind} {entity_id} {outcome}",
            "state": machine.state.value,
            "changed": changed,
            "record": record,
        }

    def remove(self, kind: str, entity_id: str) -> dict[str, Any]:
        """Delete a stored entity."""
        decision, reason = self._authorize(kind, entity_id)
        if reason is not None:
            return self._blocked(kind, entity_id, decision, reason, {})

        with self.store.lock(kind, entity_id):
            removed = self.store.remove(kind, entity_id)
        if not removed:
            return self._failed(kind, entity_id, decision, f"{kind} {entity_id} not found", {})

        self.audit_logger.log(
            tool=kind, resource=entity_id, decision=decision.value, outcome="removed"
        )
        self.event_bus.emit(f"{kind}.removed", {"id": entity_id})
        logger.info("Removed %s %s", kind, entity_id)
        return {
            "success": True,
            "tool": kind,
            "resource": entity_id,
            "decision": decision.value,
            "outcome": f"Removed {kind} {entity_id}",
            "changed": True,
        }

    def list_records(self, kind: str, state: str | None = None) -> list[dict[str, Any]]:
        """List stored records of one kind, optionally filtered by state."""
        return self.store.list_documents(kind, state=state)
