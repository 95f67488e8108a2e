"""Transition-table state machine shared by the entity lifecycles."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter

from core.errors import StorageError

logger = logging.getLogger("dadgpt.lifecycle")

StateT = TypeVar("StateT", bound=Enum)
ContextT = TypeVar("ContextT", bound=BaseModel)

# A mutation returning False reports that the event matched nothing.
Mutation = Callable[[Any, Any, datetime], bool | None]

# Owned by identity, timestamps or lifecycle events; never edited directly.
PROTECTED_FIELDS = frozenset(
    {"id", "created_at", "updated_at", "completed_at", "progress", "blocked_by"}
)


def utc_now() -> datetime:
    """Return the current UTC instant."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Transition:
    """Target state plus an optional in-place mutation of a context copy.

    ``target=None`` keeps the current state (in-state context update).
    """

    target: Enum | None = None
    apply: Mutation | None = None


class StateMachine(Generic[StateT, ContextT]):
    """Applies typed events to a (state, context) pair via a lookup table.

    Subclasses declare ``initial_state``, ``terminal_states``,
    ``transitions`` keyed by ``(state, event.type)`` and ``event_adapter``.
    Pairs missing from the table are ignored: state and context stay as
    they were, ``updated_at`` included.
    """

    kind: ClassVar[str]
    state_type: ClassVar[type[Enum]]
    context_type: ClassVar[type[BaseModel]]
    initial_state: ClassVar[Enum]
    terminal_states: ClassVar[frozenset[Enum]] = frozenset()
    transitions: ClassVar[Mapping[tuple[Enum, str], Transition]]
    event_adapter: ClassVar[TypeAdapter[Any]]

    def __init__(
        self,
        context: ContextT,
        state: StateT | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.context: ContextT = context
        self.state: StateT = state if state is not None else self.initial_state  # type: ignore[assignment]
        self._clock = clock

    @property
    def is_terminal(self) -> bool:
        return self.state in self.terminal_states

    @classmethod
    def parse_event(cls, payload: Any) -> Any:
        """Validate a raw mapping (or pass through an event model)."""
        return cls.event_adapter.validate_python(payload)

    def can_accept(self, event: Any) -> bool:
        return (self.state, event.type) in self.transitions

    def send(self, event: Any) -> bool:
        """Process one event to completion; return True if it was applied."""
        transition = self.transitions.get((self.state, event.type))
        if transition is None:
            logger.debug(
                "%s %s ignored %s in state %s",
                self.kind,
                getattr(self.context, "id", "?"),
                event.type,
                self.state.value,
            )
            return False

        now = self._clock()
        context = self.context.model_copy(deep=True)
        if transition.apply is not None and transition.apply(context, event, now) is False:
            logger.debug(
                "%s %s: %s matched nothing, context unchanged",
                self.kind,
                getattr(self.context, "id", "?"),
                event.type,
            )
            return False
        context.updated_at = now  # type: ignore[attr-defined]

        previous = self.state
        self.context = context
        if transition.target is not None:
            self.state = transition.target  # type: ignore[assignment]
        logger.debug(
            "%s %s: %s -[%s]-> %s",
            self.kind,
            getattr(context, "id", "?"),
            previous.value,
            event.type,
            self.state.value,
        )
        return True

    def to_record(self) -> dict[str, Any]:
        """Serialize as a persisted document: context fields plus ``state``."""
        record = self.context.model_dump(mode="json")
        record["state"] = self.state.value
        return record

    @classmethod
    def editable_fields(cls) -> frozenset[str]:
        return frozenset(cls.context_type.model_fields) - PROTECTED_FIELDS

    def edit(self, **fields: Any) -> bool:
        """Replace editable context fields without a state change.

        Returns False (and keeps the current context) when nothing differs.

        Raises:
            ValueError: for protected or unknown fields.
            pydantic.ValidationError: when the edited context is invalid.
        """
        rejected = sorted(set(fields) - self.editable_fields())
        if rejected:
            raise ValueError(f"cannot edit {self.kind} fields: {', '.join(rejected)}")

        current = self.context.model_dump()
        context = self.context_type.model_validate({**current, **fields})
        if context.model_dump() == current:
            return False
        context.updated_at = self._clock()  # type: ignore[attr-defined]
        self.context = context  # type: ignore[assignment]
        logger.debug(
            "%s %s edited: %s", self.kind, getattr(context, "id", "?"), ", ".join(sorted(fields))
        )
        return True

    @classmethod
    def from_record(cls, record: Mapping[str, Any], **kwargs: Any) -> StateMachine[Any, Any]:
        """Rebuild a machine from a persisted document.

        Raises:
            StorageError: when the state or context fields cannot be decoded.
        """
        data = dict(record)
        raw_state = data.pop("state", None)
        try:
            state = cls.state_type(raw_state) if raw_state is not None else cls.initial_state
            context = cls.context_type.model_validate(data)
        except ValueError as exc:
            raise StorageError(
                f"Corrupt {cls.kind} record {data.get('id', '?')}: {exc}"
            ) from exc
        return cls(context=context, state=state, **kwargs)
