"""In-process event bus for entity lifecycle notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("dadgpt.bus")

EventHandler = Callable[[dict[str, Any]], None]


class EventBus:
    """Dispatches events to subscribers by topic (``goal.created``,
    ``todo.transitioned``, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers.get(topic, []):
                self._handlers[topic].remove(handler)

        return unsubscribe

    def emit(self, topic: str, payload: dict[str, Any]) -> None:
        """Deliver to all subscribers; a failing subscriber does not stop the rest."""
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("Subscriber for %s failed", topic)
