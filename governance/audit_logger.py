"""Structured JSONL audit trail of permission decisions and lifecycle outcomes."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


class AuditLogger:
    """Appends one JSON line per tool decision/outcome.

    With ``log_path=None`` records only go to the ``dadgpt.audit`` logger.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self.log_path = log_path
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("dadgpt.audit")

    @staticmethod
    def _hash_inputs(inputs: dict[str, Any]) -> str:
        payload = json.dumps(inputs, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def log(
        self,
        tool: str,
        resource: str | None,
        decision: str,
        outcome: str,
        inputs: dict[str, Any] | None = None,
        reason: str = "",
    ) -> dict[str, Any]:
        """Record one event and return it."""
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "tool": tool,
            "resource": resource,
            "decision": decision,
            "outcome": outcome,
            "inputs_hash": self._hash_inputs(inputs or {}),
            "reason": reason,
        }
        line = json.dumps(event, ensure_ascii=True)
        if self.log_path is not None:
            with self.log_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        self.logger.info(line)
        return event

    def read_events(self) -> list[dict[str, Any]]:
        """Load all recorded events (empty when file-less or missing)."""
        if self.log_path is None or not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
