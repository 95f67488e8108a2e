"""Top-level runtime wiring."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.config_resolver import ConfigResolver, default_home
from core.event_bus import EventBus
from executor.lifecycle_runner import ApprovalCallback, LifecycleRunner
from governance.audit_logger import AuditLogger
from governance.permission_engine import PermissionEngine
from storage.entity_store import EntityStore

ENV_DATA_DIR = "DADGPT_DATA_DIR"
DB_NAME = "dadgpt.db"
AUDIT_LOG_NAME = "audit.jsonl"


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    resolver: ConfigResolver
    permissions: PermissionEngine
    store: EntityStore
    runner: LifecycleRunner
    event_bus: EventBus
    data_dir: Path


def resolve_data_dir(environ: Mapping[str, str], home_dir: Path) -> Path:
    data_dir = environ.get(ENV_DATA_DIR)
    return Path(data_dir) if data_dir else home_dir / "data"


class Orchestrator:
    """Creates and wires runtime components for CLI and tool use."""

    def __init__(
        self,
        home_dir: Path | None = None,
        project_root: Path | None = None,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
        approve: ApprovalCallback | None = None,
    ) -> None:
        self.environ = os.environ if environ is None else environ
        self.home_dir = home_dir or default_home(self.environ)
        self.project_root = project_root
        self.overrides = overrides
        self.approve = approve

    def build(self) -> RuntimeBundle:
        resolver = ConfigResolver(
            home_dir=self.home_dir,
            project_root=self.project_root,
            environ=self.environ,
            overrides=self.overrides,
        )
        data_dir = resolve_data_dir(self.environ, self.home_dir)
        data_dir.mkdir(parents=True, exist_ok=True)

        permissions = PermissionEngine(resolver=resolver)
        store = EntityStore(data_dir / DB_NAME)
        event_bus = EventBus()
        runner = LifecycleRunner(
            permission_engine=permissions,
            store=store,
            audit_logger=AuditLogger(data_dir / AUDIT_LOG_NAME),
            event_bus=event_bus,
            approve=self.approve,
        )
        return RuntimeBundle(
            resolver=resolver,
            permissions=permissions,
            store=store,
            runner=runner,
            event_bus=event_bus,
            data_dir=data_dir,
        )
