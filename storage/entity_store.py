"""Per-id document store for goal and todo records.

Each entity is one JSON document (its context fields plus ``state``) keyed by
``(kind, entity_id)``. Callers that read, transition and write back an
entity hold ``lock(kind, entity_id)`` for the whole cycle so a machine never
works on stale context.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.errors import StorageError
from storage.schemas import Base, EntityRecord

logger = logging.getLogger("dadgpt.storage")


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class EntityStore:
    """SQLite-backed entity documents with per-entity locking."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path
        if db_path is None:
            self.engine = create_engine(
                "sqlite+pysqlite:///:memory:",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(f"sqlite+pysqlite:///{db_path}")
        self._session_factory = sessionmaker(bind=self.engine)
        self._locks: dict[tuple[str, str], _LockEntry] = {}
        self._locks_guard = threading.Lock()
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    @contextmanager
    def lock(self, kind: str, entity_id: str) -> Iterator[None]:
        """Serialize read-modify-write cycles for one entity.

        Entries are dropped once no caller holds or waits on them.
        """
        key = (kind, entity_id)
        with self._locks_guard:
            entry = self._locks.setdefault(key, _LockEntry())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    @staticmethod
    def _find(sess: Session, kind: str, entity_id: str) -> EntityRecord | None:
        stmt = select(EntityRecord).where(
            EntityRecord.kind == kind, EntityRecord.entity_id == entity_id
        )
        return sess.scalars(stmt).first()

    def read(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        """Return the stored document, or None when absent."""
        with self._session() as sess:
            row = self._find(sess, kind, entity_id)
            if row is None:
                return None
            if not isinstance(row.document, dict):
                raise StorageError(f"Corrupt {kind} record {entity_id}")
            return dict(row.document)

    def write(self, kind: str, entity_id: str, document: dict[str, Any]) -> None:
        """Insert or replace a document."""
        state = str(document.get("state", ""))
        with self._session() as sess:
            row = self._find(sess, kind, entity_id)
            if row is None:
                sess.add(
                    EntityRecord(kind=kind, entity_id=entity_id, state=state, document=document)
                )
            else:
                row.state = state
                row.document = document
        logger.debug("Stored %s %s (state=%s)", kind, entity_id, state)

    def remove(self, kind: str, entity_id: str) -> bool:
        with self._session() as sess:
            row = self._find(sess, kind, entity_id)
            if row is None:
                return False
            sess.delete(row)
        return True

    def exists(self, kind: str, entity_id: str) -> bool:
        with self._session() as sess:
            return self._find(sess, kind, entity_id) is not None

    def list_ids(self, kind: str) -> list[str]:
        with self._session() as sess:
            stmt = (
                select(EntityRecord.entity_id)
                .where(EntityRecord.kind == kind)
                .order_by(EntityRecord.id)
            )
            return list(sess.scalars(stmt).all())

    def list_documents(self, kind: str, state: str | None = None) -> list[dict[str, Any]]:
        """List documents of one kind in insertion order, optionally by state."""
        with self._session() as sess:
            stmt = select(EntityRecord).where(EntityRecord.kind == kind)
            if state is not None:
                stmt = stmt.where(EntityRecord.state == state)
            rows = sess.scalars(stmt.order_by(EntityRecord.id)).all()
            return [dict(row.document) for row in rows]

    def dispose(self) -> None:
        self.engine.dispose()
