"""Session repositories: SQLite persistence and an in-memory variant."""
from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Dict, List

from .models import Session
from .utils import dumps_json, ensure_directory, now_utc

logger = logging.getLogger(__name__)

DB_PATH = Path("data/niche_analyzer.db")


class SessionNotFoundError(LookupError):
    """Raised when an analysis id does not match any stored session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Analysis session {session_id!r} not found")
        self.session_id = session_id


class SessionRepository:
    """SQLite-backed store keeping one JSON document per session."""

    def __init__(self, db_path: Path | str = DB_PATH) -> None:
        self.db_path = Path(db_path)
        ensure_directory(self.db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    payload TEXT NOT NULL
                );
                """
            )

    def save(self, session: Session) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, created_at, updated_at, payload)
                VALUES (:id, :created_at, :updated_at, :payload)
                ON CONFLICT(id) DO UPDATE SET
                    updated_at = excluded.updated_at,
                    payload = excluded.payload;
                """,
                {
                    "id": session.id,
                    "created_at": session.created_at.isoformat(),
                    "updated_at": now_utc().isoformat(),
                    "payload": dumps_json(session.to_dict()),
                },
            )
        logger.debug("Saved session %s to %s", session.id, self.db_path)

    def load(self, session_id: str) -> Session:
        with self._connect() as conn:
            row = conn.execute("SELECT payload FROM sessions WHERE id = ?", (session_id,)).fetchone()
        if not row:
            raise SessionNotFoundError(session_id)
        return Session.from_dict(json.loads(row["payload"]))

    def exists(self, session_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row is not None

    def list_session_ids(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id FROM sessions ORDER BY created_at DESC").fetchall()
        return [row["id"] for row in rows]


class InMemorySessionRepository:
    """Process-local store; sessions are kept serialized so loads return copies."""

    def __init__(self) -> None:
        self._payloads: Dict[str, str] = {}
        self._created: Dict[str, str] = {}

    def save(self, session: Session) -> None:
        self._payloads[session.id] = dumps_json(session.to_dict())
        self._created[session.id] = session.created_at.isoformat()

    def load(self, session_id: str) -> Session:
        payload = self._payloads.get(session_id)
        if payload is None:
            raise SessionNotFoundError(session_id)
        return Session.from_dict(json.loads(payload))

    def exists(self, session_id: str) -> bool:
        return session_id in self._payloads

    def list_session_ids(self) -> List[str]:
        return sorted(self._created, key=self._created.__getitem__, reverse=True)
