"""Shared utility helpers for the niche analyzer."""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path


def ensure_directory(path: Path) -> None:
    """Create parent directories for ``path`` if they do not exist."""

    path.parent.mkdir(parents=True, exist_ok=True)


def now_utc() -> datetime:
    """Return the current UTC datetime without timezone info."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_session_id() -> str:
    return str(uuid.uuid4())


def dumps_json(data: object) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
