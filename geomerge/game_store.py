from __future__ import annotations

import logging

import redis
from pydantic import ValidationError

from geomerge.api.models import PersistedSnapshot

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "geomerge:session:"  # + {session_id}


def _session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def save_snapshot(*, r: redis.Redis, session_id: str, snapshot: PersistedSnapshot) -> bool:
    """Best-effort write. Returns False (and logs) if storage refused it."""

    try:
        r.set(_session_key(session_id), snapshot.model_dump_json(by_alias=True))
    except redis.RedisError as e:
        logger.warning("could not save session %s: %s", session_id, e)
        return False
    return True


def load_snapshot(*, r: redis.Redis, session_id: str) -> PersistedSnapshot | None:
    """Return the stored snapshot, or None if missing, unreadable or malformed."""

    try:
        raw = r.get(_session_key(session_id))
    except (redis.RedisError, UnicodeDecodeError) as e:
        logger.warning("could not load session %s: %s", session_id, e)
        return None
    if not raw:
        return None

    try:
        return PersistedSnapshot.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("ignoring malformed snapshot for session %s (%d errors)", session_id, e.error_count())
        return None


def clear_snapshot(*, r: redis.Redis, session_id: str) -> bool:
    try:
        r.delete(_session_key(session_id))
    except redis.RedisError as e:
        logger.warning("could not clear session %s: %s", session_id, e)
        return False
    return True


class SessionPersistence:
    """Durable key-value slot for one session."""

    def __init__(self, *, r: redis.Redis, session_id: str) -> None:
        self.r = r
        self.session_id = session_id

    def save(self, snapshot: PersistedSnapshot) -> bool:
        return save_snapshot(r=self.r, session_id=self.session_id, snapshot=snapshot)

    def load(self) -> PersistedSnapshot | None:
        return load_snapshot(r=self.r, session_id=self.session_id)

    def reset(self) -> bool:
        return clear_snapshot(r=self.r, session_id=self.session_id)
