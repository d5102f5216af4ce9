from __future__ import annotations

import logging
from collections import OrderedDict

import redis

from geomerge.config import GameConfig
from geomerge.game_store import SessionPersistence
from geomerge.session import GameSession

logger = logging.getLogger(__name__)

# Open sessions kept in memory before the least recently used one is dropped.
DEFAULT_MAX_SESSIONS = 1_024


class SessionRegistry:
    """In-process cache of open sessions keyed by session_id.

    A session is restored from Redis the first time it is requested; after that
    the in-memory session is the single writer and Redis only receives snapshots.
    Every mutation is persisted, so an evicted session is restored unchanged
    on its next request.
    """

    def __init__(self, *, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, GameSession] = OrderedDict()

    def get_or_open(self, *, session_id: str, r: redis.Redis, config: GameConfig) -> GameSession:
        persistence = SessionPersistence(r=r, session_id=session_id)
        session = self._sessions.get(session_id)
        if session is None:
            session = GameSession.open(session_id=session_id, config=config, persistence=persistence)
            self._sessions[session_id] = session
            self._evict()
        else:
            # Request-scoped clients are closed after each request; bind the live one.
            session.persistence = persistence
            self._sessions.move_to_end(session_id)
        return session

    def _evict(self) -> None:
        while len(self._sessions) > self.max_sessions:
            session_id, _ = next(iter(self._sessions.items()))
            logger.debug("evicting idle session %s", session_id)
            self.drop(session_id)

    def drop(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.movement.stop()

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.drop(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()
