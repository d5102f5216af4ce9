from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from geomerge.api.models import SessionEvent

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    """In-process WebSocket pub/sub keyed by session_id.

    Connections join with `connect(session_id, websocket)`; `publish(event)`
    fans a `SessionEvent` out to every socket watching `event.session_id`.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_session[session_id].add(websocket)
        logger.debug("watcher joined session %s (%d open)", session_id, len(self._by_session[session_id]))

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_session.get(session_id)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_session.pop(session_id, None)

    def watchers(self, session_id: str) -> int:
        return len(self._by_session.get(session_id, ()))

    async def publish(self, event: SessionEvent) -> int:
        """Send `event` to the session's sockets. Returns how many received it."""

        async with self._lock:
            conns = list(self._by_session.get(event.session_id, set()))
        if not conns:
            return 0

        payload = event.model_dump(mode="json")
        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception as e:
                logger.debug("dropping websocket for session %s: %s", event.session_id, e)
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._by_session.get(event.session_id, set()).discard(ws)
        return len(conns) - len(dead)


hub = SessionWebSocketHub()
