from __future__ import annotations

import os

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# Saves are best-effort; a stalled server must not stall a move.
SOCKET_TIMEOUT_SECONDS = 2.0


def get_redis_url() -> str:
    """`GEOMERGE_REDIS_URL` wins over the conventional `REDIS_URL`."""

    return os.environ.get("GEOMERGE_REDIS_URL") or os.environ.get("REDIS_URL") or DEFAULT_REDIS_URL


def create_redis(url: str | None = None) -> redis.Redis:
    # Snapshots are JSON text, so read them back as str.
    return redis.Redis.from_url(
        url or get_redis_url(),
        decode_responses=True,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
    )
