from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

import redis

from geomerge.config import GameConfig, config_from_env
from geomerge.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except redis.RedisError:
            pass


@lru_cache(maxsize=1)
def get_config() -> GameConfig:
    return config_from_env()
