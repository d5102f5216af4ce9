from __future__ import annotations

from collections.abc import Callable, Generator

import pytest

from geomerge.config import GameConfig
from geomerge.world.generator import Generator as WorldGenerator
from geomerge.world.luck import LuckFn
from geomerge.world.store import WorldStore

# Everything below this spawn draw gets a token; 0.99 never spawns.
NEVER_SPAWN = 0.99


def table_luck(draws: dict[str, float], *, default: float = NEVER_SPAWN) -> LuckFn:
    """Luck function returning fixed draws for specific keys."""

    def _luck(key: str) -> float:
        return draws.get(key, default)

    return _luck


@pytest.fixture()
def config() -> GameConfig:
    # Home sits in cell (0, 0).
    return GameConfig(home_lat=0.00005, home_lng=0.00005)


@pytest.fixture()
def empty_store() -> WorldStore:
    """A world whose generator never spawns anything."""

    return WorldStore(WorldGenerator(table_luck({})))


@pytest.fixture()
def make_luck() -> Callable[..., LuckFn]:
    return table_luck


@pytest.fixture()
def client_and_redis(config: GameConfig):
    """FastAPI TestClient wired to fakeredis and a fixed game config."""

    import fakeredis
    from fastapi.testclient import TestClient

    from geomerge.api.deps import get_config, get_redis
    from geomerge.main import app
    from geomerge.registry import registry

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    registry.clear()
    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_config] = lambda: config
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
    registry.clear()
