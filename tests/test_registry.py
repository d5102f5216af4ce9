from __future__ import annotations

import fakeredis
import pytest

from geomerge.api.models import Direction
from geomerge.config import GameConfig
from geomerge.registry import SessionRegistry
from geomerge.world.cells import CellCoordinate


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


def test_cached_session_is_reused_with_fresh_client(r: fakeredis.FakeRedis, config: GameConfig) -> None:
    reg = SessionRegistry()
    first = reg.get_or_open(session_id="a", r=r, config=config)

    other = fakeredis.FakeRedis(decode_responses=True)
    again = reg.get_or_open(session_id="a", r=other, config=config)

    assert again is first
    assert again.persistence.r is other


def test_least_recently_used_session_is_evicted(r: fakeredis.FakeRedis, config: GameConfig) -> None:
    reg = SessionRegistry(max_sessions=2)
    a = reg.get_or_open(session_id="a", r=r, config=config)
    a.move(Direction.north)
    reg.get_or_open(session_id="b", r=r, config=config)
    reg.get_or_open(session_id="a", r=r, config=config)

    reg.get_or_open(session_id="c", r=r, config=config)

    assert len(reg) == 2
    assert "b" not in reg
    assert "a" in reg and "c" in reg


def test_evicted_session_is_restored_from_storage(r: fakeredis.FakeRedis, config: GameConfig) -> None:
    reg = SessionRegistry(max_sessions=1)
    a = reg.get_or_open(session_id="a", r=r, config=config)
    a.move(Direction.east)

    reg.get_or_open(session_id="b", r=r, config=config)
    assert "a" not in reg

    restored = reg.get_or_open(session_id="a", r=r, config=config)
    assert restored is not a
    assert restored.player.cell == CellCoordinate(i=0, j=1)


def test_max_sessions_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionRegistry(max_sessions=0)
