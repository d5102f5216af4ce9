from __future__ import annotations

import fakeredis
import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from geomerge.api.models import MovementMode, PersistedSnapshot
from geomerge.game_store import SESSION_KEY_PREFIX, load_snapshot, save_snapshot
from geomerge.websocket_hub import hub
from geomerge.world.cells import CellCoordinate


def _seed(r: fakeredis.FakeRedis, session_id: str, **overrides) -> None:
    snap = PersistedSnapshot(
        player_cell=overrides.get("player_cell", CellCoordinate(i=0, j=0)),
        held=overrides.get("held"),
        movement_mode=overrides.get("movement_mode", MovementMode.buttons),
        modified=overrides.get("modified", {}),
    )
    save_snapshot(r=r, session_id=session_id, snapshot=snap)


def test_healthcheck_and_info(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    assert client.get("/healthcheck").json() == {"status": "ok"}
    assert client.get("/info").json()["name"] == "geo-merge"


def test_new_session_starts_at_home(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis

    resp = client.get("/session/fresh")
    assert resp.status_code == 200
    data = resp.json()

    assert data["player"] == {"cell": {"i": 0, "j": 0}, "held": None, "movement_mode": "buttons"}
    assert data["overlay_size"] == 0
    assert data["win_value"] == 32
    assert data["interact_range"] == 5
    assert data["feed_subscription_id"] is None
    assert data["player_center"] == pytest.approx([0.00005, 0.00005])


def test_interaction_flow_persists_overlay(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "play", modified={"0:1": 4, "1:0": 4, "2:0": 8})

    pickup = client.post("/session/play/interact", json={"i": 0, "j": 1}).json()
    assert pickup["outcome"] == "pickup"
    assert pickup["session"]["player"]["held"] == 4

    merge = client.post("/session/play/interact", json={"i": 1, "j": 0}).json()
    assert merge["outcome"] == "merge"
    assert merge["cell_value"] == 8
    assert merge["session"]["player"]["held"] is None

    pickup2 = client.post("/session/play/interact", json={"i": 1, "j": 0}).json()
    assert pickup2["outcome"] == "pickup"

    merge2 = client.post("/session/play/interact", json={"i": 2, "j": 0}).json()
    assert merge2["outcome"] == "merge"
    assert merge2["cell_value"] == 16

    stored = load_snapshot(r=r, session_id="play")
    assert stored is not None
    assert stored.held is None
    assert stored.modified == {"0:1": None, "1:0": None, "2:0": 16}


def test_swap_via_api(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "swap", held=2, modified={"0:2": 8})

    data = client.post("/session/swap/interact", json={"i": 0, "j": 2}).json()

    assert data["outcome"] == "swap"
    assert data["cell_value"] == 2
    assert data["session"]["player"]["held"] == 8
    assert data["message"] == "Swapped: cell=2, holding=8."


def test_too_far_leaves_state_unchanged(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "far", held=4, modified={"6:0": 4})

    resp = client.post("/session/far/interact", json={"i": 6, "j": 0})
    assert resp.status_code == 200
    data = resp.json()

    assert data["outcome"] == "too_far"
    assert data["message"] == "Too far away to interact."
    assert data["cell_value"] == 4
    assert data["session"]["player"]["held"] == 4
    assert data["session"]["message"]["kind"] == "err"
    assert load_snapshot(r=r, session_id="far").modified == {"6:0": 4}


def test_move_and_mode(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis

    data = client.post("/session/walk/move", json={"direction": "north"}).json()
    assert data["player"]["cell"] == {"i": 1, "j": 0}

    data = client.post("/session/walk/mode", json={"mode": "geolocation"}).json()
    sub = data["feed_subscription_id"]
    assert sub is not None

    refused = client.post("/session/walk/move", json={"direction": "north"}).json()
    assert refused["player"]["cell"] == {"i": 1, "j": 0}
    assert refused["message"]["kind"] == "err"

    moved = client.post("/session/walk/position", json={"subscription_id": sub, "lat": 0.00105, "lng": -0.00005}).json()
    assert moved["player"]["cell"] == {"i": 10, "j": -1}

    stale = client.post("/session/walk/position", json={"subscription_id": sub + 99, "lat": 0.5, "lng": 0.5}).json()
    assert stale["player"]["cell"] == {"i": 10, "j": -1}

    stored = load_snapshot(r=r, session_id="walk")
    assert stored.player_cell == CellCoordinate(i=10, j=-1)
    assert stored.movement_mode == MovementMode.geolocation


def test_position_error_falls_back_to_buttons(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    sub = client.post("/session/geo/mode", json={"mode": "geolocation"}).json()["feed_subscription_id"]

    data = client.post("/session/geo/position_error", json={"subscription_id": sub, "reason": "denied"}).json()

    assert data["player"]["movement_mode"] == "buttons"
    assert data["feed_subscription_id"] is None
    assert data["message"]["text"] == "Location unavailable: denied"


def test_reset_route(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "again", player_cell=CellCoordinate(i=3, j=3), held=16, modified={"3:4": None})

    data = client.post("/session/again/reset").json()

    assert data["player"] == {"cell": {"i": 0, "j": 0}, "held": None, "movement_mode": "buttons"}
    assert data["overlay_size"] == 0
    assert r.get(f"{SESSION_KEY_PREFIX}again") is None


def test_corrupt_storage_gives_default_session(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    r.set(f"{SESSION_KEY_PREFIX}broken", '{"playerCell": {"i": 1,')

    resp = client.get("/session/broken")
    assert resp.status_code == 200
    assert resp.json()["player"]["cell"] == {"i": 0, "j": 0}


def test_cells_window(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "view", modified={"0:1": 2, "0:0": None})

    resp = client.get("/session/view/cells", params={"min_i": -1, "max_i": 1, "min_j": -1, "max_j": 6})
    assert resp.status_code == 200
    cells = {(c["i"], c["j"]): c for c in resp.json()["cells"]}

    assert len(cells) == 3 * 8
    assert cells[(0, 1)]["value"] == 2
    assert cells[(0, 1)]["modified"] is True
    assert cells[(0, 0)]["value"] is None
    assert cells[(0, 5)]["in_range"] is True
    assert cells[(0, 6)]["in_range"] is False
    assert cells[(1, 1)]["modified"] is False
    assert cells[(0, 1)]["bounds"][0][1] == cells[(0, 0)]["bounds"][1][1]

    # Viewing does not modify anything.
    assert client.get("/session/view").json()["overlay_size"] == 2


def test_cells_window_validation(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis

    inverted = client.get("/session/v/cells", params={"min_i": 2, "max_i": 1, "min_j": 0, "max_j": 0})
    assert inverted.status_code == 422

    huge = client.get("/session/v/cells", params={"min_i": 0, "max_i": 100, "min_j": 0, "max_j": 100})
    assert huge.status_code == 422


def test_request_validation(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis

    assert client.post("/session/x/move", json={"direction": "up"}).status_code == 422
    assert client.post("/session/x/interact", json={"i": "a", "j": 0}).status_code == 422
    assert client.post("/session/x/position", json={"subscription_id": 1, "lat": 91, "lng": 0}).status_code == 422
    assert client.get("/session/bad%20id").status_code == 422


def test_ws_session_updates_broadcast(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, r = client_and_redis
    _seed(r, "live", modified={"0:1": 2})

    with client.websocket_connect("/ws/session/live") as ws:
        res = client.post("/session/live/interact", json={"i": 0, "j": 1})
        assert res.status_code == 200

        msg = ws.receive_json()
        assert msg == {"type": "session_updated", "session_id": "live", "reason": "interact", "outcome": "pickup"}
        assert hub.watchers("live") == 1

        client.post("/session/live/move", json={"direction": "east"})
        msg = ws.receive_json()
        assert msg["reason"] == "move"
        assert msg["outcome"] is None


def test_ws_rejects_invalid_session_id(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/session/bad.id"):
            pass


def test_distant_cell_is_too_far_not_an_error(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    far = 10**160

    resp = client.post("/session/edge/interact", json={"i": far, "j": 0})
    assert resp.status_code == 200
    assert resp.json()["outcome"] == "too_far"

    window = client.get("/session/edge/cells", params={"min_i": far, "max_i": far, "min_j": 0, "max_j": 0})
    assert window.status_code == 200
    assert window.json()["cells"][0]["in_range"] is False


def test_cells_off_the_map_are_rejected(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    huge = 10**309

    resp = client.get("/session/edge/cells", params={"min_i": huge, "max_i": huge, "min_j": 0, "max_j": 0})
    assert resp.status_code == 422
