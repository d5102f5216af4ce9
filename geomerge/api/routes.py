from __future__ import annotations

from typing import Annotated

import redis
from fastapi import APIRouter, Depends, HTTPException, Path, WebSocket, WebSocketDisconnect, status

from geomerge.api.deps import get_config, get_redis
from geomerge.api.models import (
    CellsResponse,
    CellView,
    InteractionOutcome,
    InteractionResponse,
    InteractRequest,
    ModeRequest,
    MoveRequest,
    PositionErrorRequest,
    PositionUpdateRequest,
    SessionEvent,
    SessionView,
)
from geomerge.config import GameConfig
from geomerge.registry import registry
from geomerge.session import GameSession
from geomerge.websocket_hub import hub
from geomerge.world.cells import CellCoordinate, cell_bounds

router = APIRouter()

# Largest cell window a single /cells request may ask for.
MAX_WINDOW_CELLS = 2_500

SessionId = Annotated[str, Path(pattern=r"^[A-Za-z0-9_-]{1,64}$")]


def _open_session(session_id: str, r: redis.Redis, config: GameConfig) -> GameSession:
    return registry.get_or_open(session_id=session_id, r=r, config=config)


async def _notify(session_id: str, reason: str, outcome: InteractionOutcome | None = None) -> None:
    await hub.publish(SessionEvent(session_id=session_id, reason=reason, outcome=outcome))


def validate_window(*, min_i: int, max_i: int, min_j: int, max_j: int) -> None:
    if max_i < min_i or max_j < min_j:
        raise ValueError("window max must be >= min")
    size = (max_i - min_i + 1) * (max_j - min_j + 1)
    if size > MAX_WINDOW_CELLS:
        raise ValueError(f"window too large ({size} cells, max {MAX_WINDOW_CELLS})")


@router.websocket("/ws/session/{session_id}")
async def session_updates_ws(websocket: WebSocket, session_id: SessionId) -> None:
    await hub.connect(session_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(session_id, websocket)
    except Exception:
        await hub.disconnect(session_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/session/{session_id}", response_model=SessionView)
async def get_session_route(
    session_id: SessionId,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    return _open_session(session_id, r, config).view()


@router.get("/session/{session_id}/cells", response_model=CellsResponse)
async def get_cells_route(
    session_id: SessionId,
    min_i: int,
    max_i: int,
    min_j: int,
    max_j: int,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> CellsResponse:
    """Cell values for the visible map window, plus whether each is interactable."""

    try:
        validate_window(min_i=min_i, max_i=max_i, min_j=min_j, max_j=max_j)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    session = _open_session(session_id, r, config)
    cells: list[CellView] = []
    for i in range(min_i, max_i + 1):
        for j in range(min_j, max_j + 1):
            c = CellCoordinate(i=i, j=j)
            try:
                bounds = cell_bounds(c, tile_degrees=config.tile_degrees)
            except OverflowError as e:
                # The cell exists, but has no place on a lat/lng map.
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"cell {c.key} cannot be placed on the map",
                ) from e
            cells.append(
                CellView(
                    i=i,
                    j=j,
                    value=session.read(c),
                    in_range=session.in_range(c),
                    modified=session.store.is_modified(c),
                    bounds=bounds,
                )
            )
    return CellsResponse(cells=cells)


@router.post("/session/{session_id}/interact", response_model=InteractionResponse)
async def interact_route(
    session_id: SessionId,
    payload: InteractRequest,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> InteractionResponse:
    session = _open_session(session_id, r, config)
    result = session.interact(CellCoordinate(i=payload.i, j=payload.j))

    if result.mutated:
        await _notify(session_id, "interact", result.outcome)
    return InteractionResponse(
        outcome=result.outcome,
        message=result.message,
        cell=result.cell,
        cell_value=result.cell_value,
        won=result.won,
        session=session.view(),
    )


@router.post("/session/{session_id}/move", response_model=SessionView)
async def move_route(
    session_id: SessionId,
    payload: MoveRequest,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    session = _open_session(session_id, r, config)
    if session.move(payload.direction):
        await _notify(session_id, "move")
    return session.view()


@router.post("/session/{session_id}/mode", response_model=SessionView)
async def mode_route(
    session_id: SessionId,
    payload: ModeRequest,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    session = _open_session(session_id, r, config)
    session.set_mode(payload.mode)
    await _notify(session_id, "mode")
    return session.view()


@router.post("/session/{session_id}/position", response_model=SessionView)
async def position_route(
    session_id: SessionId,
    payload: PositionUpdateRequest,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    """Position feed delivery. Updates for a stopped subscription are ignored."""

    session = _open_session(session_id, r, config)
    before = session.player.cell
    session.position_update(payload.subscription_id, payload.lat, payload.lng)
    if session.player.cell != before:
        await _notify(session_id, "position")
    return session.view()


@router.post("/session/{session_id}/position_error", response_model=SessionView)
async def position_error_route(
    session_id: SessionId,
    payload: PositionErrorRequest,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    session = _open_session(session_id, r, config)
    if session.position_error(payload.subscription_id, payload.reason):
        await _notify(session_id, "position_error")
    return session.view()


@router.post("/session/{session_id}/reset", response_model=SessionView)
async def reset_route(
    session_id: SessionId,
    r: redis.Redis = Depends(get_redis),
    config: GameConfig = Depends(get_config),
) -> SessionView:
    session = _open_session(session_id, r, config)
    session.reset()
    await _notify(session_id, "reset")
    return session.view()
