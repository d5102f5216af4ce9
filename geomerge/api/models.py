from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from geomerge.world.cells import CellCoordinate, parse_cell_key

# A token held or lying on a cell. `None` (JSON null) encodes "empty".
TokenValue = Annotated[StrictInt, Field(gt=0)]


class MovementMode(StrEnum):
    buttons = "buttons"
    geolocation = "geolocation"


class Direction(StrEnum):
    north = "north"
    south = "south"
    east = "east"
    west = "west"


class InteractionOutcome(StrEnum):
    nothing = "nothing"
    pickup = "pickup"
    place = "place"
    merge = "merge"
    swap = "swap"
    too_far = "too_far"


class PlayerState(BaseModel):
    cell: CellCoordinate
    held: TokenValue | None = None
    movement_mode: MovementMode = MovementMode.buttons


class PersistedSnapshot(BaseModel):
    """Everything needed to restore a session.

    Stored as JSON with camelCase keys:
    `{"playerCell": {"i", "j"}, "held", "movementMode", "modified": {"<i>:<j>": value}}`.
    All fields are required so a partially written payload is rejected as a whole.
    """

    model_config = ConfigDict(populate_by_name=True)

    player_cell: CellCoordinate = Field(alias="playerCell")
    held: TokenValue | None
    movement_mode: MovementMode = Field(alias="movementMode")
    modified: dict[str, TokenValue | None]

    @field_validator("modified")
    @classmethod
    def _keys_are_cells(cls, v: dict[str, int | None]) -> dict[str, int | None]:
        for key in v:
            parse_cell_key(key)
        return v


class FlashMessage(BaseModel):
    text: str
    kind: Literal["ok", "err", "info"] = "info"


class InteractRequest(BaseModel):
    i: StrictInt
    j: StrictInt


class MoveRequest(BaseModel):
    direction: Direction


class ModeRequest(BaseModel):
    mode: MovementMode


class PositionUpdateRequest(BaseModel):
    subscription_id: int
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PositionErrorRequest(BaseModel):
    subscription_id: int
    reason: str = Field(..., min_length=1, max_length=500)


class SessionView(BaseModel):
    session_id: str
    player: PlayerState
    # (lat, lng) of the centre of the player's cell, for the map marker.
    player_center: tuple[float, float]
    message: FlashMessage | None = None

    # Whether the most recent interaction reached the win value.
    won: bool = False
    win_value: int
    interact_range: int
    range_radius_meters: float

    # Number of player-modified cells.
    overlay_size: int

    # Set while movement follows the position feed; feed updates must carry it.
    feed_subscription_id: int | None = None


class InteractionResponse(BaseModel):
    outcome: InteractionOutcome
    message: str
    cell: CellCoordinate
    cell_value: int | None
    won: bool
    session: SessionView


class CellView(BaseModel):
    i: int
    j: int
    value: int | None
    in_range: bool
    modified: bool

    # ((south, west), (north, east)) in degrees.
    bounds: tuple[tuple[float, float], tuple[float, float]]


class CellsResponse(BaseModel):
    cells: list[CellView]


class SessionEvent(BaseModel):
    """Pushed to every WebSocket watching a session after its state changed."""

    type: Literal["session_updated"] = "session_updated"
    session_id: str
    reason: Literal["interact", "move", "mode", "position", "position_error", "reset"]

    # Set for interactions only.
    outcome: InteractionOutcome | None = None
