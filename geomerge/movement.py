from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable

from geomerge.api.models import Direction, MovementMode, PlayerState
from geomerge.config import GameConfig
from geomerge.world.cells import CellCoordinate, lat_lng_to_cell

logger = logging.getLogger(__name__)

STEP_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.north: (1, 0),
    Direction.south: (-1, 0),
    Direction.west: (0, -1),
    Direction.east: (0, 1),
}


@dataclass(frozen=True, slots=True)
class FeedSubscription:
    subscription_id: int


class PositionFeed:
    """Cancellable subscription to an external position source.

    Contract:
      - `start_feed()` returns a new handle; at most one handle is active.
      - `stop(handle)` deactivates it; later deliveries for that handle are dropped.
      - `deliver` / `fail` route to the callbacks only for the active handle.
    """

    def __init__(
        self,
        *,
        on_update: Callable[[float, float], None],
        on_error: Callable[[str], None],
    ) -> None:
        self._on_update = on_update
        self._on_error = on_error
        self._ids = itertools.count(1)
        self._active: FeedSubscription | None = None

    @property
    def active(self) -> FeedSubscription | None:
        return self._active

    def start_feed(self) -> FeedSubscription:
        if self._active is not None:
            self.stop(self._active)
        handle = FeedSubscription(subscription_id=next(self._ids))
        self._active = handle
        return handle

    def stop(self, handle: FeedSubscription) -> None:
        if self._active == handle:
            self._active = None

    def _is_current(self, subscription_id: int) -> bool:
        return self._active is not None and self._active.subscription_id == subscription_id

    def deliver(self, subscription_id: int, lat: float, lng: float) -> bool:
        if not self._is_current(subscription_id):
            logger.debug("dropping position update for inactive subscription %s", subscription_id)
            return False
        self._on_update(lat, lng)
        return True

    def fail(self, subscription_id: int, reason: str) -> bool:
        if not self._is_current(subscription_id):
            logger.debug("dropping feed error for inactive subscription %s", subscription_id)
            return False
        self._on_error(reason)
        return True


class MovementController:
    """Moves the player either by discrete steps or by a position feed.

    Callers only see `set_mode`, `step` and the `on_position_changed` callback.
    """

    def __init__(
        self,
        *,
        player: PlayerState,
        config: GameConfig,
        on_position_changed: Callable[[CellCoordinate], None],
        on_feed_error: Callable[[str], None],
    ) -> None:
        self.player = player
        self.config = config
        self._on_position_changed = on_position_changed
        self._on_feed_error = on_feed_error
        self.feed = PositionFeed(on_update=self._handle_feed_update, on_error=self._handle_feed_error)

    @property
    def mode(self) -> MovementMode:
        return self.player.movement_mode

    @property
    def subscription(self) -> FeedSubscription | None:
        return self.feed.active

    def set_mode(self, mode: MovementMode) -> FeedSubscription | None:
        if mode == MovementMode.geolocation and self.mode == mode and self.feed.active is not None:
            return self.feed.active

        # Stop the previous feed before anything else can start.
        if self.feed.active is not None:
            self.feed.stop(self.feed.active)

        self.player.movement_mode = mode
        if mode == MovementMode.geolocation:
            handle = self.feed.start_feed()
            logger.info("position feed started (subscription %s)", handle.subscription_id)
            return handle
        return None

    def step(self, direction: Direction) -> bool:
        """Move one grid step. Refused (returns False) while following the feed."""

        if self.mode != MovementMode.buttons:
            return False
        di, dj = STEP_DELTAS[direction]
        self._move_to(self.player.cell.offset(di, dj))
        return True

    def stop(self) -> None:
        if self.feed.active is not None:
            self.feed.stop(self.feed.active)

    def _move_to(self, cell: CellCoordinate) -> None:
        self.player.cell = cell
        self._on_position_changed(cell)

    def _handle_feed_update(self, lat: float, lng: float) -> None:
        cell = lat_lng_to_cell(lat, lng, tile_degrees=self.config.tile_degrees)
        if cell != self.player.cell:
            self._move_to(cell)

    def _handle_feed_error(self, reason: str) -> None:
        logger.warning("position feed failed: %s", reason)
        self.set_mode(MovementMode.buttons)
        self._on_feed_error(reason)
