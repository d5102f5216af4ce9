from __future__ import annotations

import logging
import time
from typing import Callable

from geomerge.api.models import (
    Direction,
    FlashMessage,
    MovementMode,
    PersistedSnapshot,
    PlayerState,
    SessionView,
)
from geomerge.config import GameConfig
from geomerge.engine import InteractionEngine, InteractionResult
from geomerge.game_store import SessionPersistence
from geomerge.movement import MovementController
from geomerge.world.cells import CellCoordinate, cell_center, lat_lng_to_cell
from geomerge.world.generator import Generator
from geomerge.world.luck import LuckFn, luck_for_seed
from geomerge.world.store import WorldStore

logger = logging.getLogger(__name__)


class MessageBoard:
    """Holds at most one transient message; a newer one replaces the old one."""

    def __init__(self, *, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._message: FlashMessage | None = None
        self._expires_at = 0.0

    def flash(self, text: str, kind: str = "info") -> FlashMessage:
        self._message = FlashMessage(text=text, kind=kind)
        self._expires_at = self._clock() + self.ttl
        return self._message

    def current(self) -> FlashMessage | None:
        if self._message is not None and self._clock() >= self._expires_at:
            self._message = None
        return self._message

    def clear(self) -> None:
        self._message = None


def home_cell(config: GameConfig) -> CellCoordinate:
    return lat_lng_to_cell(config.home_lat, config.home_lng, tile_degrees=config.tile_degrees)


def default_player(config: GameConfig) -> PlayerState:
    return PlayerState(cell=home_cell(config), held=None, movement_mode=MovementMode.buttons)


class GameSession:
    """One player's world, hand and movement, persisted after every mutation.

    The session owns its overlay; nothing is shared between sessions.
    """

    def __init__(
        self,
        *,
        session_id: str,
        config: GameConfig,
        persistence: SessionPersistence | None = None,
        luck: LuckFn | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self.config = config
        self.persistence = persistence

        # The luck source is picked once here and never swapped for this session.
        self.generator = Generator(
            luck if luck is not None else luck_for_seed(config.luck_seed),
            spawn_probability=config.spawn_probability,
        )
        self.store = WorldStore(self.generator)
        self.engine = InteractionEngine(self.store, config)
        self.player = default_player(config)
        self.messages = MessageBoard(ttl=config.message_ttl, clock=clock)
        self.movement = MovementController(
            player=self.player,
            config=config,
            on_position_changed=self._on_position_changed,
            on_feed_error=self._on_feed_error,
        )
        self.won = False

    @classmethod
    def open(
        cls,
        *,
        session_id: str,
        config: GameConfig,
        persistence: SessionPersistence | None = None,
        luck: LuckFn | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> GameSession:
        """Create a session, restoring the stored snapshot if there is a valid one."""

        session = cls(session_id=session_id, config=config, persistence=persistence, luck=luck, clock=clock)
        snapshot = persistence.load() if persistence is not None else None
        if snapshot is not None:
            session._apply_snapshot(snapshot)
            logger.info("restored session %s (%d modified cells)", session_id, len(session.store))
        return session

    def _apply_snapshot(self, snapshot: PersistedSnapshot) -> None:
        self.player.cell = snapshot.player_cell
        self.player.held = snapshot.held
        self.store = WorldStore(self.generator, snapshot.modified)
        self.engine = InteractionEngine(self.store, self.config)
        # A restored geolocation session needs a fresh feed subscription.
        self.movement.set_mode(snapshot.movement_mode)

    def snapshot(self) -> PersistedSnapshot:
        return PersistedSnapshot(
            player_cell=self.player.cell,
            held=self.player.held,
            movement_mode=self.player.movement_mode,
            modified=self.store.overlay,
        )

    def persist(self) -> bool:
        if self.persistence is None:
            return False
        return self.persistence.save(self.snapshot())

    def read(self, cell: CellCoordinate) -> int | None:
        return self.store.read(cell)

    def in_range(self, cell: CellCoordinate) -> bool:
        return self.engine.in_range(self.player.cell, cell)

    def interact(self, cell: CellCoordinate) -> InteractionResult:
        result = self.engine.interact(self.player, cell)
        if result.mutated:
            self.won = result.won
            self.persist()
        if result.won:
            value = result.held if self.engine.is_win(result.held) else result.cell_value
            logger.info("session %s reached the win value with %s", self.session_id, value)
            self.messages.flash(f"You win! Token value = {value}", "ok")
        else:
            self.messages.flash(result.message, result.kind)
        return result

    def move(self, direction: Direction) -> bool:
        moved = self.movement.step(direction)
        if not moved:
            self.messages.flash("Movement follows your location; switch to buttons to step.", "err")
        return moved

    def set_mode(self, mode: MovementMode) -> None:
        previous = self.player.movement_mode
        self.movement.set_mode(mode)
        if previous != mode:
            self.persist()

    def position_update(self, subscription_id: int, lat: float, lng: float) -> bool:
        return self.movement.feed.deliver(subscription_id, lat, lng)

    def position_error(self, subscription_id: int, reason: str) -> bool:
        return self.movement.feed.fail(subscription_id, reason)

    def reset(self) -> None:
        """Clear stored state and go back to the home cell with an empty hand."""

        self.movement.stop()
        cleared = self.persistence.reset() if self.persistence is not None else False
        fresh = default_player(self.config)
        self.player.cell = fresh.cell
        self.player.held = fresh.held
        self.player.movement_mode = fresh.movement_mode
        self.store.clear()
        self.won = False
        self.messages.clear()
        if self.persistence is not None and not cleared:
            # Overwrite the old snapshot so a restart cannot bring it back.
            self.persist()
        logger.info("session %s reset", self.session_id)

    def view(self) -> SessionView:
        return SessionView(
            session_id=self.session_id,
            player=self.player.model_copy(),
            player_center=cell_center(self.player.cell, tile_degrees=self.config.tile_degrees),
            message=self.messages.current(),
            won=self.won,
            win_value=self.config.win_value,
            interact_range=self.config.interact_range,
            range_radius_meters=self.config.range_radius_meters,
            overlay_size=len(self.store),
            feed_subscription_id=(
                self.movement.subscription.subscription_id if self.movement.subscription is not None else None
            ),
        )

    def _on_position_changed(self, cell: CellCoordinate) -> None:
        logger.debug("session %s moved to %s", self.session_id, cell.key)
        self.persist()

    def _on_feed_error(self, reason: str) -> None:
        self.messages.flash(f"Location unavailable: {reason}", "err")
        self.persist()
