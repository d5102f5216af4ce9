from __future__ import annotations

import logging
from dataclasses import dataclass

from geomerge.api.models import InteractionOutcome, PlayerState
from geomerge.config import GameConfig
from geomerge.fsm import HandFSM
from geomerge.world.cells import CellCoordinate, within_range
from geomerge.world.store import WorldStore

logger = logging.getLogger(__name__)

MUTATING_OUTCOMES = frozenset(
    {
        InteractionOutcome.pickup,
        InteractionOutcome.place,
        InteractionOutcome.merge,
        InteractionOutcome.swap,
    }
)


@dataclass(frozen=True, slots=True)
class InteractionResult:
    """Result of one `interact` command.

    - `held` / `cell_value`: values after the interaction.
    - `won`: the interaction produced or left a token at or above the win value.
    """

    outcome: InteractionOutcome
    message: str
    cell: CellCoordinate
    held: int | None
    cell_value: int | None
    won: bool = False

    @property
    def mutated(self) -> bool:
        return self.outcome in MUTATING_OUTCOMES

    @property
    def kind(self) -> str:
        if self.outcome == InteractionOutcome.too_far:
            return "err"
        if self.outcome == InteractionOutcome.nothing:
            return "info"
        return "ok"


def decide(held: int | None, current: int | None) -> tuple[InteractionOutcome, int | None, int | None]:
    """Transition table for the hand/cell pair, first match wins.

    Returns (outcome, new_held, new_current).
    """

    if held is None:
        if current is None:
            return InteractionOutcome.nothing, None, None
        return InteractionOutcome.pickup, current, None
    if current is None:
        return InteractionOutcome.place, None, held
    if current == held:
        return InteractionOutcome.merge, None, held * 2
    return InteractionOutcome.swap, current, held


def outcome_message(outcome: InteractionOutcome, *, old_held: int | None, new_held: int | None, new_current: int | None) -> str:
    if outcome == InteractionOutcome.nothing:
        return "Nothing happened."
    if outcome == InteractionOutcome.pickup:
        return f"Picked up {new_held}."
    if outcome == InteractionOutcome.place:
        return f"Placed {old_held}."
    if outcome == InteractionOutcome.merge:
        return f"Merged to {new_current}!"
    if outcome == InteractionOutcome.swap:
        return f"Swapped: cell={new_current}, holding={new_held}."
    return "Too far away to interact."


class InteractionEngine:
    """Applies pickup/place/merge/swap to the player's hand and the world store.

    Persistence is not done here; callers persist when `InteractionResult.mutated`.
    """

    def __init__(self, store: WorldStore, config: GameConfig) -> None:
        self.store = store
        self.config = config

    def in_range(self, player_cell: CellCoordinate, cell: CellCoordinate) -> bool:
        return within_range(player_cell, cell, self.config.interact_range, metric=self.config.distance_metric)

    def is_win(self, value: int | None) -> bool:
        return value is not None and value >= self.config.win_value

    def interact(self, player: PlayerState, cell: CellCoordinate) -> InteractionResult:
        if not self.in_range(player.cell, cell):
            logger.debug("interact rejected: %s out of range of %s", cell.key, player.cell.key)
            return InteractionResult(
                outcome=InteractionOutcome.too_far,
                message=outcome_message(InteractionOutcome.too_far, old_held=None, new_held=None, new_current=None),
                cell=cell,
                held=player.held,
                cell_value=self.store.read(cell),
            )

        current = self.store.read(cell)
        old_held = player.held
        outcome, new_held, new_current = decide(old_held, current)

        fsm = HandFSM(player)
        fsm.apply(outcome)

        player.held = new_held
        if new_current != current:
            self.store.write(cell, new_current)
        fsm.check_synced()

        won = False
        if outcome in MUTATING_OUTCOMES:
            won = self.is_win(player.held)
            if outcome == InteractionOutcome.merge:
                won = won or self.is_win(new_current)

        logger.debug(
            "interact %s at %s: held %s -> %s, cell %s -> %s",
            outcome.value,
            cell.key,
            old_held,
            new_held,
            current,
            new_current,
        )

        return InteractionResult(
            outcome=outcome,
            message=outcome_message(outcome, old_held=old_held, new_held=new_held, new_current=new_current),
            cell=cell,
            held=player.held,
            cell_value=new_current,
            won=won,
        )
