from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine

from geomerge.api.models import InteractionOutcome, PlayerState


class HandState(StrEnum):
    empty = "empty"
    holding = "holding"


def hand_state_for(held: int | None) -> HandState:
    return HandState.empty if held is None else HandState.holding


class HandFSM(StateMachine):
    """FSM wrapper around the player's single inventory slot.

    - empty --pickup--> holding
    - holding --place/merge--> empty
    - holding --swap--> holding

    The engine decides which event applies and mutates the values; the FSM only
    guards that the event is legal for the current hand state.
    """

    empty = State(HandState.empty.value, value=HandState.empty.value, initial=True)
    holding = State(HandState.holding.value, value=HandState.holding.value)

    pickup = empty.to(holding)
    place = holding.to(empty)
    merge = holding.to(empty)
    swap = holding.to.itself()

    def __init__(self, player: PlayerState):
        self.player = player
        super().__init__(start_value=hand_state_for(player.held).value)

    @property
    def hand_state(self) -> HandState:
        return HandState(str(self.current_state.value))

    def apply(self, outcome: InteractionOutcome) -> None:
        # `nothing` and `too_far` leave the hand alone.
        if outcome in (InteractionOutcome.nothing, InteractionOutcome.too_far):
            return
        self.send(outcome.value)

    def check_synced(self) -> None:
        """Raise if the FSM disagrees with the player's held value."""

        expected = hand_state_for(self.player.held)
        if self.hand_state != expected:
            raise RuntimeError(f"Hand FSM is {self.hand_state.value} but player hand is {expected.value}")
