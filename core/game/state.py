"""Round state enumeration."""

from enum import Enum, auto


class RoundState(Enum):
    """
    Round state machine states.

    Flow: WAITING → DEALING → PLAYER_TURN → DEALER_TURN → RESOLVING → ROUND_COMPLETE
    """

    # Created, nothing dealt yet
    WAITING = auto()

    # Cards being dealt
    DEALING = auto()

    # Participants act, one hand at a time
    PLAYER_TURN = auto()

    # Dealer plays its fixed policy
    DEALER_TURN = auto()

    # Determining winners
    RESOLVING = auto()

    # Round finished, nothing may change
    ROUND_COMPLETE = auto()

    # A participant stopped answering, round left as it was
    ABANDONED = auto()

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def is_finished(self) -> bool:
        """Check if the round has ended, normally or not."""
        return self in (RoundState.ROUND_COMPLETE, RoundState.ABANDONED)


# Valid state transitions
VALID_TRANSITIONS: dict[RoundState, list[RoundState]] = {
    RoundState.WAITING: [RoundState.DEALING],
    RoundState.DEALING: [RoundState.PLAYER_TURN, RoundState.RESOLVING],  # RESOLVING if dealer natural
    RoundState.PLAYER_TURN: [RoundState.DEALER_TURN, RoundState.ABANDONED],
    RoundState.DEALER_TURN: [RoundState.RESOLVING],
    RoundState.RESOLVING: [RoundState.ROUND_COMPLETE],
    RoundState.ROUND_COMPLETE: [],  # Terminal state
    RoundState.ABANDONED: [],  # Terminal state
}


def is_valid_transition(from_state: RoundState, to_state: RoundState) -> bool:
    """
    Check if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Desired state

    Returns:
        True if the transition is allowed
    """
    return to_state in VALID_TRANSITIONS.get(from_state, [])
