"""Engine error taxonomy."""


class BlackjackError(Exception):
    """Base class for engine errors."""


class IllegalMove(BlackjackError):
    """
    A move that is not allowed in the hand's current phase.

    Recoverable: the orchestrator rejects the move, leaves the hand
    untouched and prompts again.
    """


class InvariantViolation(BlackjackError):
    """
    The engine was driven into a state it must never reach.

    This signals a bug in the caller, not a user error, and is never
    absorbed.
    """
