"""Round orchestration and state management."""

from core.game.events import GameEvent, EventType
from core.game.state import RoundState
from core.game.engine import BlackjackRound, HandResult, RoundOutcome

__all__ = [
    "GameEvent",
    "EventType",
    "RoundState",
    "BlackjackRound",
    "HandResult",
    "RoundOutcome",
]
