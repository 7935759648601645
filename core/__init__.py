"""Core blackjack engine - 100% UI-agnostic."""

from core.cards import Card, Shoe, Rank, Suit
from core.errors import BlackjackError, IllegalMove, InvariantViolation
from core.hand import Dealer, Hand, HandSum, Result, Status, settle
from core.moves import Move, parse_move
from core.participant import MoveSource, Participant, Renderer

__all__ = [
    "Card",
    "Shoe",
    "Rank",
    "Suit",
    "BlackjackError",
    "IllegalMove",
    "InvariantViolation",
    "Dealer",
    "Hand",
    "HandSum",
    "Result",
    "Status",
    "settle",
    "Move",
    "parse_move",
    "MoveSource",
    "Participant",
    "Renderer",
]
