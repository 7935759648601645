"""Pytest fixtures for blackjack table tests."""

import asyncio
import os

# Settings read once at import time by config
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEALER_DELAY", "0")
os.environ.setdefault("MOVE_TIMEOUT", "2")

import pytest
from random import Random

from core.cards import Card, Shoe, Rank, Suit
from core.hand import Hand
from core.moves import Move, parse_move
from core.game import BlackjackRound


class StackedShoe(Shoe):
    """A shoe that deals a fixed sequence of cards, in order."""

    def __init__(self, cards: list[str]) -> None:
        super().__init__(rng=Random(0))
        self._stack = [Card.from_string(c) for c in cards]

    def draw(self, face_down: bool = False) -> Card:
        if not self._stack:
            raise IndexError("Cannot draw from empty shoe")
        card = self._stack.pop(0)
        self._cards_dealt += 1
        return Card(card.suit, card.rank, face_down)

    @property
    def remaining(self) -> int:
        return len(self._stack)


class ScriptedMoveSource:
    """Answers move requests from a per-player script; an empty script times out."""

    def __init__(self, scripts: dict[str, list[str]]) -> None:
        self._scripts = {identity: [parse_move(m) for m in moves] for identity, moves in scripts.items()}
        self.requests: list[tuple[str, int]] = []

    async def request_move(self, hand, participant, timeout: float) -> Move:
        self.requests.append((participant.identity, len(hand.cards)))
        script = self._scripts.get(participant.identity, [])
        if not script:
            raise asyncio.TimeoutError
        return script.pop(0)


class RecordingRenderer:
    """Keeps every rendered message and the round state at that moment."""

    def __init__(self) -> None:
        self.messages: list[str | None] = []
        self.states: list[str] = []

    async def render(self, game, message: str | None = None) -> None:
        self.messages.append(message)
        self.states.append(game.state.name)


def make_hand(*cards: str) -> Hand:
    """Build a hand from card strings like 'AS', '10H'."""
    return Hand([Card.from_string(c) for c in cards])


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def shoe(rng):
    """An infinite shoe with a seeded generator."""
    return Shoe(rng=rng)


@pytest.fixture
def renderer():
    """A renderer that records what it was asked to show."""
    return RecordingRenderer()


@pytest.fixture
def make_round(renderer):
    """
    Build a round with a stacked shoe and scripted moves.

    Cards are dealt two per player in seating order, then the dealer's
    upcard and hole card, then every later draw in order.
    """

    def _make(players: list[str], cards: list[str], moves: dict[str, list[str]] | None = None):
        source = ScriptedMoveSource(moves or {})
        game = BlackjackRound(
            players,
            move_source=source,
            renderer=renderer,
            shoe=StackedShoe(cards),
            move_timeout=0.1,
            dealer_delay=0,
        )
        return game, source

    return _make


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return make_hand("AS", "KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return make_hand("AS", "6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return make_hand("10S", "6H")


@pytest.fixture
def pair_8s_hand():
    """A pair of 8s hand."""
    return make_hand("8S", "8H")


# Hypothesis strategies for property-based testing
from hypothesis import strategies as st


@st.composite
def card_strategy(draw):
    """Generate a random card."""
    rank = draw(st.sampled_from(list(Rank)))
    suit = draw(st.sampled_from(list(Suit)))
    return Card(suit, rank)


@st.composite
def cards_strategy(draw, min_cards=1, max_cards=8):
    """Generate a random sequence of cards."""
    return draw(st.lists(card_strategy(), min_size=min_cards, max_size=max_cards))
