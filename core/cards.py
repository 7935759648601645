"""Card and Shoe classes - card representations drawn from an infinite shoe."""

from dataclasses import dataclass, replace
from enum import Enum
from random import Random


class Suit(Enum):
    """Card suits."""

    CLUBS = 0
    DIAMONDS = 1
    HEARTS = 2
    SPADES = 3

    def __str__(self) -> str:
        symbols = {
            Suit.CLUBS: "♣",
            Suit.DIAMONDS: "♦",
            Suit.HEARTS: "♥",
            Suit.SPADES: "♠",
        }
        return symbols[self]


class Rank(Enum):
    """Card ranks, ace low."""

    ACE = 0
    TWO = 1
    THREE = 2
    FOUR = 3
    FIVE = 4
    SIX = 5
    SEVEN = 6
    EIGHT = 7
    NINE = 8
    TEN = 9
    JACK = 10
    QUEEN = 11
    KING = 12

    def __str__(self) -> str:
        if Rank.TWO.value <= self.value <= Rank.TEN.value:
            return str(self.value + 1)
        return {
            Rank.JACK: "J",
            Rank.QUEEN: "Q",
            Rank.KING: "K",
            Rank.ACE: "A",
        }[self]

    @property
    def blackjack_value(self) -> int:
        """Return the base point value (Ace = 1, face cards = 10)."""
        if self.value >= Rank.TEN.value:
            return 10
        return self.value + 1

    @property
    def is_ace(self) -> bool:
        """Check if this rank is an Ace."""
        return self == Rank.ACE


NUM_SUITS = len(Suit)
NUM_RANKS = len(Rank)


@dataclass(frozen=True, slots=True)
class Card:
    """Playing card. Only ``face_down`` ever changes, by replacement."""

    suit: Suit
    rank: Rank
    face_down: bool = False

    def __str__(self) -> str:
        if self.face_down:
            return "??"
        return f"{self.suit}{self.rank}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name}{', down' if self.face_down else ''})"

    @property
    def value(self) -> int:
        """Return the base point value."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        """Check if this card is an Ace."""
        return self.rank.is_ace

    def turned_up(self) -> "Card":
        """Return the same card face up."""
        return replace(self, face_down=False)

    @classmethod
    def from_id(cls, card_id: int, face_down: bool = False) -> "Card":
        """Create a card from an index in 0..51."""
        if not 0 <= card_id < NUM_SUITS * NUM_RANKS:
            raise ValueError(f"Invalid card id: {card_id}")
        return cls(Suit(card_id // NUM_RANKS), Rank(card_id % NUM_RANKS), face_down)

    @classmethod
    def draw(cls, face_down: bool = False, rng: Random | None = None) -> "Card":
        """Draw a uniformly random card."""
        rng = rng or _default_rng
        return cls.from_id(rng.randrange(NUM_SUITS * NUM_RANKS), face_down)

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like '2♣', 'AS', 'Kh'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]

        rank_map = {
            "A": Rank.ACE,
            "2": Rank.TWO,
            "3": Rank.THREE,
            "4": Rank.FOUR,
            "5": Rank.FIVE,
            "6": Rank.SIX,
            "7": Rank.SEVEN,
            "8": Rank.EIGHT,
            "9": Rank.NINE,
            "10": Rank.TEN,
            "T": Rank.TEN,
            "J": Rank.JACK,
            "Q": Rank.QUEEN,
            "K": Rank.KING,
        }

        suit_map = {
            "C": Suit.CLUBS,
            "♣": Suit.CLUBS,
            "D": Suit.DIAMONDS,
            "♦": Suit.DIAMONDS,
            "H": Suit.HEARTS,
            "♥": Suit.HEARTS,
            "S": Suit.SPADES,
            "♠": Suit.SPADES,
        }

        if rank_str not in rank_map:
            raise ValueError(f"Invalid rank: {rank_str}")
        if suit_str not in suit_map:
            raise ValueError(f"Invalid suit: {suit_str}")

        return cls(suit_map[suit_str], rank_map[rank_str])


_default_rng = Random()


class Shoe:
    """
    An effectively infinite shoe.

    Every draw is independent and uniform over the 52 cards, so nothing is
    ever depleted and there is no reshuffle point.
    """

    def __init__(self, rng: Random | None = None) -> None:
        """
        Initialize the shoe.

        Args:
            rng: Random number generator, seed it for reproducible rounds
        """
        self._rng = rng or Random()
        self._cards_dealt = 0

    def draw(self, face_down: bool = False) -> Card:
        """Draw a card from the shoe."""
        self._cards_dealt += 1
        return Card.draw(face_down=face_down, rng=self._rng)

    @property
    def cards_dealt(self) -> int:
        """Return the number of cards dealt so far."""
        return self._cards_dealt
