"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator

from core.cards import Card, Shoe
from core.errors import IllegalMove, InvariantViolation

PERFECT = 21
DEALER_STANDS_ON = 17


class Result(Enum):
    """Outcome of one hand against the dealer."""

    LOSE = auto()
    TIE = auto()
    WIN = auto()

    def __str__(self) -> str:
        return self.name.title()


class Status(Enum):
    """Per-hand turn status."""

    BLACKJACK = auto()
    WAIT = auto()
    CURRENT = auto()
    SURRENDER = auto()
    BUST = auto()
    STAND = auto()
    DOUBLE = auto()

    @property
    def is_terminal(self) -> bool:
        """Check if the hand's turn is over."""
        return self not in (Status.WAIT, Status.CURRENT)


@dataclass
class HandSum:
    """
    Running total of a hand.

    At most one ace is ever counted as 11. ``soft`` is True exactly when
    such an ace is being counted.
    """

    total: int = 0
    soft: bool = False

    @classmethod
    def from_cards(cls, cards: list[Card]) -> "HandSum":
        """Compute the sum from scratch."""
        raw = sum(card.value for card in cards)
        if any(card.is_ace for card in cards):
            soft = raw + 10 <= PERFECT
            return cls(raw + 10 if soft else raw, soft)
        return cls(raw, False)

    def hit(self, card: Card) -> None:
        """Add one card to the running total."""
        if card.is_ace and self.total + 11 <= PERFECT:
            self.total += 11
            self.soft = True
        else:
            self.total += card.value
        if self.soft and self.total > PERFECT:
            self.total -= 10
            self.soft = False

    @property
    def is_busted(self) -> bool:
        return self.total > PERFECT

    def __str__(self) -> str:
        return f"{self.total}{'s' if self.soft else 'h'}"


@dataclass
class Hand:
    """A blackjack hand with its running sum and turn status."""

    cards: list[Card] = field(default_factory=list)
    hand_sum: HandSum = field(init=False)
    status: Status = field(init=False)

    def __post_init__(self) -> None:
        self.hand_sum = HandSum.from_cards(self.cards)
        self.status = Status.BLACKJACK if self.is_blackjack else Status.WAIT

    @classmethod
    def deal(cls, shoe: Shoe | None = None) -> "Hand":
        """Deal a fresh two-card hand, both cards face up."""
        shoe = shoe or Shoe()
        return cls([shoe.draw(), shoe.draw()])

    def hit(self, card: Card | None = None) -> Card:
        """
        Add a card to the hand.

        Args:
            card: Card to add, a random one is drawn if omitted

        Returns:
            The card that was added

        Raises:
            InvariantViolation: if the hand's turn is already over
        """
        if self.status.is_terminal:
            raise InvariantViolation(f"Cannot hit a hand with status {self.status.name}")
        if card is None:
            card = Card.draw()
        self.cards.append(card)
        self.hand_sum.hit(card)
        return card

    def stand(self) -> None:
        self.status = Status.STAND

    def require_first_decision(self, action: str) -> None:
        """
        Reject actions that are only allowed on the first two cards.

        Raises:
            IllegalMove: if the hand no longer holds exactly two cards
        """
        if not self.is_first_decision:
            raise IllegalMove(f"You can only {action} on the first turn of your hand!")

    def double(self, card: Card | None = None) -> Card:
        """Take exactly one more card and end the turn."""
        self.require_first_decision("double down")
        card = self.hit(card)
        self.status = Status.BUST if self.is_busted else Status.DOUBLE
        return card

    def surrender(self) -> None:
        self.require_first_decision("surrender")
        self.status = Status.SURRENDER

    def split(self) -> "Hand":
        """
        Move the second card into a new one-card hand.

        Both hands' sums are recomputed from their single card; drawing
        the replacement cards is left to the caller.

        Returns:
            The new hand holding the moved card
        """
        self.require_first_decision("split")
        if not self.is_splittable:
            raise IllegalMove("You can only split if your cards have the same value!")
        new_hand = Hand([self.cards.pop()])
        self.hand_sum = HandSum.from_cards(self.cards)
        return new_hand

    @property
    def is_first_decision(self) -> bool:
        """Check if the hand still holds exactly its first two cards."""
        return len(self.cards) == 2

    @property
    def is_splittable(self) -> bool:
        """Check if the two cards have the same point value."""
        return self.is_first_decision and self.cards[0].value == self.cards[1].value

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (total > 21)."""
        return self.hand_sum.is_busted

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is a natural (21 with at most two cards)."""
        return self.hand_sum.total == PERFECT and len(self.cards) <= 2

    @property
    def total(self) -> int:
        return self.hand_sum.total

    def compare(self, other: "Hand") -> Result:
        """
        Compare totals against another hand.

        Equal totals tie, except at 21 where a two-card hand beats a
        longer one.
        """
        ours = self.hand_sum.total
        theirs = other.hand_sum.total
        if ours > theirs:
            return Result.WIN
        if ours < theirs:
            return Result.LOSE
        if ours != PERFECT:
            return Result.TIE

        our_natural = len(self.cards) <= 2
        their_natural = len(other.cards) <= 2
        if our_natural and not their_natural:
            return Result.WIN
        if their_natural and not our_natural:
            return Result.LOSE
        return Result.TIE

    def cards_string(self) -> str:
        return " ".join(f"`{card}`" for card in self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        if self.is_busted:
            label = "BUST"
        elif self.is_blackjack:
            label = "BLACKJACK"
        else:
            label = str(self.hand_sum)
        return f"**{label}** {self.cards_string()}"


@dataclass
class Dealer:
    """
    The dealer's hand plus its hole card state.

    Wraps a plain Hand so every hand operation applies to the dealer's
    cards unchanged.
    """

    hand: Hand
    hidden: bool = True

    @classmethod
    def deal(cls, shoe: Shoe | None = None) -> "Dealer":
        """Deal one card up and one card down."""
        shoe = shoe or Shoe()
        return cls(Hand([shoe.draw(), shoe.draw(face_down=True)]))

    @property
    def cards(self) -> list[Card]:
        return self.hand.cards

    @property
    def hand_sum(self) -> HandSum:
        return self.hand.hand_sum

    @property
    def status(self) -> Status:
        return self.hand.status

    @status.setter
    def status(self, status: Status) -> None:
        self.hand.status = status

    @property
    def total(self) -> int:
        return self.hand.total

    @property
    def is_busted(self) -> bool:
        return self.hand.is_busted

    @property
    def is_blackjack(self) -> bool:
        return self.hand.is_blackjack

    @property
    def showing(self) -> HandSum:
        """Sum of the upcard alone."""
        return HandSum.from_cards(self.cards[:1])

    def hit(self, card: Card | None = None) -> Card:
        return self.hand.hit(card)

    def reveal(self) -> Card:
        """
        Turn the hole card face up.

        Returns:
            The revealed card

        Raises:
            InvariantViolation: if the hole card was already revealed
        """
        if not self.hidden:
            raise InvariantViolation("Dealer's hole card was already revealed")
        self.hidden = False
        self.cards[1] = self.cards[1].turned_up()
        return self.cards[1]

    def should_hit(self) -> bool:
        """Dealer hits below 17 and on soft 17."""
        hand_sum = self.hand_sum
        if hand_sum.total < DEALER_STANDS_ON:
            return True
        return hand_sum.total == DEALER_STANDS_ON and hand_sum.soft

    def __str__(self) -> str:
        if self.hidden:
            return f"**{self.showing}+** {self.hand.cards_string()}"
        return str(self.hand)


def settle(hand: Hand, dealer: Dealer) -> Result:
    """
    Settle a finished hand against the dealer's finished hand.

    Busted and surrendered hands lose regardless of the dealer.
    """
    if hand.status in (Status.BUST, Status.SURRENDER) or hand.is_busted:
        return Result.LOSE
    if dealer.is_busted:
        return Result.WIN
    return hand.compare(dealer.hand)
