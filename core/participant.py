"""Participants and the collaborators a round talks to."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from core.cards import Shoe
from core.hand import Hand
from core.moves import Move

if TYPE_CHECKING:
    from core.game.engine import BlackjackRound


class MoveSource(Protocol):
    """Delivers one validated move for the active hand."""

    async def request_move(
        self,
        hand: Hand,
        participant: "Participant",
        timeout: float,
    ) -> Move:
        """
        Wait for the participant's next move.

        Raises:
            asyncio.TimeoutError: if no move arrives within ``timeout`` seconds
        """
        ...


class Renderer(Protocol):
    """Presents the table after every state change."""

    async def render(self, game: "BlackjackRound", message: str | None = None) -> None:
        ...


@dataclass
class Participant:
    """A player at the table and the hands they are playing."""

    identity: str
    hands: list[Hand] = field(default_factory=list)

    @classmethod
    def deal(cls, identity: str, shoe: Shoe | None = None) -> "Participant":
        """Seat a participant with one freshly dealt hand."""
        return cls(identity, [Hand.deal(shoe)])

    def split_hand(self, index: int) -> Hand:
        """
        Split the hand at ``index``, inserting the new hand right after it.

        Raises:
            IllegalMove: if the hand cannot be split
        """
        new_hand = self.hands[index].split()
        self.hands.insert(index + 1, new_hand)
        return new_hand

    async def move(self, source: MoveSource, hand: Hand, timeout: float) -> Move:
        """Ask this participant for a move on one of their hands."""
        return await source.request_move(hand, self, timeout)
