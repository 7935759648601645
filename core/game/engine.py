"""Blackjack round orchestrator with state machine."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from transitions import Machine

from core.cards import Card, Shoe
from core.errors import IllegalMove, InvariantViolation
from core.hand import PERFECT, Dealer, Hand, Result, Status, settle
from core.moves import Move
from core.participant import MoveSource, Participant, Renderer
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.state import RoundState

logger = logging.getLogger(__name__)

DEALER = "dealer"

RESULT_EVENTS = {
    Result.WIN: EventType.PLAYER_WINS,
    Result.LOSE: EventType.PLAYER_LOSES,
    Result.TIE: EventType.PUSH,
}

RESULT_VERDICTS = {
    Result.WIN: "won",
    Result.LOSE: "lost",
    Result.TIE: "tied",
}


@dataclass(frozen=True)
class HandResult:
    """Settlement of one participant hand."""

    identity: str
    hand_index: int
    result: Result


@dataclass
class RoundOutcome:
    """What a finished round reports back to its caller."""

    abandoned: bool = False
    results: list[HandResult] = field(default_factory=list)

    def result_for(self, identity: str, hand_index: int = 0) -> Result | None:
        """Look up the result of one hand, None if it was never settled."""
        for hand_result in self.results:
            if hand_result.identity == identity and hand_result.hand_index == hand_index:
                return hand_result.result
        return None


class BlackjackRound:
    """
    One round of blackjack against the dealer.

    The round is driven by ``play()``, which suspends only while waiting
    for a participant's move and during the dealer's pacing delay. Only
    one hand is ever active at a time.
    """

    # State machine states
    STATES = [s.name.lower() for s in RoundState]

    # State machine transitions
    TRANSITIONS = [
        {"trigger": "deal", "source": "waiting", "dest": "dealing"},
        {"trigger": "start_turns", "source": "dealing", "dest": "player_turn"},
        {"trigger": "dealer_blackjack", "source": "dealing", "dest": "resolving"},
        {"trigger": "players_done", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "dealer_done", "source": "dealer_turn", "dest": "resolving"},
        {"trigger": "resolve", "source": "resolving", "dest": "round_complete"},
        {"trigger": "abandon", "source": "player_turn", "dest": "abandoned"},
    ]

    def __init__(
        self,
        identities: list[str],
        move_source: MoveSource,
        renderer: Renderer,
        shoe: Shoe | None = None,
        move_timeout: float = 60.0,
        dealer_delay: float = 1.5,
    ) -> None:
        """
        Initialize a new round.

        Args:
            identities: Participants, in seating order
            move_source: Where participants' moves come from
            renderer: Presentation of the table after each step
            shoe: Card source (a fresh infinite shoe if not provided)
            move_timeout: Seconds to wait for each move before abandoning
            dealer_delay: Pause in seconds before each dealer action
        """
        if not identities:
            raise ValueError("A round needs at least one participant")
        if len(set(identities)) != len(identities):
            raise ValueError("Participants must be distinct")

        self.identities = list(identities)
        self.move_source = move_source
        self.renderer = renderer
        self.shoe = shoe or Shoe()
        self.move_timeout = move_timeout
        self.dealer_delay = dealer_delay

        self.participants: list[Participant] = []
        self.dealer: Dealer | None = None
        self.active_hand: Hand | None = None
        self.events = EventEmitter()

        # Initialize state machine
        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial="waiting",
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @property
    def state(self) -> RoundState:
        """Get current round state as enum."""
        return RoundState[self._machine_state.upper()]  # type: ignore

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to round events."""
        self.events.subscribe(handler, event_type)

    async def play(self) -> RoundOutcome:
        """
        Play the round to completion.

        Returns:
            The per-hand results, or an abandoned outcome on move timeout

        Raises:
            InvariantViolation: if the round was already played
        """
        if self.state != RoundState.WAITING:
            raise InvariantViolation(f"Round cannot be played from state {self.state}")

        self.deal()
        self._deal_initial_cards()
        logger.info("Round started for %s", ", ".join(self.identities))

        if self.dealer.total == PERFECT:
            return await self._settle_dealer_natural()

        self.start_turns()
        try:
            for participant in self.participants:
                await self._render()
                await self._play_participant(participant)
        except asyncio.TimeoutError:
            return await self._abandon()

        self.players_done()
        await self._play_dealer()
        self.dealer_done()
        return await self._resolve_round()

    def _deal_initial_cards(self) -> None:
        """Deal two cards to each participant, then the dealer's up and hole cards."""
        for identity in self.identities:
            hand = Hand([self._draw(identity), self._draw(identity)])
            self.participants.append(Participant(identity, [hand]))
            if hand.is_blackjack:
                self.events.emit_new(EventType.PLAYER_BLACKJACK, identity=identity)

        self.dealer = Dealer(Hand([self._draw(DEALER), self._draw(DEALER, face_down=True)]))
        self.events.emit_new(EventType.ROUND_STARTED, players=list(self.identities))

    def _draw(self, owner: str, face_down: bool = False) -> Card:
        """Draw a card from the shoe for ``owner``."""
        card = self.shoe.draw(face_down=face_down)
        self.events.emit_new(EventType.CARD_DEALT, card=str(card), hand=owner)
        return card

    async def _render(self, message: str | None = None) -> None:
        await self.renderer.render(self, message)

    async def _settle_dealer_natural(self) -> RoundOutcome:
        """Dealer natural: reveal, settle every initial hand, skip all turns."""
        self.dealer.reveal()
        self.events.emit_new(EventType.DEALER_BLACKJACK)
        self.dealer_blackjack()

        results = []
        for participant in self.participants:
            hand = participant.hands[0]
            result = Result.TIE if hand.total == PERFECT else Result.LOSE
            results.append(HandResult(participant.identity, 0, result))

        return await self._finish(results, headline="**DEALER BLACKJACK**")

    async def _play_participant(self, participant: Participant) -> None:
        """Play every hand of one participant; the list grows as hands split."""
        index = 0
        while index < len(participant.hands):
            hand = participant.hands[index]
            if not hand.status.is_terminal:
                hand.status = Status.CURRENT
                self.active_hand = hand
                await self._play_hand(participant, index)
            index += 1
        self.active_hand = None

    async def _play_hand(self, participant: Participant, index: int) -> None:
        """Loop on moves until the hand reaches a terminal status."""
        hand = participant.hands[index]
        actions: dict[Move, Callable[[Participant, int], Awaitable[bool]]] = {
            Move.HIT: self._hit,
            Move.STAND: self._stand,
            Move.DOUBLE: self._double,
            Move.SPLIT: self._split,
            Move.SURRENDER: self._surrender,
        }

        while True:
            move = await participant.move(self.move_source, hand, self.move_timeout)
            logger.debug("%s hand %d: %s on %s", participant.identity, index, move, hand.hand_sum)

            if hand.total == PERFECT and move != Move.STAND:
                await self._reject(participant, move, "You can't do that, you've got the best sum!")
                continue

            try:
                turn_over = await actions[move](participant, index)
            except IllegalMove as e:
                await self._reject(participant, move, str(e))
                continue

            if turn_over:
                return

    async def _reject(self, participant: Participant, move: Move, message: str) -> None:
        self.events.emit_new(
            EventType.INVALID_ACTION,
            identity=participant.identity,
            move=move.name,
            message=message,
        )
        await self._render(message)

    async def _hit(self, participant: Participant, index: int) -> bool:
        hand = participant.hands[index]
        card = hand.hit(self._draw(participant.identity))
        self.events.emit_new(
            EventType.PLAYER_HIT,
            identity=participant.identity,
            hand_index=index,
            hand_value=hand.total,
        )

        if hand.is_busted:
            hand.status = Status.BUST
            self.events.emit_new(EventType.PLAYER_BUSTS, identity=participant.identity, hand_index=index)
            await self._render(f"You draw `{card}` and **BUST**")
            return True

        await self._render(f"You draw `{card}`")
        return False

    async def _stand(self, participant: Participant, index: int) -> bool:
        hand = participant.hands[index]
        hand.stand()
        self.events.emit_new(
            EventType.PLAYER_STAND,
            identity=participant.identity,
            hand_index=index,
            hand_value=hand.total,
        )
        await self._render(f"You stand on {hand.total}")
        return True

    async def _double(self, participant: Participant, index: int) -> bool:
        hand = participant.hands[index]
        # Checked here too so a rejected double draws no card
        hand.require_first_decision("double down")
        card = hand.double(self._draw(participant.identity))
        self.events.emit_new(
            EventType.PLAYER_DOUBLE,
            identity=participant.identity,
            hand_index=index,
            hand_value=hand.total,
        )

        if hand.status == Status.BUST:
            self.events.emit_new(EventType.PLAYER_BUSTS, identity=participant.identity, hand_index=index)
            await self._render(f"You double down and draw `{card}` and **BUST**")
        else:
            await self._render(f"You double down and draw `{card}`")
        return True

    async def _split(self, participant: Participant, index: int) -> bool:
        new_hand = participant.split_hand(index)
        hand = participant.hands[index]
        first = hand.hit(self._draw(participant.identity))
        second = new_hand.hit(self._draw(participant.identity))
        self.events.emit_new(
            EventType.PLAYER_SPLIT,
            identity=participant.identity,
            hand_index=index,
            hand1_value=hand.total,
            hand2_value=new_hand.total,
        )
        await self._render(f"You split your hand and draw `{first}` and `{second}`")
        return False

    async def _surrender(self, participant: Participant, index: int) -> bool:
        participant.hands[index].surrender()
        self.events.emit_new(EventType.PLAYER_SURRENDER, identity=participant.identity, hand_index=index)
        await self._render("You surrender your hand")
        return True

    async def _pause(self) -> None:
        if self.dealer_delay > 0:
            await asyncio.sleep(self.dealer_delay)

    async def _play_dealer(self) -> None:
        """Reveal the hole card, then hit below 17 and on soft 17."""
        dealer = self.dealer
        dealer.status = Status.CURRENT

        await self._pause()
        card = dealer.reveal()
        self.events.emit_new(EventType.DEALER_REVEALS, card=str(card), hand_value=dealer.total)
        await self._render(f"Dealer's other card was `{card}`")

        while True:
            await self._pause()
            if not dealer.should_hit():
                dealer.status = Status.STAND
                self.events.emit_new(EventType.DEALER_STANDS, hand_value=dealer.total)
                return

            card = dealer.hit(self._draw(DEALER))
            if dealer.is_busted:
                dealer.status = Status.BUST
                self.events.emit_new(EventType.DEALER_BUSTS, hand_value=dealer.total)
                await self._render(f"Dealer draws `{card}` and **BUSTS**")
                return

            self.events.emit_new(EventType.DEALER_HITS, hand_value=dealer.total)
            await self._render(f"Dealer draws `{card}`")

    async def _resolve_round(self) -> RoundOutcome:
        """Settle every participant hand against the dealer's final hand."""
        results = [
            HandResult(participant.identity, index, settle(hand, self.dealer))
            for participant in self.participants
            for index, hand in enumerate(participant.hands)
        ]
        return await self._finish(results)

    async def _finish(self, results: list[HandResult], headline: str | None = None) -> RoundOutcome:
        for hand_result in results:
            self.events.emit_new(
                RESULT_EVENTS[hand_result.result],
                identity=hand_result.identity,
                hand_index=hand_result.hand_index,
            )

        self.resolve()
        self.events.emit_new(
            EventType.ROUND_ENDED,
            results={f"{r.identity}:{r.hand_index}": r.result.name for r in results},
        )
        logger.info("Round finished for %s", ", ".join(self.identities))

        lines = [headline] if headline else []
        lines.extend(self._verdict(hand_result) for hand_result in results)
        await self._render("\n".join(lines))
        return RoundOutcome(abandoned=False, results=results)

    def _verdict(self, hand_result: HandResult) -> str:
        participant = next(p for p in self.participants if p.identity == hand_result.identity)
        label = hand_result.identity
        if len(participant.hands) > 1:
            label = f"{label} (hand {hand_result.hand_index + 1})"
        return f"{label} {RESULT_VERDICTS[hand_result.result]}!"

    async def _abandon(self) -> RoundOutcome:
        """Leave the round where it stands; unresolved hands get no result."""
        self.abandon()
        self.events.emit_new(EventType.ROUND_ABANDONED)
        logger.info("Round for %s ended due to inactivity", ", ".join(self.identities))
        await self._render("Ended due to inactivity.")
        return RoundOutcome(abandoned=True)
