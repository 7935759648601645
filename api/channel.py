"""Chat channel transport: message inboxes, move acquisition and table rendering."""

import asyncio
import logging
from collections import OrderedDict

from core.cards import Card
from core.game import BlackjackRound
from core.hand import Dealer, Hand, Status
from core.moves import Move, parse_move
from core.participant import Participant

from api.schemas import CardView, HandView, ParticipantView, TableSnapshot

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "**h**it, **s**tand, **d**ouble down, s**p**lit, or su**r**render"

STATUS_EMOJI = {
    Status.BLACKJACK: "✨",
    Status.WAIT: "⬛",
    Status.CURRENT: "➡️",
    Status.SURRENDER: "🏳️",
    Status.BUST: "💥",
    Status.STAND: "🔒",
    Status.DOUBLE: "💵",
}

# Finished rounds kept per channel for late readers
MAX_SNAPSHOTS = 16


class ChannelHub:
    """
    One chat channel.

    Messages are routed to the inbox of their author. Only identities
    seated in an active round have an inbox, and it only takes lines
    while a move is being requested from them; anything said out of
    turn is dropped. Rendered snapshots are kept per round and pushed
    to every subscriber.
    """

    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        self._inboxes: dict[str, asyncio.Queue[str]] = {}
        self._awaiting: set[str] = set()
        self._subscribers: list[asyncio.Queue[TableSnapshot]] = []
        self._snapshots: OrderedDict[str, TableSnapshot] = OrderedDict()
        self._tasks: set[asyncio.Task] = set()

    def open_inboxes(self, identities: list[str]) -> None:
        for identity in identities:
            self._inboxes[identity] = asyncio.Queue()

    def close_inboxes(self, identities: list[str]) -> None:
        for identity in identities:
            self._inboxes.pop(identity, None)
            self._awaiting.discard(identity)

    def inbox(self, identity: str) -> asyncio.Queue[str]:
        """Return an identity's inbox, raising KeyError if they are not seated."""
        return self._inboxes[identity]

    def is_awaiting(self, identity: str) -> bool:
        return identity in self._awaiting

    def await_moves(self, identity: str) -> asyncio.Queue[str]:
        """
        Start taking lines from a seated identity.

        Raises:
            KeyError: if the identity is not seated
        """
        inbox = self._inboxes[identity]
        self._awaiting.add(identity)
        return inbox

    def stop_awaiting(self, identity: str) -> None:
        """Stop taking lines from an identity and drop any left unread."""
        self._awaiting.discard(identity)
        inbox = self._inboxes.get(identity)
        while inbox is not None and not inbox.empty():
            inbox.get_nowait()

    def post(self, identity: str, content: str) -> bool:
        """
        Deliver a chat line.

        Returns:
            True if a move is currently being requested from the author
        """
        if identity not in self._awaiting:
            return False
        self._inboxes[identity].put_nowait(content)
        return True

    def subscribe(self) -> asyncio.Queue[TableSnapshot]:
        queue: asyncio.Queue[TableSnapshot] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[TableSnapshot]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, snapshot: TableSnapshot) -> None:
        """Store a round's latest snapshot and push it to subscribers."""
        self._snapshots[snapshot.round_id] = snapshot
        self._snapshots.move_to_end(snapshot.round_id)
        while len(self._snapshots) > MAX_SNAPSHOTS:
            self._snapshots.popitem(last=False)
        for queue in self._subscribers:
            queue.put_nowait(snapshot)

    @property
    def snapshots(self) -> list[TableSnapshot]:
        return list(self._snapshots.values())

    def snapshot(self, round_id: str) -> TableSnapshot | None:
        return self._snapshots.get(round_id)

    def track(self, task: asyncio.Task) -> None:
        """Hold a reference to a running round until it finishes."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class HubManager:
    """All known channels."""

    def __init__(self) -> None:
        self._hubs: dict[str, ChannelHub] = {}

    def get(self, channel_id: str) -> ChannelHub:
        """Get or create the hub for a channel."""
        if channel_id not in self._hubs:
            self._hubs[channel_id] = ChannelHub(channel_id)
        return self._hubs[channel_id]

    def find(self, channel_id: str) -> ChannelHub | None:
        return self._hubs.get(channel_id)


# Global hub manager
hubs = HubManager()


class ChannelMoveSource:
    """Reads moves from the active participant's chat lines."""

    def __init__(self, hub: ChannelHub) -> None:
        self.hub = hub

    async def request_move(self, hand: Hand, participant: Participant, timeout: float) -> Move:
        """
        Wait for the participant's next line that names a move.

        Only lines posted after the request starts are read, and lines
        that are not moves are dropped. The deadline is fixed when the
        request starts and is not extended by ignored lines.

        Raises:
            asyncio.TimeoutError: if no move arrives before the deadline
        """
        inbox = self.hub.await_moves(participant.identity)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError
                content = await asyncio.wait_for(inbox.get(), timeout=remaining)
                move = parse_move(content)
                if move is not None:
                    return move
                logger.debug("Ignoring %r from %s", content, participant.identity)
        finally:
            self.hub.stop_awaiting(participant.identity)


def _card_view(card: Card) -> CardView:
    if card.face_down:
        return CardView(rank="?", suit="?", value=0, face_down=True)
    return CardView(rank=str(card.rank), suit=str(card.suit), value=card.value)


def _hand_view(hand: Hand) -> HandView:
    return HandView(
        cards=[_card_view(c) for c in hand.cards],
        total=hand.total,
        soft=hand.hand_sum.soft,
        status=hand.status.name,
        summary=f"{STATUS_EMOJI[hand.status]} {hand}",
    )


def _dealer_view(dealer: Dealer) -> HandView:
    view = _hand_view(dealer.hand)
    if dealer.hidden:
        view.total = None
        view.soft = None
    view.summary = f"{STATUS_EMOJI[dealer.status]} {dealer}"
    return view


def build_snapshot(
    channel_id: str,
    round_id: str,
    game: BlackjackRound,
    message: str | None = None,
) -> TableSnapshot:
    """Convert round state to a snapshot, hiding the hole card while it is down."""
    return TableSnapshot(
        channel_id=channel_id,
        round_id=round_id,
        state=game.state.name,
        finished=game.state.is_finished,
        dealer=_dealer_view(game.dealer) if game.dealer else None,
        participants=[
            ParticipantView(identity=p.identity, hands=[_hand_view(h) for h in p.hands])
            for p in game.participants
        ],
        message=message or DEFAULT_PROMPT,
    )


class ChannelRenderer:
    """Publishes a round's table to its channel."""

    def __init__(self, hub: ChannelHub, round_id: str) -> None:
        self.hub = hub
        self.round_id = round_id

    async def render(self, game: BlackjackRound, message: str | None = None) -> None:
        self.hub.publish(build_snapshot(self.hub.channel_id, self.round_id, game, message))
