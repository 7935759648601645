"""Tests for the chat channel transport."""

import asyncio

import pytest

from api.channel import (
    DEFAULT_PROMPT,
    MAX_SNAPSHOTS,
    ChannelHub,
    ChannelMoveSource,
    ChannelRenderer,
    HubManager,
)
from api.schemas import TableSnapshot
from conftest import StackedShoe, make_hand
from core.game import BlackjackRound
from core.hand import Status
from core.moves import Move
from core.participant import Participant


@pytest.fixture
def hub():
    hub = ChannelHub("general")
    hub.open_inboxes(["alice", "bob"])
    return hub


@pytest.fixture
def renderer(hub):
    """Rounds built by make_round publish into the hub."""
    return ChannelRenderer(hub, "r1")


def _participant(identity: str) -> Participant:
    return Participant(identity, [make_hand("10S", "6H")])


def _snapshot(round_id: str) -> TableSnapshot:
    return TableSnapshot(
        channel_id="general",
        round_id=round_id,
        state="WAITING",
        dealer=None,
        participants=[],
        message=DEFAULT_PROMPT,
    )


class TestChannelHub:
    """Tests for ChannelHub class."""

    def test_post_while_awaited(self, hub):
        hub.await_moves("alice")

        assert hub.post("alice", "h") is True
        assert hub.inbox("alice").get_nowait() == "h"

    def test_post_out_of_turn_dropped(self, hub):
        assert hub.post("alice", "h") is False
        assert hub.inbox("alice").empty()

    def test_post_from_bystander(self, hub):
        assert hub.post("carol", "h") is False
        with pytest.raises(KeyError):
            hub.await_moves("carol")

    def test_stop_awaiting_drops_unread(self, hub):
        hub.await_moves("alice")
        hub.post("alice", "h")

        hub.stop_awaiting("alice")

        assert not hub.is_awaiting("alice")
        assert hub.inbox("alice").empty()
        assert hub.post("alice", "s") is False

    def test_closed_inbox(self, hub):
        hub.await_moves("alice")
        hub.close_inboxes(["alice"])

        assert hub.post("alice", "h") is False
        with pytest.raises(KeyError):
            hub.inbox("alice")

    def test_publish_reaches_subscribers(self, hub):
        queue = hub.subscribe()

        hub.publish(_snapshot("r1"))

        assert queue.get_nowait().round_id == "r1"
        hub.unsubscribe(queue)
        hub.publish(_snapshot("r2"))
        assert queue.empty()

    def test_latest_snapshot_per_round(self, hub):
        hub.publish(_snapshot("r1"))
        hub.publish(_snapshot("r2"))
        hub.publish(_snapshot("r1"))

        assert [s.round_id for s in hub.snapshots] == ["r2", "r1"]
        assert hub.snapshot("r3") is None

    def test_snapshots_capped(self, hub):
        for i in range(MAX_SNAPSHOTS + 4):
            hub.publish(_snapshot(f"r{i}"))

        assert len(hub.snapshots) == MAX_SNAPSHOTS
        assert hub.snapshot("r0") is None
        assert hub.snapshots[-1].round_id == f"r{MAX_SNAPSHOTS + 3}"


class TestHubManager:
    def test_get_creates_once(self):
        manager = HubManager()

        assert manager.find("general") is None
        hub = manager.get("general")
        assert manager.get("general") is hub
        assert manager.find("general") is hub


class TestChannelMoveSource:
    """Tests for reading moves out of chat."""

    @pytest.mark.asyncio
    async def test_ignores_chatter(self, hub):
        participant = _participant("alice")
        request = asyncio.create_task(
            ChannelMoveSource(hub).request_move(participant.hands[0], participant, 1.0)
        )
        await asyncio.sleep(0)

        for line in ("hello", "what should I do", "Stand"):
            assert hub.post("alice", line)

        assert await request == Move.STAND
        assert not hub.is_awaiting("alice")
        assert hub.inbox("alice").empty()

    @pytest.mark.asyncio
    async def test_ignores_other_identities(self, hub):
        participant = _participant("alice")
        request = asyncio.create_task(
            ChannelMoveSource(hub).request_move(participant.hands[0], participant, 0.05)
        )
        await asyncio.sleep(0)

        assert hub.post("bob", "h") is False

        with pytest.raises(asyncio.TimeoutError):
            await request

        assert hub.inbox("bob").empty()

    @pytest.mark.asyncio
    async def test_chatter_does_not_extend_deadline(self, hub):
        participant = _participant("alice")

        async def chatter():
            for _ in range(20):
                hub.post("alice", "hmm")
                await asyncio.sleep(0.02)

        task = asyncio.create_task(chatter())
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            with pytest.raises(asyncio.TimeoutError):
                await ChannelMoveSource(hub).request_move(participant.hands[0], participant, 0.1)
        finally:
            task.cancel()

        assert loop.time() - started < 0.3
        assert not hub.is_awaiting("alice")

    @pytest.mark.asyncio
    async def test_move_posted_before_request_ignored(self, hub):
        participant = _participant("alice")

        assert hub.post("alice", "h") is False

        with pytest.raises(asyncio.TimeoutError):
            await ChannelMoveSource(hub).request_move(participant.hands[0], participant, 0.05)

    @pytest.mark.asyncio
    async def test_one_move_per_request(self, hub):
        participant = _participant("alice")
        source = ChannelMoveSource(hub)
        request = asyncio.create_task(source.request_move(participant.hands[0], participant, 1.0))
        await asyncio.sleep(0)

        hub.post("alice", "h")
        hub.post("alice", "s")

        assert await request == Move.HIT
        with pytest.raises(asyncio.TimeoutError):
            await source.request_move(participant.hands[0], participant, 0.05)

    @pytest.mark.asyncio
    async def test_no_acting_out_of_turn(self, hub):
        """A line typed while someone else is playing never becomes a move."""
        game = BlackjackRound(
            ["alice", "bob"],
            move_source=ChannelMoveSource(hub),
            renderer=ChannelRenderer(hub, "r1"),
            shoe=StackedShoe(["10S", "6H", "10H", "7D", "10D", "8C"]),
            move_timeout=0.2,
            dealer_delay=0,
        )
        assert hub.post("bob", "s") is False
        play = asyncio.create_task(game.play())

        for _ in range(100):
            if hub.is_awaiting("alice"):
                break
            await asyncio.sleep(0.01)
        assert hub.post("bob", "s") is False
        assert hub.post("alice", "s") is True

        outcome = await play

        alice, bob = game.participants
        assert alice.hands[0].status == Status.STAND
        assert bob.hands[0].status == Status.CURRENT
        assert outcome.abandoned


class TestChannelRenderer:
    """Tests for published table snapshots."""

    @pytest.mark.asyncio
    async def test_hole_card_hidden_until_dealer_turn(self, hub, make_round):
        updates = hub.subscribe()
        game, _ = make_round(["alice"], ["10S", "8H", "10D", "9C"], {"alice": ["s"]})
        await game.play()

        first = updates.get_nowait()
        assert first.state == "PLAYER_TURN"
        assert not first.finished
        assert first.message == DEFAULT_PROMPT
        hole = first.dealer.cards[1]
        assert hole.face_down
        assert hole.rank == "?"
        assert first.dealer.total is None
        assert first.dealer.summary == "⬛ **10h+** `♦10` `??`"
        assert first.participants[0].hands[0].summary == "⬛ **18h** `♠10` `♥8`"

        final = hub.snapshot("r1")
        assert final.state == "ROUND_COMPLETE"
        assert final.finished
        assert final.dealer.total == 19
        assert not final.dealer.cards[1].face_down
        assert final.dealer.cards[1].rank == "9"
        assert "alice lost!" in final.message

    @pytest.mark.asyncio
    async def test_abandoned_round(self, hub, make_round):
        game, _ = make_round(["alice"], ["10S", "6H", "10D", "7C"])
        await game.play()

        final = hub.snapshot("r1")
        assert final.state == "ABANDONED"
        assert final.finished
        assert final.message == "Ended due to inactivity."
        assert final.dealer.cards[1].face_down
