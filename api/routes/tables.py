"""Table API endpoints."""

import asyncio
import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status

from api.channel import ChannelHub, ChannelMoveSource, ChannelRenderer, hubs
from api.schemas import (
    ChatMessageRequest,
    ChatMessageResponse,
    StartRoundRequest,
    StartRoundResponse,
    TableResponse,
)
from api.session import AlreadyPlaying, SessionRegistry, get_session_registry, get_token_signer
from config import config
from core.game import BlackjackRound, RoundOutcome

logger = logging.getLogger(__name__)

router = APIRouter()


async def run_round(
    hub: ChannelHub,
    game: BlackjackRound,
    registry: SessionRegistry,
) -> RoundOutcome:
    """Play a round, then free its players whatever happened."""
    try:
        return await game.play()
    finally:
        hub.close_inboxes(game.identities)
        await registry.release(hub.channel_id, game.identities)


def _log_round_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Round task %s failed", task.get_name(), exc_info=exc)


@router.post("/{channel_id}/rounds", response_model=StartRoundResponse, status_code=status.HTTP_201_CREATED)
async def start_round(channel_id: str, request: StartRoundRequest) -> StartRoundResponse:
    """Seat the players and start a round in the background."""
    if len(request.players) > config.game.max_players:
        raise HTTPException(
            status_code=422,
            detail=f"At most {config.game.max_players} players per round",
        )

    registry = await get_session_registry()
    try:
        await registry.acquire(channel_id, request.players)
    except AlreadyPlaying as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message(requester=request.players[0]),
        ) from e

    hub = hubs.get(channel_id)
    hub.open_inboxes(request.players)
    round_id = uuid4().hex
    game = BlackjackRound(
        request.players,
        move_source=ChannelMoveSource(hub),
        renderer=ChannelRenderer(hub, round_id),
        move_timeout=config.game.move_timeout,
        dealer_delay=config.game.dealer_delay,
    )

    task = asyncio.create_task(run_round(hub, game, registry), name=f"round-{round_id}")
    task.add_done_callback(_log_round_failure)
    hub.track(task)

    signer = get_token_signer()
    return StartRoundResponse(
        channel_id=channel_id,
        round_id=round_id,
        players=request.players,
        tokens={player: signer.sign(channel_id, player) for player in request.players},
    )


@router.get("/{channel_id}", response_model=TableResponse)
async def get_table(channel_id: str) -> TableResponse:
    """Latest snapshot of each recent round in the channel."""
    hub = hubs.find(channel_id)
    if hub is None or not hub.snapshots:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rounds in this channel")
    return TableResponse(channel_id=channel_id, rounds=hub.snapshots)


@router.post("/{channel_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def post_message(channel_id: str, request: ChatMessageRequest) -> ChatMessageResponse:
    """Post a chat line as the token's player."""
    claims = get_token_signer().unsign(request.token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    token_channel, identity = claims
    if token_channel != channel_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token is for another channel")

    accepted = hubs.get(channel_id).post(identity, request.content)
    return ChatMessageResponse(accepted=accepted)
