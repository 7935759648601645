"""WebSocket chat connection for a table channel."""

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from api.channel import hubs
from api.session import get_token_signer

router = APIRouter()


@router.websocket("/tables/{channel_id}")
async def table_websocket(websocket: WebSocket, channel_id: str, token: str) -> None:
    """
    WebSocket endpoint for one player in a channel.

    Messages from client: plain chat text, e.g. "h", "stand", "double down".

    Messages to client: every table snapshot published in the channel,
    starting with the latest one of each recent round.
    """
    claims = get_token_signer().unsign(token)
    if claims is None or claims[0] != channel_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    _, identity = claims

    await websocket.accept()
    hub = hubs.get(channel_id)
    updates = hub.subscribe()

    for snapshot in hub.snapshots:
        await websocket.send_json(snapshot.model_dump(mode="json"))

    async def forward_updates() -> None:
        """Send published snapshots to the client."""
        while True:
            snapshot = await updates.get()
            await websocket.send_json(snapshot.model_dump(mode="json"))

    update_task = asyncio.create_task(forward_updates())

    try:
        while True:
            content = await websocket.receive_text()
            hub.post(identity, content)
    except WebSocketDisconnect:
        pass
    finally:
        update_task.cancel()
        try:
            await update_task
        except asyncio.CancelledError:
            pass
        hub.unsubscribe(updates)
