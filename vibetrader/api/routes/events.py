"""Live token event feed over WebSocket."""
import asyncio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

PING_MESSAGE = {"type": "ping"}
PONG_TYPE = "pong"


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event)


async def _heartbeat(websocket: WebSocket, state: dict, interval: float) -> None:
    """Ping every interval; give up on a client that missed the previous probe."""
    while True:
        await asyncio.sleep(interval)
        if not state["alive"]:
            logger.info("WebSocket client missed heartbeat; closing")
            await websocket.close(code=1001)
            return
        state["alive"] = False
        await websocket.send_json(PING_MESSAGE)


async def _receive(websocket: WebSocket, state: dict) -> None:
    while True:
        message = await websocket.receive_json()
        if isinstance(message, dict) and message.get("type") == PONG_TYPE:
            state["alive"] = True


@router.websocket("/ws/events")
async def token_events(websocket: WebSocket):
    components = websocket.app.state.components
    broadcaster = components.broadcaster
    interval = components.settings.ws_heartbeat_seconds

    # Subscribed before accept so nothing published after the handshake is missed
    queue = await broadcaster.subscribe()
    state = {"alive": True}
    tasks = []
    try:
        await websocket.accept()
        logger.info("WebSocket client connected (%d subscribers)", broadcaster.subscriber_count)
        tasks = [
            asyncio.create_task(_forward_events(websocket, queue)),
            asyncio.create_task(_heartbeat(websocket, state, interval)),
            asyncio.create_task(_receive(websocket, state)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("WebSocket connection error: %s", exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await broadcaster.unsubscribe(queue)
        logger.info("WebSocket client disconnected (%d subscribers)", broadcaster.subscriber_count)
