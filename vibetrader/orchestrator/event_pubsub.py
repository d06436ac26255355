"""In-memory token event fan-out for live observers."""
from typing import List, Union, Dict, Any
import asyncio
from pydantic import BaseModel
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100


class TokenEventBroadcaster:
    """Best-effort pubsub. Publishing never waits on a subscriber: a full queue
    drops the event for that subscriber only. Nothing is buffered or replayed
    for subscribers that register later."""

    def __init__(self):
        self._queues: List[asyncio.Queue] = []
        self._lock = asyncio.Lock()
        self.dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def subscribe(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> asyncio.Queue:
        """Register a new subscriber queue."""
        queue = asyncio.Queue(maxsize=maxsize)
        async with self._lock:
            self._queues.append(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue):
        """Remove a subscriber queue (no-op if already gone)."""
        async with self._lock:
            try:
                self._queues.remove(queue)
            except ValueError:
                pass

    async def publish(self, event: Union[BaseModel, Dict[str, Any]]) -> int:
        """Deliver to every live subscriber. Returns how many received it."""
        payload = event.model_dump() if isinstance(event, BaseModel) else event
        async with self._lock:
            queues = self._queues.copy()

        delivered = 0
        for queue in queues:
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                self.dropped += 1
                logger.warning(f"Subscriber queue full, dropping {payload.get('type')} event")
        return delivered
