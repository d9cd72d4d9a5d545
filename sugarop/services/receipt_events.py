"""In-process fan-out of receipt change events to SSE subscribers."""

import asyncio
import json
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Dict, Optional, Set
from uuid import UUID

from sugarop.schemas.events import ReceiptEvent, ReceiptEventType
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ReceiptEventBus:
    """Per-owner publish/subscribe used to invalidate receipt views.

    Publishing never blocks and never raises into the caller; a subscriber
    whose queue is full misses the event.
    """

    def __init__(self, heartbeat_interval: float = 15.0, queue_size: int = 100):
        self.heartbeat_interval = heartbeat_interval
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscriber_count(self, owner_id: str) -> int:
        return len(self._subscribers.get(owner_id, ()))

    @asynccontextmanager
    async def subscribe(self, owner_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[owner_id].add(queue)
        LOGGER.info("SSE subscriber attached", extra={"user_id": owner_id})
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(owner_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._subscribers.pop(owner_id, None)
            LOGGER.info("SSE subscriber detached", extra={"user_id": owner_id})

    def publish(
        self,
        owner_id: str,
        event_type: ReceiptEventType,
        receipt_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> None:
        """Signal every subscriber of ``owner_id`` that a receipt changed."""
        try:
            event = ReceiptEvent(event_type=event_type, receipt_id=receipt_id, status=status)
            for queue in list(self._subscribers.get(owner_id, ())):
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    LOGGER.warning(
                        "Dropping receipt event for slow subscriber",
                        extra={"user_id": owner_id, "event_type": event_type.value},
                    )
        except Exception as e:
            # View invalidation must never fail the operation that triggered it
            LOGGER.error(f"Failed to publish receipt event: {e}", exc_info=True)

    async def stream(self, owner_id: str) -> AsyncGenerator[str, None]:
        """Yield SSE-formatted events for ``owner_id`` until cancelled."""
        async with self.subscribe(owner_id) as queue:
            try:
                while True:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=self.heartbeat_interval)
                    except asyncio.TimeoutError:
                        event = ReceiptEvent(
                            event_type=ReceiptEventType.HEARTBEAT, data={"message": "keep-alive"}
                        )
                    yield format_sse(event)
            except asyncio.CancelledError:
                LOGGER.info(f"SSE connection cancelled for user {owner_id}")
                raise


def format_sse(event: ReceiptEvent) -> str:
    """Format a ReceiptEvent as a raw SSE message."""
    data = event.model_dump(mode="json")
    return f"event: {data['event_type']}\ndata: {json.dumps(data)}\n\n"
