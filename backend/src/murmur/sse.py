"""Server-Sent Events projection of the session.

The orchestrator publishes every state change to an ``EventBus``; each
connected client drains its own bounded queue through ``event_stream``.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import Request
from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Session event names as seen by clients."""

    CONVERSATION_UPDATED = "conversation:updated"
    CONVERSATIONS_CHANGED = "conversations:changed"
    STATE_CHANGED = "state:changed"
    SUGGESTIONS_UPDATED = "suggestions:updated"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


@dataclass
class SSEEvent:
    event: EventType | str
    data: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    @property
    def name(self) -> str:
        return self.event.value if isinstance(self.event, EventType) else self.event

    def encode(self) -> str:
        """Wire format: id, event and data lines, then a blank line."""
        return f"id: {self.id}\nevent: {self.name}\ndata: {json.dumps(self.data)}\n\n"


class EventBus:
    """Fans session events out to every connected client.

    Publishing never waits on a slow client: once a client's queue is full,
    further events for it are dropped until it catches up.
    """

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._subscribers: list[asyncio.Queue[SSEEvent]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[SSEEvent]:
        queue: asyncio.Queue[SSEEvent] = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.append(queue)
        logger.info(f"Client subscribed ({self.subscriber_count} connected)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue[SSEEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)
            logger.info(f"Client unsubscribed ({self.subscriber_count} connected)")

    async def publish(self, event: SSEEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full, dropping {event.name} event")


async def event_stream(
    bus: EventBus,
    request: Request,
    initial: SSEEvent | None = None,
    heartbeat_interval: float = 30,
) -> AsyncIterator[str]:
    """Encode bus events for one client until it disconnects.

    ``initial`` (normally the current session snapshot) is sent first so a
    client that connects mid-session can render without a separate request.
    """
    queue = bus.subscribe()
    try:
        if initial is not None:
            yield initial.encode()

        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval)
            except asyncio.TimeoutError:
                event = SSEEvent(event=EventType.HEARTBEAT, data={})
            yield event.encode()
    finally:
        bus.unsubscribe(queue)


def create_sse_response(stream: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
