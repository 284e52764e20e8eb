"""StreamManager -- per-session event buffering and SSE subscriber management."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Any, AsyncGenerator

from .events import SessionEventType, SSEEvent


class StreamManager:
    """Manages SSE event distribution for dashboard sessions.

    Each session_id has:
    - A list of subscriber queues (asyncio.Queue instances)
    - A bounded buffer of recent events for replay on reconnect
    - A monotonically increasing sequence counter
    """

    def __init__(self, max_buffered_events: int = 1000) -> None:
        self.max_buffered_events = max_buffered_events
        self._subscribers: dict[str, list[asyncio.Queue[SSEEvent]]] = defaultdict(list)
        self._buffers: dict[str, deque[SSEEvent]] = defaultdict(
            lambda: deque(maxlen=self.max_buffered_events)
        )
        self._sequences: dict[str, int] = defaultdict(int)

    def next_sequence_id(self, session_id: str) -> int:
        self._sequences[session_id] += 1
        return self._sequences[session_id]

    async def subscribe(self, session_id: str) -> asyncio.Queue[SSEEvent]:
        """Create and return a new subscriber queue for a session."""
        queue: asyncio.Queue[SSEEvent] = asyncio.Queue()
        self._subscribers[session_id].append(queue)
        return queue

    async def unsubscribe(self, session_id: str, queue: asyncio.Queue[SSEEvent]) -> None:
        """Remove a subscriber queue from a session."""
        subs = self._subscribers.get(session_id, [])
        if queue in subs:
            subs.remove(queue)

    async def emit(self, session_id: str, event: SSEEvent) -> None:
        """Broadcast an event to all subscribers and buffer it for replay."""
        self._buffers[session_id].append(event)
        for queue in self._subscribers[session_id]:
            await queue.put(event)

    async def publish(
        self, session_id: str, event_type: SessionEventType, data: dict[str, Any]
    ) -> SSEEvent:
        """Build an event with the next sequence id and emit it."""
        event = SSEEvent(
            event_type=event_type,
            data=data,
            sequence_id=self.next_sequence_id(session_id),
        )
        await self.emit(session_id, event)
        return event

    def buffered(self, session_id: str) -> list[SSEEvent]:
        return list(self._buffers.get(session_id, ()))

    async def event_generator(
        self, session_id: str, last_event_id: int | None = None
    ) -> AsyncGenerator[str, None]:
        """Async generator yielding SSE strings for a session.

        If last_event_id is provided, replays buffered events with
        sequence_id > last_event_id before switching to live events.
        """
        queue = await self.subscribe(session_id)
        try:
            # SSE comment as connection heartbeat (ignored by browsers)
            yield ": connected\n\n"

            replayed = 0
            if last_event_id is not None:
                for event in self.buffered(session_id):
                    if event.sequence_id > last_event_id:
                        replayed = event.sequence_id
                        yield event.to_sse_string()

            while True:
                event = await queue.get()
                if event.sequence_id <= replayed:
                    continue
                yield event.to_sse_string()
        finally:
            await self.unsubscribe(session_id, queue)
