"""
Event Bus - delivery of generation events to interested parties

The orchestrator only knows the ``EventSink`` protocol. ``BroadcastHub``
fans events out to any number of subscriber queues (one per SSE client);
``CallbackSink`` adapts a plain function.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Callable, Protocol

from weblisite.models.events import WireEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    async def emit(self, event: WireEvent) -> None: ...


class CallbackSink:
    """Sink backed by a sync or async callable"""

    def __init__(self, callback: Callable[[WireEvent], Any]):
        self.callback = callback

    async def emit(self, event: WireEvent) -> None:
        result = self.callback(event)
        if inspect.isawaitable(result):
            await result


class BroadcastHub:
    """Fan-out of events to subscriber queues"""

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    async def emit(self, event: WireEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"[EventBus] Subscriber queue full; dropping {event.type} event")

    async def stream(self) -> AsyncIterator[WireEvent]:
        """Events emitted from now on, until the consumer stops iterating"""
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)
