from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, List, Set

from orchestrator.types import ProcessedEvent

logger = logging.getLogger(__name__)

EVENT_HISTORY_MAX = 200


class EventHistory:
    """Recent processed events plus live subscribers for the dashboard feed.

    Registered on the engine as an observer; survives config reloads.
    """

    def __init__(self, max_events: int = EVENT_HISTORY_MAX) -> None:
        self.max_events = max_events
        self._events: Deque[ProcessedEvent] = deque(maxlen=max_events)
        self._subscribers: Set[asyncio.Queue] = set()

    def __call__(self, event: ProcessedEvent) -> None:
        self.record(event)

    def record(self, event: ProcessedEvent) -> None:
        self._events.appendleft(event)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Dropping live event for a slow subscriber")

    def recent(self, limit: int = 50) -> List[ProcessedEvent]:
        limit = max(0, min(limit, self.max_events))
        return list(self._events)[:limit]

    def subscribe(self, maxsize: int = 100) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
