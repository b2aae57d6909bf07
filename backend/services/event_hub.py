from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

JOBS_CHANNEL = "jobs"
RECORDER_CHANNEL = "recorder"


class EventHub:
    """
    In-memory pubsub for app events (job completed, recording decisions).

    - Each subscriber gets a bounded asyncio.Queue; when it is full the oldest
      payload is dropped so slow readers always see the latest events.
    - publish_nowait() is for sync callers such as timer callbacks.
    """

    def __init__(self, *, maxsize: int = 16) -> None:
        self._maxsize = maxsize
        self._lock = asyncio.Lock()
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)

    async def subscribe(self, channel: str) -> asyncio.Queue[dict[str, Any]]:
        q: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._maxsize)
        async with self._lock:
            self._subscribers[channel].add(q)
        return q

    async def unsubscribe(self, channel: str, q: asyncio.Queue[dict[str, Any]]) -> None:
        async with self._lock:
            subs = self._subscribers.get(channel)
            if not subs:
                return
            subs.discard(q)
            if not subs:
                self._subscribers.pop(channel, None)

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        async with self._lock:
            subs = list(self._subscribers.get(channel, set()))
        for q in subs:
            _put_latest(q, payload)

    def publish_nowait(self, channel: str, payload: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: nobody can be listening.
            return
        loop.create_task(self.publish(channel, payload))

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))


def _put_latest(q: asyncio.Queue[dict[str, Any]], payload: dict[str, Any]) -> None:
    if q.full():
        try:
            _ = q.get_nowait()
        except asyncio.QueueEmpty:
            pass
    try:
        q.put_nowait(payload)
    except asyncio.QueueFull:
        # Raced between full-check and put; drop.
        pass


event_hub = EventHub()
