"""Cancellable delayed actions on the running asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class DelayedAction:
    """
    Run ``callback`` once after ``delay`` seconds, or every ``delay`` seconds
    when ``repeat=True``, until cancelled.

    - start() schedules on the running loop (or the loop passed in).
    - cancel() is idempotent; after it returns the callback never runs again.
    - A one-shot action never fires before its full delay has elapsed.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        repeat: bool = False,
        loop: asyncio.AbstractEventLoop | None = None,
        name: str = "delayed-action",
    ) -> None:
        if delay <= 0:
            raise ValueError("delay must be positive")
        self._delay = delay
        self._callback = callback
        self._repeat = repeat
        self._loop = loop
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._armed_at: float | None = None
        self._due = 0.0
        self._cancelled = False
        self._fire_count = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def armed_at(self) -> float | None:
        return self._armed_at

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled

    @property
    def fire_count(self) -> int:
        return self._fire_count

    def start(self) -> "DelayedAction":
        if self._cancelled:
            raise RuntimeError(f"{self._name} was cancelled and cannot be restarted")
        if self._handle is not None:
            return self
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._armed_at = loop.time()
        self._due = self._armed_at + self._delay
        self._handle = loop.call_later(self._delay, self._fire)
        return self

    def cancel(self) -> bool:
        """Cancel the action. Returns True only for the call that actually stopped it."""
        if self._cancelled:
            return False
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return True

    def _fire(self) -> None:
        if self._cancelled:
            return
        assert self._loop is not None
        remaining = self._due - self._loop.time()
        if remaining > 0:
            # The loop may wake within its clock resolution of the deadline.
            self._handle = self._loop.call_later(remaining, self._fire)
            return
        self._fire_count += 1
        if self._repeat:
            self._due += self._delay
            self._handle = self._loop.call_later(max(self._due - self._loop.time(), 0), self._fire)
        else:
            self._handle = None
            self._cancelled = True
        try:
            self._callback()
        except Exception:  # noqa: BLE001
            logger.error("[timers] %s callback failed", self._name, exc_info=True)
