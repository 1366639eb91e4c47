"""Sliding-window limiter for generation calls.

At most ``max_requests_per_minute`` recorded requests in any ``window``
seconds, and at least ``buffer`` seconds between two granted slots. A limit of
0 or less switches limiting off.

    slot = await limiter.wait_for_slot(cancel)
    text = await generator.generate(...)
    limiter.record_request()       # only once the call actually happened

The limiter is an ordinary object owned by whoever builds it from settings;
changing settings means calling ``reconfigure``, not replacing a global.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
BUFFER_SECONDS = 1.0
EPSILON = 0.01


class SlotWaitCancelled(Exception):
    """The caller's cancel signal fired while waiting for a slot."""


class RateLimiter:
    def __init__(
        self,
        max_requests_per_minute: int,
        *,
        window: float = WINDOW_SECONDS,
        buffer: float = BUFFER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests_per_minute
        self.window = window
        self.buffer = buffer
        self._clock = clock
        self._requests: deque[float] = deque()
        self._last_slot: float | None = None

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def reconfigure(self, max_requests_per_minute: int) -> None:
        """Change the limit in place. Recorded history is kept."""
        logger.debug("rate limit %d -> %d rpm", self.max_requests, max_requests_per_minute)
        self.max_requests = max_requests_per_minute

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.window:
            self._requests.popleft()

    def next_wait(self, now: float | None = None) -> float:
        """Seconds until a slot is free; 0 when one is free now."""
        if not self.enabled:
            return 0.0
        now = self._clock() if now is None else now
        self._prune(now)

        wait = 0.0
        if self._last_slot is not None:
            wait = self._last_slot + self.buffer - now
        if len(self._requests) >= self.max_requests:
            oldest_age = now - self._requests[0]
            wait = max(wait, self.window - oldest_age + EPSILON, self.buffer)
        return max(wait, 0.0)

    async def wait_for_slot(self, cancel: asyncio.Event | None = None) -> None:
        """Return once a slot is free. Raises SlotWaitCancelled as soon as ``cancel`` is set."""
        if cancel is not None and cancel.is_set():
            raise SlotWaitCancelled()
        if not self.enabled:
            return
        while True:
            wait = self.next_wait()
            if wait <= 0:
                self._last_slot = self._clock()
                return
            logger.debug("rate limited, waiting %.2fs", wait)
            await self._sleep(wait, cancel)
            # a timed-out sleep can race a cancel set at the same moment
            if cancel is not None and cancel.is_set():
                raise SlotWaitCancelled()

    async def _sleep(self, delay: float, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise SlotWaitCancelled()

    def record_request(self) -> None:
        if not self.enabled:
            return
        now = self._clock()
        self._requests.append(now)
        self._last_slot = now if self._last_slot is None else max(self._last_slot, now)

    def reset(self) -> None:
        self._requests.clear()
        self._last_slot = None
