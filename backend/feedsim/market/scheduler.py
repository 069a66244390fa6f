"""Clock and tick scheduling primitives.

The simulator never calls ``time`` or ``asyncio.sleep`` directly. It goes
through a ``Clock`` so the same tick loop runs against wall time in production
and against a ``VirtualClock`` in tests, where sleeping just advances a counter.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Clock(ABC):
    """Source of time for timestamps, latency measurement and tick delays."""

    @abstractmethod
    def time(self) -> float:
        """Wall-clock Unix seconds, used for event timestamps and cache ages."""

    @abstractmethod
    def monotonic(self) -> float:
        """Monotonic seconds, used for scheduling and latency."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for ``seconds``. Must always yield to the event loop."""


class SystemClock(Clock):
    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock(Clock):
    """Deterministic clock: time only moves when someone sleeps or advances it."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start

    def time(self) -> float:
        return self._now

    def monotonic(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self._now += max(0.0, seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self._now += seconds


class CancelToken:
    """One-shot cancellation flag checked at tick boundaries."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class TickScheduler:
    """Fires a callback every ``interval`` seconds until cancelled.

    The interval may be changed between ticks (the performance governor does
    this); the new value applies from the next scheduled fire time. A tick that
    has started always runs to completion, cancellation is only observed at
    tick boundaries.
    """

    def __init__(self, clock: Clock, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._clock = clock
        self._interval = interval
        self._next_fire: float | None = None
        self._in_tick = False
        self._ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        if value <= 0:
            raise ValueError("interval must be positive")
        self._interval = value

    @property
    def next_fire_time(self) -> float | None:
        """Monotonic time of the next tick, or None when not running."""
        return self._next_fire

    @property
    def in_tick(self) -> bool:
        return self._in_tick

    @property
    def ticks(self) -> int:
        """Number of ticks completed by the current (or last) run."""
        return self._ticks

    async def run(
        self,
        on_tick: Callable[[int], Awaitable[None]],
        token: CancelToken,
        max_ticks: int | None = None,
    ) -> int:
        """Run the loop. Returns the number of ticks fired."""
        self._ticks = 0
        self._next_fire = self._clock.monotonic() + self._interval
        try:
            while not token.cancelled:
                if max_ticks is not None and self._ticks >= max_ticks:
                    break
                delay = self._next_fire - self._clock.monotonic()
                await self._clock.sleep(max(0.0, delay))
                if token.cancelled:
                    break

                self._in_tick = True
                try:
                    await on_tick(self._ticks)
                finally:
                    self._in_tick = False
                self._ticks += 1

                # Fall back to "now" when a slow tick overran its slot
                self._next_fire = max(self._next_fire + self._interval, self._clock.monotonic())
        finally:
            self._next_fire = None
        logger.debug("Tick scheduler exited after %d ticks", self._ticks)
        return self._ticks
