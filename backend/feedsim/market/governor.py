"""Latency-driven tick cadence control."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class PerformanceGovernor:
    """Lengthens the tick interval when a tick takes too long.

    Each tick whose latency exceeds ``threshold_ms`` stretches the interval by
    ``factor``, capped at ``ceiling_ms``. The interval is never shortened again
    within a run, even after load drops.
    """

    def __init__(
        self,
        interval_ms: float = 100.0,
        threshold_ms: float = 100.0,
        factor: float = 1.1,
        ceiling_ms: float = 1000.0,
    ) -> None:
        self._interval_ms = interval_ms
        self._threshold_ms = threshold_ms
        self._factor = factor
        self._ceiling_ms = ceiling_ms

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    def observe(self, latency_ms: float) -> float | None:
        """Feed one tick's latency. Returns the new interval if it changed."""
        if latency_ms <= self._threshold_ms:
            return None

        new_interval = min(self._interval_ms * self._factor, self._ceiling_ms)
        if new_interval == self._interval_ms:
            return None

        logger.info(
            "Tick latency %.1fms over %.0fms budget; interval %.1fms -> %.1fms",
            latency_ms,
            self._threshold_ms,
            self._interval_ms,
            new_interval,
        )
        self._interval_ms = new_interval
        return new_interval
