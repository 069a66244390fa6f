"""Pull-mode bounded iterator over generated quotes and trades."""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

from .generators import generate_trade
from .models import Quote, Trade

if TYPE_CHECKING:
    from .simulator import SimulationContext

logger = logging.getLogger(__name__)


class BatchStream:
    """Async iterator producing at most ``count`` items, ``chunk_size`` quotes at a time.

    Each chunk picks a random symbol per quote and may attach a trade after it,
    so a chunk can hold more items than quotes. Items past ``count`` are
    dropped. The optional ``delay`` (seconds) is slept on the context's clock
    before every chunk but the first.

    The cursor only moves forward. Once exhausted or closed the stream stays
    closed; build a new one to draw more data.
    """

    def __init__(
        self,
        context: SimulationContext,
        symbols: list[str],
        count: int,
        chunk_size: int = 100,
        delay: float = 0.0,
        trade_probability: float = 0.3,
    ) -> None:
        if count < 0:
            raise ValueError("count must be >= 0")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        if not symbols:
            raise ValueError("at least one symbol is required")

        self._ctx = context
        self._symbols = list(symbols)
        self._target = count
        self._chunk_size = chunk_size
        self._delay = delay
        self._trade_prob = trade_probability

        self._buffer: deque[Quote | Trade] = deque()
        self._produced = 0
        self._chunks = 0
        self._closed = count == 0

    @property
    def produced(self) -> int:
        return self._produced

    @property
    def target(self) -> int:
        return self._target

    @property
    def remaining(self) -> int:
        return self._target - self._produced

    @property
    def chunks(self) -> int:
        return self._chunks

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> BatchStream:
        return self

    async def __anext__(self) -> Quote | Trade:
        if self._closed:
            raise StopAsyncIteration

        if not self._buffer:
            if self._chunks > 0 and self._delay > 0:
                await self._ctx.clock.sleep(self._delay)
                if self._closed:  # Closed while we were waiting
                    raise StopAsyncIteration
            self._fill_chunk()

        item = self._buffer.popleft()
        self._produced += 1
        if self._produced >= self._target:
            self._close()
        return item

    async def aclose(self) -> None:
        self._close()

    def _close(self) -> None:
        if not self._closed:
            logger.debug("Batch stream closed after %d/%d items", self._produced, self._target)
        self._closed = True
        self._buffer.clear()

    def _fill_chunk(self) -> None:
        rng = self._ctx.rng
        for _ in range(min(self._chunk_size, self.remaining)):
            symbol = rng.choice(self._symbols)
            quote = self._ctx.next_quote(symbol)
            self._buffer.append(quote)
            if rng.random() < self._trade_prob:
                self._buffer.append(generate_trade(quote, rng, self._ctx.clock.time()))
        self._chunks += 1
