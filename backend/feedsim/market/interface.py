"""Abstract control interface for simulated market event sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from .events import EventType, Handler

if TYPE_CHECKING:
    from .batch_stream import BatchStream
    from .simulator import StartOptions


class MarketEventSource(ABC):
    """Contract for market event producers.

    Push mode: subscribe handlers, then ``start()``; events arrive on the
    source's own clock until ``stop()``.

    Pull mode: ``next_batch()`` returns a bounded async iterator drained at the
    consumer's pace, independent of the push-mode loop.

    Lifecycle:
        source = create_simulator()
        source.subscribe(on_quote, EventType.QUOTE)
        await source.start(StartOptions(parallel=True))
        # ... events flow ...
        await source.add_symbol("TSLA")
        await source.stop()

        async for item in source.next_batch(1000, chunk_size=100):
            ...
    """

    @abstractmethod
    async def start(self, options: StartOptions | None = None) -> None:
        """Begin the tick loop in the background.

        Raises AlreadyRunningError if the loop is already running.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop the tick loop after the in-flight tick completes.

        Safe to call multiple times; stopping an idle source is a no-op.
        """

    @abstractmethod
    def next_batch(self, count: int, chunk_size: int = 100, delay_ms: float = 0.0) -> BatchStream:
        """Return a fresh iterator producing up to ``count`` quote/trade items."""

    @abstractmethod
    def subscribe(self, handler: Handler, *event_types: EventType) -> Callable[[], None]:
        """Register a handler for the given event types (all types if none)."""

    @abstractmethod
    def unsubscribe(self, handler: Handler) -> None:
        """Remove a handler. No-op if it was never subscribed."""

    @abstractmethod
    async def add_symbol(self, symbol: str) -> None:
        """Add a symbol to the active set. No-op if already present.

        The next tick will include it.
        """

    @abstractmethod
    async def remove_symbol(self, symbol: str) -> None:
        """Remove a symbol from the active set. No-op if not present.

        Also drops the symbol's continuity state.
        """

    @abstractmethod
    def get_symbols(self) -> list[str]:
        """Return the current list of active symbols."""
