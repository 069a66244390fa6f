"""News providers and the fallback chain the simulator draws headlines from."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from .errors import ProviderError
from .generators import generate_id
from .models import News
from .seed_prices import NEWS_HEADLINES, SENTIMENT_SCORES

logger = logging.getLogger(__name__)


class NewsProvider(ABC):
    """Contract for headline sources.

    Implementations return up to ``count`` structured news items for the given
    symbols, or raise. Any exception is treated as a provider failure by
    ``NewsService``.
    """

    name: str = "provider"

    @abstractmethod
    async def generate(self, symbols: list[str], count: int = 1) -> list[News]:
        """Produce news items for ``symbols``."""


class TemplatedNewsProvider(NewsProvider):
    """Fills canned headlines from a seeded RNG. Cannot fail."""

    name = "templated"

    def __init__(self, rng: random.Random, clock: Callable[[], float] | None = None) -> None:
        self._rng = rng
        self._clock = clock or time.time

    async def generate(self, symbols: list[str], count: int = 1) -> list[News]:
        return [self.make(symbols) for _ in range(count)]

    def make(self, symbols: list[str]) -> News:
        rng = self._rng
        now = self._clock()
        sentiment = rng.choice(("bullish", "bearish", "neutral"))
        impact = rng.choice(("low", "medium", "high"))
        headline = rng.choice(NEWS_HEADLINES[sentiment])
        lead = symbols[0] if symbols else "MARKET"

        return News(
            id=generate_id(rng, now),
            timestamp=now,
            headline=headline.replace("{SYMBOL}", lead),
            summary=f"Market analysis for {', '.join(symbols)}",
            symbols=tuple(symbols),
            sentiment=sentiment,
            sentiment_score=SENTIMENT_SCORES[sentiment],
            impact=impact,
            source="FeedSim",
        )


class NewsService:
    """Tries each provider in order, falling back to templated headlines.

    A provider that raises, times out, or returns nothing is skipped. The
    templated fallback always answers, so ``generate`` never fails.
    """

    def __init__(
        self,
        fallback: TemplatedNewsProvider,
        providers: list[NewsProvider] | None = None,
        timeout: float = 30.0,
        on_failure: Callable[[ProviderError], None] | None = None,
    ) -> None:
        self._fallback = fallback
        self._providers = list(providers or [])
        self._timeout = timeout
        self._on_failure = on_failure

    @property
    def providers(self) -> list[NewsProvider]:
        return list(self._providers)

    def set_failure_handler(self, handler: Callable[[ProviderError], None] | None) -> None:
        self._on_failure = handler

    async def generate(self, symbols: list[str]) -> News:
        for provider in self._providers:
            try:
                items = await asyncio.wait_for(provider.generate(symbols, 1), self._timeout)
                if not items:
                    raise ProviderError(provider.name, "returned no items")
                return items[0]
            except asyncio.TimeoutError:
                self._report(ProviderError(provider.name, f"timed out after {self._timeout}s"))
            except ProviderError as e:
                self._report(e)
            except Exception as e:
                self._report(ProviderError(provider.name, str(e)))

        return self._fallback.make(symbols)

    def _report(self, error: ProviderError) -> None:
        logger.warning("News provider failed, falling back: %s", error)
        if self._on_failure is not None:
            self._on_failure(error)
