"""Factories for building the simulator and its news providers."""

from __future__ import annotations

import logging
import random

from .config import SimulatorConfig
from .news import NewsProvider, NewsService, TemplatedNewsProvider
from .scheduler import Clock, SystemClock
from .simulator import MarketSimulator

logger = logging.getLogger(__name__)


def create_news_providers() -> list[NewsProvider]:
    """Select external news providers based on environment variables.

    - AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT set → AzureOpenAINewsProvider
    - Otherwise → none (templated headlines only)
    """
    from .openai_news import AzureOpenAINewsProvider

    providers: list[NewsProvider] = []
    if AzureOpenAINewsProvider.is_configured():
        try:
            providers.append(AzureOpenAINewsProvider.from_env())
            logger.info("News source: Azure OpenAI (templated fallback)")
        except ValueError as e:
            logger.warning("Azure OpenAI configuration error, using templated news: %s", e)
    else:
        logger.info("News source: templated headlines")
    return providers


def create_simulator(
    config: SimulatorConfig | None = None,
    clock: Clock | None = None,
) -> MarketSimulator:
    """Create a simulator wired to the environment-selected news providers.

    ``config`` defaults to ``SimulatorConfig.from_env()``. Returns an unstarted
    simulator; caller must await ``simulator.start()`` for push mode.
    """
    config = config or SimulatorConfig.from_env()
    clock = clock or SystemClock()
    rng = random.Random(config.seed)

    news = NewsService(
        fallback=TemplatedNewsProvider(rng, clock.time),
        providers=create_news_providers() if config.include_news else [],
        timeout=config.news_timeout,
    )
    return MarketSimulator(config=config, clock=clock, rng=rng, news_service=news)
