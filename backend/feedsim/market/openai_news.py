"""Azure OpenAI chat-completion client used as a news provider."""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from collections.abc import Callable
from typing import Any

import aiohttp

from .errors import ProviderError
from .models import News
from .news import NewsProvider
from .seed_prices import SENTIMENT_SCORES

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a financial data generator. Generate realistic market data in JSON format."
)


class AzureOpenAINewsProvider(NewsProvider):
    """NewsProvider backed by an Azure OpenAI chat-completion deployment.

    Sends one POST to
    ``{endpoint}openai/deployments/{deployment}/chat/completions`` asking for a
    JSON object with a ``news`` array, then maps each item onto ``News``.
    Any HTTP, parse or shape error is raised as ``ProviderError`` so the
    ``NewsService`` can fall through to the next provider.
    """

    name = "azure-openai"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str = "gpt-4",
        api_version: str = "2024-02-15-preview",
        timeout: float = 30.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Azure OpenAI API key is required (AZURE_OPENAI_API_KEY)")
        if not endpoint:
            raise ValueError("Azure OpenAI endpoint is required (AZURE_OPENAI_ENDPOINT)")
        self._api_key = api_key
        self._endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self._deployment = deployment
        self._api_version = api_version
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._clock = clock or time.time
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_env(cls) -> AzureOpenAINewsProvider:
        return cls(
            api_key=os.environ.get("AZURE_OPENAI_API_KEY", "").strip(),
            endpoint=os.environ.get("AZURE_OPENAI_ENDPOINT", "").strip(),
            deployment=os.environ.get("AZURE_OPENAI_DEPLOYMENT", "gpt-4").strip() or "gpt-4",
            api_version=os.environ.get("AZURE_OPENAI_API_VERSION", "2024-02-15-preview").strip()
            or "2024-02-15-preview",
        )

    @staticmethod
    def is_configured() -> bool:
        return bool(
            os.environ.get("AZURE_OPENAI_API_KEY", "").strip()
            and os.environ.get("AZURE_OPENAI_ENDPOINT", "").strip()
        )

    @property
    def url(self) -> str:
        return (
            f"{self._endpoint}openai/deployments/{self._deployment}"
            f"/chat/completions?api-version={self._api_version}"
        )

    async def generate(self, symbols: list[str], count: int = 1) -> list[News]:
        prompt = (
            f"Generate {count} realistic financial news headlines for these stocks: "
            f"{', '.join(symbols)}.\n"
            "For each headline, provide:\n"
            "- headline: The news headline\n"
            "- sentiment: bullish, bearish, or neutral\n"
            "- symbol: The stock symbol\n\n"
            'Return as a JSON object with a "news" array.'
        )
        content = await self._post_chat(prompt, max_tokens=2000)
        items = self._parse_news(content)
        if not items:
            raise ProviderError(self.name, "response contained no news items")

        results = []
        for item in items[:count]:
            try:
                results.append(self._to_news(item, symbols))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed news item %r: %s", item, e)
        if not results:
            raise ProviderError(self.name, "no usable news items")
        return results

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # --- Internal ---

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post_chat(self, prompt: str, max_tokens: int = 1000) -> str:
        """POST one chat-completion request and return the message content."""
        body: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_completion_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Content-Type": "application/json", "api-key": self._api_key}

        try:
            async with self._get_session().post(self.url, json=body, headers=headers) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise ProviderError(self.name, f"HTTP {response.status}: {detail[:200]}")
                data = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"unexpected response shape: {e}") from e

    def _parse_news(self, content: str) -> list[dict[str, Any]]:
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise ProviderError(self.name, f"invalid JSON: {e}") from e

        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            for key in ("news", "headlines", "data"):
                if isinstance(parsed.get(key), list):
                    return parsed[key]
        return []

    def _to_news(self, item: dict[str, Any], symbols: list[str]) -> News:
        sentiment = str(item.get("sentiment", "neutral")).lower()
        if sentiment not in SENTIMENT_SCORES:
            sentiment = "neutral"
        score = SENTIMENT_SCORES[sentiment]
        symbol = item.get("symbol")
        item_symbols = (symbol,) if symbol else tuple(symbols)

        return News(
            id=uuid.uuid4().hex[:12],
            timestamp=self._clock(),
            headline=item["headline"].strip(),
            summary=f"AI-generated market analysis for {', '.join(item_symbols)}",
            symbols=item_symbols,
            sentiment=sentiment,  # type: ignore[arg-type]
            sentiment_score=score,
            impact="high" if abs(score) > 0.5 else "medium",
            source="FeedSim (Azure OpenAI)",
        )
