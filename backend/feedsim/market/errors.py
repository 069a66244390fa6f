"""Error types raised by the market simulator."""

from __future__ import annotations


class FeedSimError(Exception):
    """Base class for simulator errors."""


class ConfigurationError(FeedSimError, ValueError):
    """Invalid configuration detected at construction time."""


class AlreadyRunningError(FeedSimError, RuntimeError):
    """start() was called while the simulator is already running."""

    def __init__(self) -> None:
        super().__init__("Simulator is already running")


class GenerationError(FeedSimError):
    """A failure inside a single tick's generation work.

    Carries the phase ("quote", "trade", "depth", "news", "regime", ...) and,
    when the failure is tied to one symbol, that symbol.
    """

    def __init__(self, phase: str, message: str, symbol: str | None = None) -> None:
        self.phase = phase
        self.symbol = symbol
        where = f"{phase}:{symbol}" if symbol else phase
        super().__init__(f"[{where}] {message}")


class ProviderError(FeedSimError):
    """An external news provider failed or timed out."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")
