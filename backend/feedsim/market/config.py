"""Simulator configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields

from .errors import ConfigurationError
from .models import MARKET_CONDITIONS
from .seed_prices import DEFAULT_SYMBOLS


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass
class SimulatorConfig:
    """Everything the simulator accepts at construction.

    Invalid values raise ``ConfigurationError`` immediately; this is the only
    error that prevents a simulation from running.
    """

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    interval_ms: float = 100.0
    market_condition: str = "normal"
    volatility: float = 0.2

    include_news: bool = True
    include_order_book: bool = True
    include_technicals: bool = True
    self_learning: bool = False

    cache_max_size: int = 1000
    cache_ttl: float = 3600.0  # seconds

    trade_probability: float = 0.30
    depth_probability: float = 0.20
    news_probability: float = 0.05
    regime_probability: float = 0.05

    # Performance governor
    latency_threshold_ms: float = 100.0
    interval_factor: float = 1.1
    max_interval_ms: float = 1000.0

    # Indicators are emitted every N ticks from a bounded per-symbol history
    technicals_interval: int = 20
    history_size: int = 100

    news_timeout: float = 30.0
    seed: int | None = None

    def __post_init__(self) -> None:
        self.symbols = [s.upper().strip() for s in self.symbols if s and s.strip()]
        if not self.symbols:
            raise ConfigurationError("At least one symbol is required")
        if len(set(self.symbols)) != len(self.symbols):
            raise ConfigurationError("Symbols must be unique")
        if self.interval_ms <= 0:
            raise ConfigurationError("interval_ms must be positive")
        if self.market_condition not in MARKET_CONDITIONS:
            raise ConfigurationError(f"Unknown market condition: {self.market_condition!r}")
        if not 0.0 <= self.volatility <= 1.0:
            raise ConfigurationError("volatility must be within [0, 1]")
        if self.cache_max_size < 1:
            raise ConfigurationError("cache_max_size must be at least 1")
        if self.cache_ttl <= 0:
            raise ConfigurationError("cache_ttl must be positive")
        for name in ("trade_probability", "depth_probability", "news_probability", "regime_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1]")
        if self.interval_factor < 1.0:
            raise ConfigurationError("interval_factor must be >= 1 (the governor only slows down)")
        if self.max_interval_ms < self.interval_ms:
            raise ConfigurationError("max_interval_ms must be >= interval_ms")
        if self.technicals_interval < 1 or self.history_size < 1:
            raise ConfigurationError("technicals_interval and history_size must be >= 1")

    @classmethod
    def from_env(cls, **overrides) -> SimulatorConfig:
        """Build a config from environment variables, then apply ``overrides``.

        - MAX_CACHE_SIZE        → cache_max_size (default 1000)
        - CACHE_TTL             → cache_ttl in seconds (default 3600)
        - ENABLE_SELF_LEARNING  → self_learning ("true" enables)
        - FEEDSIM_SYMBOLS       → comma-separated symbol list
        - FEEDSIM_SEED          → RNG seed
        """
        values: dict = {
            "cache_max_size": _env_int("MAX_CACHE_SIZE", 1000),
            "cache_ttl": float(_env_int("CACHE_TTL", 3600)),
            "self_learning": _env_bool("ENABLE_SELF_LEARNING"),
        }
        symbols = os.environ.get("FEEDSIM_SYMBOLS", "").strip()
        if symbols:
            values["symbols"] = symbols.split(",")
        seed = os.environ.get("FEEDSIM_SEED", "").strip()
        if seed:
            values["seed"] = _env_int("FEEDSIM_SEED", 0)

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown config options: {sorted(unknown)}")
        values.update(overrides)
        return cls(**values)
