"""Data models for simulated market data."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

MarketCondition = Literal["normal", "bullish", "bearish", "volatile", "crash", "rally", "sideways"]
Side = Literal["buy", "sell"]
Sentiment = Literal["bullish", "bearish", "neutral"]
Impact = Literal["low", "medium", "high"]
Signal = Literal["buy", "sell", "hold"]
VolumeLevel = Literal["low", "normal", "high"]

MARKET_CONDITIONS: tuple[str, ...] = (
    "normal",
    "bullish",
    "bearish",
    "volatile",
    "crash",
    "rally",
    "sideways",
)


@dataclass(frozen=True, slots=True)
class Quote:
    """Top-of-book snapshot for one symbol at one tick.

    Bid and ask are whole cents, but as floats `ask - bid` can carry rounding
    error. Use `spread` for the cent-rounded difference.
    """

    symbol: str
    timestamp: float  # Unix seconds
    bid: float
    ask: float
    bid_size: int
    ask_size: int
    last: float
    last_size: int
    volume: int
    change: float
    change_percent: float
    high: float
    low: float
    open: float
    vwap: float

    @property
    def spread(self) -> float:
        return round(self.ask - self.bid, 2)

    @property
    def midpoint(self) -> float:
        return round((self.ask + self.bid) / 2, 2)

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat' relative to the previous last price."""
        if self.change > 0:
            return "up"
        elif self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Trade:
    """A single simulated print."""

    id: str
    symbol: str
    timestamp: float
    price: float
    size: int
    side: Side
    exchange: str
    is_block: bool = False
    is_odd_lot: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class OrderBookLevel:
    price: float
    size: int
    orders: int


@dataclass(frozen=True, slots=True)
class MarketDepth:
    """Order book snapshot. Bids descend in price, asks ascend."""

    symbol: str
    timestamp: float
    bids: tuple[OrderBookLevel, ...]
    asks: tuple[OrderBookLevel, ...]
    spread: float
    midpoint: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "bids": [asdict(level) for level in self.bids],
            "asks": [asdict(level) for level in self.asks],
            "spread": self.spread,
            "midpoint": self.midpoint,
        }


@dataclass(frozen=True, slots=True)
class News:
    """A headline with sentiment, tied to one or more symbols."""

    id: str
    timestamp: float
    headline: str
    summary: str
    symbols: tuple[str, ...]
    sentiment: Sentiment
    sentiment_score: float  # -1 to 1
    impact: Impact
    categories: tuple[str, ...] = ("earnings", "market-update")
    source: str = "FeedSim"

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["symbols"] = list(self.symbols)
        result["categories"] = list(self.categories)
        return result


@dataclass(frozen=True, slots=True)
class MarketState:
    """Shared regime read by every generator within a tick."""

    condition: MarketCondition
    volatility: float  # 0 to 1
    momentum: float  # -1 to 1
    trading_hours: bool
    timestamp: float
    volume: VolumeLevel = "normal"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class PatternRecord:
    """Bounded history of samples observed for one pattern type."""

    key: str
    count: int = 0
    samples: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "count": self.count, "samples": list(self.samples)}


@dataclass(frozen=True, slots=True)
class PerformanceSnapshot:
    """Derived per-tick view of engine health."""

    cache_hit_rate: float
    memory_mb: float
    active_symbols: int
    patterns_learned: int
    interval_ms: float
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class TechnicalIndicator:
    symbol: str
    timestamp: float
    name: str
    value: float | dict[str, float]
    signal: Signal = "hold"

    def to_dict(self) -> dict[str, Any]:
        value = dict(self.value) if isinstance(self.value, dict) else self.value
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "name": self.name,
            "value": value,
            "signal": self.signal,
        }


@dataclass(frozen=True, slots=True)
class ErrorReport:
    """Structured context for an error notification."""

    phase: str
    error_type: str
    message: str
    symbol: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
