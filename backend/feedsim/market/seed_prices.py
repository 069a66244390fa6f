"""Seed ranges and fixed parameters for the market simulator."""

# Default watchlist when no symbols are configured
DEFAULT_SYMBOLS: list[str] = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "META",
    "TSLA", "NVDA", "JPM", "V", "JNJ",
    "WMT", "PG", "UNH", "DIS", "MA",
    "HD", "BAC", "PYPL", "NFLX", "ADBE",
]

# Symbols without a cached quote start somewhere in this range
SEED_PRICE_MIN = 100.0
SEED_PRICE_MAX = 500.0

# Quoted spread bounds (dollars)
MIN_SPREAD = 0.01
MAX_SPREAD = 0.06

# Order book
DEPTH_LEVELS = 10
TICK_SIZE = 0.01

EXCHANGES: tuple[str, ...] = ("NYSE", "NASDAQ", "AMEX", "BATS", "IEX")

# Regime parameters
# Conditions the random transition picks from; the rest are reachable via force()
TRANSITION_CONDITIONS: tuple[str, ...] = ("normal", "bullish", "bearish", "volatile")
VOLATILE_VOLATILITY = 0.5
CONDITION_MOMENTUM: dict[str, float] = {
    "bullish": 0.3,
    "bearish": -0.3,
}

SENTIMENT_SCORES: dict[str, float] = {
    "bullish": 0.7,
    "bearish": -0.7,
    "neutral": 0.0,
}

# {SYMBOL} is replaced with the first symbol of the request
NEWS_HEADLINES: dict[str, tuple[str, ...]] = {
    "bullish": (
        "{SYMBOL} Beats Earnings Expectations, Stock Surges",
        "Analysts Upgrade {SYMBOL} to Buy Rating",
        "{SYMBOL} Announces Record-Breaking Quarter",
        "Institutional Investors Increase {SYMBOL} Holdings",
    ),
    "bearish": (
        "{SYMBOL} Misses Revenue Targets, Shares Fall",
        "Downgrade Alert: {SYMBOL} Cut to Sell",
        "{SYMBOL} Faces Regulatory Challenges",
        "Major Fund Reduces {SYMBOL} Position",
    ),
    "neutral": (
        "{SYMBOL} Trading in Line with Market Expectations",
        "Analysts Maintain Hold Rating on {SYMBOL}",
        "{SYMBOL} Announces Executive Changes",
        "Market Watch: {SYMBOL} Shows Steady Performance",
    ),
}
