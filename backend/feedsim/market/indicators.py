"""Technical indicators over caller-supplied price series.

Pure functions: every input is an ordered series (oldest first) and nothing
is cached between calls. Too-short inputs return neutral values instead of
raising, so callers can run them from the first tick.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .models import Signal, TechnicalIndicator


def sma(data: Sequence[float], period: int) -> float:
    """Simple moving average of the last ``period`` values (0 if too short)."""
    values = np.asarray(data, dtype=float)
    if len(values) < period:
        return 0.0
    return float(values[-period:].mean())


def _ema_series(values: np.ndarray, period: int) -> np.ndarray:
    """EMA seeded with the SMA of the first ``period`` values."""
    alpha = 2.0 / (period + 1)
    out = np.empty(len(values) - period + 1)
    out[0] = values[:period].mean()
    for i, value in enumerate(values[period:], start=1):
        out[i] = (value - out[i - 1]) * alpha + out[i - 1]
    return out


def ema(data: Sequence[float], period: int) -> float:
    values = np.asarray(data, dtype=float)
    if len(values) < period:
        return 0.0
    return float(_ema_series(values, period)[-1])


def rsi(data: Sequence[float], period: int = 14) -> float:
    """Relative strength index over the most recent ``period`` changes."""
    values = np.asarray(data, dtype=float)
    if len(values) < period + 1:
        return 50.0

    deltas = np.diff(values[-(period + 1) :])
    avg_gain = deltas[deltas > 0].sum() / period
    avg_loss = -deltas[deltas < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100 - 100 / (1 + rs))


def macd(
    data: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> dict[str, float]:
    """MACD line, signal line and histogram."""
    values = np.asarray(data, dtype=float)
    if len(values) < slow_period:
        return {"macd": 0.0, "signal": 0.0, "histogram": 0.0}

    fast = _ema_series(values, fast_period)
    slow = _ema_series(values, slow_period)
    # Align the fast series with the shorter slow one
    line = fast[-len(slow) :] - slow

    if len(line) >= signal_period:
        signal_value = float(_ema_series(line, signal_period)[-1])
    else:
        signal_value = float(line.mean())

    macd_value = float(line[-1])
    return {"macd": macd_value, "signal": signal_value, "histogram": macd_value - signal_value}


def bollinger_bands(
    data: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> dict[str, float]:
    values = np.asarray(data, dtype=float)
    if len(values) < period:
        current = float(values[-1]) if len(values) else 0.0
        return {"upper": current, "middle": current, "lower": current}

    window = values[-period:]
    middle = float(window.mean())
    std = float(window.std())  # Population std, as in the classic definition
    return {"upper": middle + std_dev * std, "middle": middle, "lower": middle - std_dev * std}


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
    smooth: int = 3,
) -> dict[str, float]:
    """%K of the latest close and %D as the mean of the last ``smooth`` %K values."""
    h = np.asarray(highs, dtype=float)
    lo = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    if len(h) < period or len(lo) < period or len(c) < period:
        return {"k": 50.0, "d": 50.0}

    ks = []
    for end in range(max(period, len(c) - smooth + 1), len(c) + 1):
        highest = h[end - period : end].max()
        lowest = lo[end - period : end].min()
        if highest == lowest:
            ks.append(50.0)
        else:
            ks.append(float((c[end - 1] - lowest) / (highest - lowest) * 100))
    return {"k": ks[-1], "d": float(np.mean(ks))}


def vwap(prices: Sequence[float], volumes: Sequence[float]) -> float:
    p = np.asarray(prices, dtype=float)
    v = np.asarray(volumes, dtype=float)
    if len(p) == 0 or len(p) != len(v):
        return 0.0
    total = v.sum()
    if total == 0:
        return float(p[-1])
    return float((p * v).sum() / total)


def trend_strength(data: Sequence[float], period: int = 20) -> float:
    """0-100 score comparing the two halves of the last ``period`` values."""
    values = np.asarray(data, dtype=float)
    if len(values) < period:
        return 50.0
    window = values[-period:]
    half = period // 2
    first, second = window[:half].mean(), window[half:].mean()
    change = (second - first) / first * 100
    return float(min(100.0, max(0.0, 50 + change * 10)))


def _average_signal(price: float, average: float) -> Signal:
    if average and price > average * 1.02:
        return "sell"
    if average and price < average * 0.98:
        return "buy"
    return "hold"


def _band_signal(price: float, bands: dict[str, float]) -> Signal:
    if price > bands["upper"]:
        return "sell"
    if price < bands["lower"]:
        return "buy"
    return "hold"


def generate_all(
    symbol: str,
    closes: Sequence[float],
    highs: Sequence[float],
    lows: Sequence[float],
    volumes: Sequence[float],
    timestamp: float,
) -> list[TechnicalIndicator]:
    """Compute the full indicator set with buy/sell/hold signals."""
    if len(closes) == 0:
        return []

    price = float(closes[-1])
    sma_20 = sma(closes, 20)
    ema_12 = ema(closes, 12)
    rsi_value = rsi(closes)
    macd_value = macd(closes)
    bands = bollinger_bands(closes)
    stoch = stochastic(highs, lows, closes)

    if rsi_value > 70:
        rsi_signal: Signal = "sell"
    elif rsi_value < 30:
        rsi_signal = "buy"
    else:
        rsi_signal = "hold"

    if macd_value["histogram"] > 0:
        macd_signal: Signal = "buy"
    elif macd_value["histogram"] < 0:
        macd_signal = "sell"
    else:
        macd_signal = "hold"

    if stoch["k"] > 80:
        stoch_signal: Signal = "sell"
    elif stoch["k"] < 20:
        stoch_signal = "buy"
    else:
        stoch_signal = "hold"

    def make(name: str, value, signal: Signal) -> TechnicalIndicator:
        return TechnicalIndicator(
            symbol=symbol, timestamp=timestamp, name=name, value=value, signal=signal
        )

    return [
        make("SMA_20", sma_20, _average_signal(price, sma_20)),
        make("EMA_12", ema_12, _average_signal(price, ema_12)),
        make("RSI", rsi_value, rsi_signal),
        make("MACD", macd_value, macd_signal),
        make("BollingerBands", bands, _band_signal(price, bands)),
        make("Stochastic", stoch, stoch_signal),
        make("VWAP", vwap(closes, volumes), "hold"),
    ]
