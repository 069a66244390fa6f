"""Shared market regime and its stochastic transitions."""

from __future__ import annotations

import logging
import random
from datetime import datetime, time as dtime
from zoneinfo import ZoneInfo

from .models import MARKET_CONDITIONS, MarketState
from .seed_prices import CONDITION_MOMENTUM, TRANSITION_CONDITIONS, VOLATILE_VOLATILITY

logger = logging.getLogger(__name__)

_EXCHANGE_TZ = ZoneInfo("America/New_York")
_SESSION_OPEN = dtime(9, 30)
_SESSION_CLOSE = dtime(16, 0)


def is_trading_hours(timestamp: float) -> bool:
    """True on weekdays between 09:30 and 16:00 New York time."""
    local = datetime.fromtimestamp(timestamp, tz=_EXCHANGE_TZ)
    if local.weekday() >= 5:
        return False
    return _SESSION_OPEN <= local.time() < _SESSION_CLOSE


class MarketRegime:
    """Owns the single MarketState every generator reads within a tick.

    Each tick, ``maybe_transition`` flips to a uniformly chosen condition with a
    small probability. No condition is terminal.
    """

    def __init__(
        self,
        condition: str = "normal",
        base_volatility: float = 0.2,
        transition_probability: float = 0.05,
        timestamp: float = 0.0,
    ) -> None:
        self._base_volatility = base_volatility
        self._transition_prob = transition_probability
        self._state = self._state_for(condition, timestamp)

    @property
    def state(self) -> MarketState:
        return self._state

    def maybe_transition(self, rng: random.Random, timestamp: float) -> MarketState | None:
        """Roll for a regime change. Returns the new state if one happened."""
        if rng.random() >= self._transition_prob:
            return None
        condition = rng.choice(TRANSITION_CONDITIONS)
        return self._apply(condition, timestamp)

    def force(self, condition: str, timestamp: float) -> MarketState:
        """Switch to ``condition`` immediately."""
        if condition not in MARKET_CONDITIONS:
            raise ValueError(f"Unknown market condition: {condition!r}")
        return self._apply(condition, timestamp)

    def _apply(self, condition: str, timestamp: float) -> MarketState:
        self._state = self._state_for(condition, timestamp)
        logger.debug(
            "Market regime -> %s (volatility=%.2f, momentum=%+.2f)",
            condition,
            self._state.volatility,
            self._state.momentum,
        )
        return self._state

    def _state_for(self, condition: str, timestamp: float) -> MarketState:
        volatile = condition == "volatile"
        return MarketState(
            condition=condition,  # type: ignore[arg-type]
            volatility=VOLATILE_VOLATILITY if volatile else self._base_volatility,
            momentum=CONDITION_MOMENTUM.get(condition, 0.0),
            trading_hours=is_trading_hours(timestamp),
            timestamp=timestamp,
            volume="high" if volatile else "normal",
        )
