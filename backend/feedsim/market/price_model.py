"""Bounded random-walk quote model."""

from __future__ import annotations

import random

from .models import MarketState, Quote
from .seed_prices import MAX_SPREAD, MIN_SPREAD, SEED_PRICE_MAX, SEED_PRICE_MIN


class RandomWalkPriceModel:
    """Derives the next quote for a symbol from its previous one.

    Math:
        change_pct = (U - 0.5 + momentum * 0.1) * volatility * 2
        last'      = last * (1 + change_pct / 100)

    With the default volatility of 0.2 a single tick moves the price by at most
    ~0.2%, so a symbol's path stays continuous across ticks. The spread is drawn
    in whole cents from [0.01, 0.06] and straddles the new last price.
    """

    def next_quote(
        self,
        symbol: str,
        previous: Quote | None,
        state: MarketState,
        rng: random.Random,
        timestamp: float,
    ) -> Quote:
        """Return a new quote for ``symbol``. Total over positive prices."""
        if previous is not None and previous.last <= 0:
            previous = None  # Reseed rather than walk from a degenerate price

        if previous is not None:
            prev_last = previous.last
        else:
            prev_last = rng.uniform(SEED_PRICE_MIN, SEED_PRICE_MAX)

        change_pct = (rng.random() - 0.5 + state.momentum * 0.1) * state.volatility * 2
        new_last = prev_last * (1 + change_pct / 100)

        last = round(new_last, 2)
        # Work in integer cents so ask - bid is exactly the drawn spread
        spread_cents = round((MIN_SPREAD + rng.random() * (MAX_SPREAD - MIN_SPREAD)) * 100)
        last_cents = round(last * 100)
        bid_cents = last_cents - spread_cents // 2
        ask_cents = bid_cents + spread_cents

        if previous is not None:
            open_price = previous.open
        else:
            open_price = round(prev_last * (1 + (rng.random() - 0.5) * 0.01), 2)

        return Quote(
            symbol=symbol,
            timestamp=timestamp,
            bid=bid_cents / 100,
            ask=ask_cents / 100,
            bid_size=rng.randrange(1, 1000) * 100,
            ask_size=rng.randrange(1, 1000) * 100,
            last=last,
            last_size=rng.randrange(1, 500) * 100,
            volume=rng.randrange(1, 100_000) * 100,
            change=round(new_last - prev_last, 2),
            change_percent=round((new_last - prev_last) / prev_last * 100, 2),
            high=round(new_last * (1 + rng.random() * 0.02), 2),
            low=round(new_last * (1 - rng.random() * 0.02), 2),
            open=open_price,
            vwap=round(new_last * (1 + (rng.random() - 0.5) * 0.002), 2),
        )
