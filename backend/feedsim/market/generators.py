"""Trade and order-book generators derived from a quote."""

from __future__ import annotations

import random
import string

from .models import MarketDepth, OrderBookLevel, Quote, Trade
from .seed_prices import DEPTH_LEVELS, EXCHANGES, TICK_SIZE

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(rng: random.Random, timestamp: float) -> str:
    """Millisecond timestamp plus a random base-36 suffix."""
    suffix = "".join(rng.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(timestamp * 1000)}-{suffix}"


def generate_trade(quote: Quote, rng: random.Random, timestamp: float) -> Trade:
    """A print within 5 cents of the quote's last price."""
    price = round(quote.last + (rng.random() - 0.5) * 0.1, 2)
    side = "buy" if rng.random() > 0.5 else "sell"
    exchange = rng.choice(EXCHANGES)
    is_block = rng.random() < 0.05
    is_odd_lot = rng.random() < 0.10

    if is_odd_lot:
        size = rng.randrange(1, 100)
    else:
        size = rng.randrange(1, 1000) * 100

    return Trade(
        id=generate_id(rng, timestamp),
        symbol=quote.symbol,
        timestamp=timestamp,
        price=price,
        size=size,
        side=side,
        exchange=exchange,
        is_block=is_block,
        is_odd_lot=is_odd_lot,
    )


def generate_depth(
    quote: Quote,
    rng: random.Random,
    timestamp: float,
    levels: int = DEPTH_LEVELS,
) -> MarketDepth:
    """Build ``levels`` price levels per side, ``TICK_SIZE`` apart, away from the quote.

    Spread and midpoint come from the quote itself so the book's top can never
    disagree with the published top of book.
    """
    bid_cents = round(quote.bid * 100)
    ask_cents = round(quote.ask * 100)
    tick_cents = round(TICK_SIZE * 100)

    bids = []
    asks = []
    for i in range(levels):
        bids.append(
            OrderBookLevel(
                price=(bid_cents - i * tick_cents) / 100,
                size=rng.randrange(1, 5000) * 100,
                orders=rng.randint(1, 50),
            )
        )
        asks.append(
            OrderBookLevel(
                price=(ask_cents + i * tick_cents) / 100,
                size=rng.randrange(1, 5000) * 100,
                orders=rng.randint(1, 50),
            )
        )

    return MarketDepth(
        symbol=quote.symbol,
        timestamp=timestamp,
        bids=tuple(bids),
        asks=tuple(asks),
        spread=quote.spread,
        midpoint=quote.midpoint,
    )
