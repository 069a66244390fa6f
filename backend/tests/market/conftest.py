"""Fixtures for market simulator tests.

Everything runs on a ``VirtualClock`` so ticks are instantaneous and
timestamps are reproducible.
"""

import random

import pytest

from feedsim.market.config import SimulatorConfig
from feedsim.market.events import EventType, MarketEvent
from feedsim.market.models import MarketState, Quote
from feedsim.market.scheduler import VirtualClock
from feedsim.market.simulator import MarketSimulator


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[MarketEvent] = []

    def __call__(self, event: MarketEvent) -> None:
        self.events.append(event)

    def of(self, event_type: EventType) -> list:
        return [e.payload for e in self.events if e.type is event_type]

    def types(self) -> list[EventType]:
        return [e.type for e in self.events]


class FakeTime:
    """Settable time source for components that take a ``clock`` callable."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def normal_state():
    return MarketState(
        condition="normal", volatility=0.2, momentum=0.0, trading_hours=True, timestamp=0.0
    )


@pytest.fixture
def make_quote():
    """Build a valid quote with sensible defaults."""

    def _make(**overrides) -> Quote:
        values = dict(
            symbol="AAPL",
            timestamp=1_700_000_000.0,
            bid=189.98,
            ask=190.02,
            bid_size=500,
            ask_size=700,
            last=190.00,
            last_size=300,
            volume=1_000_000,
            change=0.5,
            change_percent=0.26,
            high=191.00,
            low=189.00,
            open=189.50,
            vwap=190.01,
        )
        values.update(overrides)
        return Quote(**values)

    return _make


@pytest.fixture
def make_simulator(clock):
    """Build a simulator on the shared virtual clock with a fixed seed."""

    def _make(**overrides) -> MarketSimulator:
        overrides.setdefault("symbols", ["AAPL", "GOOGL"])
        overrides.setdefault("seed", 7)
        overrides.setdefault("include_news", False)
        overrides.setdefault("include_technicals", False)
        return MarketSimulator(SimulatorConfig(**overrides), clock=clock)

    return _make
