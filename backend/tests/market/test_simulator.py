"""Tests for a single simulator tick."""

import random
from unittest.mock import patch

import pytest

from feedsim.market.config import SimulatorConfig
from feedsim.market.events import EventType
from feedsim.market.models import (
    ErrorReport,
    MarketDepth,
    News,
    PatternRecord,
    PerformanceSnapshot,
    Quote,
    TechnicalIndicator,
    Trade,
)
from feedsim.market.news import NewsProvider, NewsService, TemplatedNewsProvider
from feedsim.market.simulator import MarketSimulator


class FailingProvider(NewsProvider):
    name = "broken"

    async def generate(self, symbols, count=1):
        raise RuntimeError("upstream down")


@pytest.mark.asyncio
class TestRunTick:
    """One tick fans out per symbol, then runs the tick-wide phases."""

    async def test_event_order_within_tick(self, make_simulator, recorder):
        sim = make_simulator(trade_probability=1.0, depth_probability=1.0, regime_probability=0.0)
        sim.subscribe(recorder)
        await sim.run_tick()

        assert recorder.types() == [
            EventType.QUOTE,
            EventType.TRADE,
            EventType.DEPTH,
            EventType.QUOTE,
            EventType.TRADE,
            EventType.DEPTH,
            EventType.PERFORMANCE,
        ]
        quotes = recorder.of(EventType.QUOTE)
        assert [q.symbol for q in quotes] == ["AAPL", "GOOGL"]
        assert all(isinstance(t, Trade) for t in recorder.of(EventType.TRADE))
        assert all(isinstance(d, MarketDepth) for d in recorder.of(EventType.DEPTH))

    async def test_sequential_mode_same_order(self, make_simulator, recorder):
        sim = make_simulator(trade_probability=1.0, depth_probability=0.0, regime_probability=0.0)
        sim.subscribe(recorder)
        await sim.run_tick(parallel=False)
        assert recorder.types() == [
            EventType.QUOTE,
            EventType.TRADE,
            EventType.QUOTE,
            EventType.TRADE,
            EventType.PERFORMANCE,
        ]

    async def test_quote_is_always_emitted(self, make_simulator, recorder):
        sim = make_simulator(
            trade_probability=0.0, depth_probability=0.0, news_probability=0.0, regime_probability=0.0
        )
        sim.subscribe(recorder)
        await sim.run_tick()
        assert recorder.types() == [EventType.QUOTE, EventType.QUOTE, EventType.PERFORMANCE]

    async def test_order_book_disabled(self, make_simulator, recorder):
        sim = make_simulator(include_order_book=False, depth_probability=1.0)
        sim.subscribe(recorder, EventType.DEPTH)
        for i in range(5):
            await sim.run_tick(i)
        assert recorder.events == []

    async def test_trade_and_depth_match_their_quote(self, make_simulator, recorder):
        sim = make_simulator(symbols=["AAPL"], trade_probability=1.0, depth_probability=1.0)
        sim.subscribe(recorder)
        await sim.run_tick()

        (quote,) = recorder.of(EventType.QUOTE)
        (trade,) = recorder.of(EventType.TRADE)
        (depth,) = recorder.of(EventType.DEPTH)
        assert trade.symbol == depth.symbol == "AAPL"
        assert abs(trade.price - quote.last) <= 0.05 + 1e-9
        assert depth.bids[0].price == quote.bid
        assert depth.asks[0].price == quote.ask

    async def test_quotes_continue_across_ticks(self, make_simulator, recorder):
        sim = make_simulator(symbols=["AAPL"], regime_probability=0.0)
        sim.subscribe(recorder, EventType.QUOTE)
        for i in range(10):
            await sim.run_tick(i)

        quotes = recorder.of(EventType.QUOTE)
        assert len(quotes) == 10
        assert len({q.open for q in quotes}) == 1
        for prev, cur in zip(quotes, quotes[1:]):
            assert abs(cur.last - prev.last) <= prev.last * 0.002 + 0.01
            assert cur.change_percent == pytest.approx((cur.last - prev.last) / prev.last * 100, abs=0.01)

    async def test_quotes_share_tick_timestamp(self, make_simulator, recorder, clock):
        sim = make_simulator()
        sim.subscribe(recorder, EventType.QUOTE)
        await sim.run_tick()
        assert {q.timestamp for q in recorder.of(EventType.QUOTE)} == {clock.time()}

    async def test_performance_snapshot(self, make_simulator, recorder):
        sim = make_simulator(regime_probability=0.0)
        sim.subscribe(recorder, EventType.PERFORMANCE)
        await sim.run_tick(0)
        await sim.run_tick(1)

        first, second = recorder.of(EventType.PERFORMANCE)
        assert isinstance(second, PerformanceSnapshot)
        assert first.cache_hit_rate == 0.0
        assert second.active_symbols == 2
        assert second.interval_ms == 100
        assert second.memory_mb > 0

    async def test_cache_hit_rate_counts_reads_per_entry(self, make_simulator):
        sim = make_simulator()
        await sim.run_tick()
        # Each tick stores a fresh entry per symbol, so reads since then count
        assert sim.performance_snapshot().cache_hit_rate == 0.0
        for _ in range(3):
            sim.context.cache.get("quote:AAPL")
        assert sim.performance_snapshot().cache_hit_rate == 1.5


@pytest.mark.asyncio
class TestTickErrors:
    """Failures become error events and the tick carries on."""

    async def test_quote_failure_reported_per_symbol(self, make_simulator, recorder):
        sim = make_simulator(regime_probability=0.0)
        sim.subscribe(recorder)
        with patch.object(sim.context.price_model, "next_quote", side_effect=ValueError("boom")):
            await sim.run_tick()

        errors = recorder.of(EventType.ERROR)
        assert [e.symbol for e in errors] == ["AAPL", "GOOGL"]
        assert errors[0] == ErrorReport(phase="quote", error_type="ValueError", message="boom", symbol="AAPL")
        assert recorder.types()[-1] is EventType.PERFORMANCE

    async def test_one_symbol_failing_does_not_affect_others(self, make_simulator, recorder):
        sim = make_simulator(regime_probability=0.0)
        sim.subscribe(recorder)
        original = sim.context.price_model.next_quote

        def flaky(symbol, *args):
            if symbol == "AAPL":
                raise RuntimeError("bad seed")
            return original(symbol, *args)

        with patch.object(sim.context.price_model, "next_quote", side_effect=flaky):
            await sim.run_tick()

        assert [q.symbol for q in recorder.of(EventType.QUOTE)] == ["GOOGL"]
        assert [e.symbol for e in recorder.of(EventType.ERROR)] == ["AAPL"]

    async def test_regime_failure_is_reported(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder)
        with patch.object(sim.context.regime, "maybe_transition", side_effect=RuntimeError("dice")):
            await sim.run_tick()

        (error,) = recorder.of(EventType.ERROR)
        assert error.phase == "regime"
        assert error.symbol is None
        assert recorder.types()[-1] is EventType.PERFORMANCE

    async def test_trade_failure_names_the_phase(self, make_simulator, recorder):
        sim = make_simulator(symbols=["AAPL"], trade_probability=1.0)
        sim.subscribe(recorder)
        with patch("feedsim.market.simulator.generate_trade", side_effect=KeyError("size")):
            await sim.run_tick()

        (error,) = recorder.of(EventType.ERROR)
        assert error.phase == "trade"
        assert error.error_type == "KeyError"
        # The quote was already out before the trade failed
        assert len(recorder.of(EventType.QUOTE)) == 1


@pytest.mark.asyncio
class TestGovernorIntegration:
    """A slow tick stretches the interval and announces it."""

    async def test_slow_tick_reduces_frequency(self, make_simulator, recorder, clock):
        sim = make_simulator(regime_probability=0.0)
        sim.subscribe(recorder)
        # Each quote "takes" 200ms of virtual time
        sim.subscribe(lambda e: clock.advance(0.2), EventType.QUOTE)
        await sim.run_tick()

        (optimized,) = recorder.of(EventType.OPTIMIZED)
        assert optimized["action"] == "reduced_frequency"
        assert optimized["latency_ms"] == pytest.approx(400, abs=0.01)
        assert optimized["new_interval_ms"] == pytest.approx(110)
        assert sim.interval_ms == pytest.approx(110)
        assert recorder.types()[-2:] == [EventType.OPTIMIZED, EventType.PERFORMANCE]

    async def test_fast_tick_leaves_interval(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder, EventType.OPTIMIZED)
        await sim.run_tick()
        assert recorder.events == []
        assert sim.interval_ms == 100


@pytest.mark.asyncio
class TestSymbols:
    """Runtime symbol management."""

    async def test_add_symbol(self, make_simulator, recorder):
        sim = make_simulator()
        await sim.add_symbol(" tsla ")
        assert sim.get_symbols() == ["AAPL", "GOOGL", "TSLA"]

        sim.subscribe(recorder, EventType.QUOTE)
        await sim.run_tick()
        assert "TSLA" in {q.symbol for q in recorder.of(EventType.QUOTE)}

    async def test_add_existing_symbol_is_noop(self, make_simulator):
        sim = make_simulator()
        await sim.add_symbol("AAPL")
        assert sim.get_symbols() == ["AAPL", "GOOGL"]

    async def test_remove_symbol_drops_cached_quote(self, make_simulator, recorder):
        sim = make_simulator()
        await sim.run_tick()
        assert "quote:AAPL" in sim.context.cache

        await sim.remove_symbol("aapl")
        assert sim.get_symbols() == ["GOOGL"]
        assert "quote:AAPL" not in sim.context.cache

        sim.subscribe(recorder, EventType.QUOTE)
        await sim.run_tick()
        assert {q.symbol for q in recorder.of(EventType.QUOTE)} == {"GOOGL"}

    async def test_remove_unknown_symbol_is_noop(self, make_simulator):
        sim = make_simulator()
        await sim.remove_symbol("ZZZZ")
        assert sim.get_symbols() == ["AAPL", "GOOGL"]


class TestRegimeControl:
    """Forcing conditions from outside the tick loop."""

    def test_force_condition_publishes(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder)
        state = sim.force_condition("volatile")

        assert recorder.of(EventType.REGIME) == [state]
        assert sim.market_state.condition == "volatile"
        assert sim.market_state.volatility == 0.5
        assert sim.market_state.volume == "high"

    def test_force_unknown_condition(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder)
        with pytest.raises(ValueError):
            sim.force_condition("moon")
        assert recorder.events == []

    def test_initial_condition_from_config(self, make_simulator):
        sim = make_simulator(market_condition="bearish")
        assert sim.market_state.condition == "bearish"
        assert sim.market_state.momentum == -0.3


class TestPatternObservation:
    def test_observe_pattern_publishes_snapshot(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder, EventType.PATTERN)
        record = sim.observe_pattern({"type": "gap_up", "symbol": "AAPL"})

        (published,) = recorder.of(EventType.PATTERN)
        assert isinstance(published, PatternRecord)
        assert published.key == "pattern:gap_up"
        assert published.count == 1

        # The published record is a copy
        sim.observe_pattern({"type": "gap_up", "symbol": "GOOGL"})
        assert len(record.samples) == 1
        assert sim.context.patterns.get("pattern:gap_up").count == 2


@pytest.mark.asyncio
class TestOptionalFeatures:
    """Self-learning, technicals and news."""

    async def test_self_learning_feeds_learner(self, make_simulator, recorder):
        sim = make_simulator(self_learning=True)
        sim.subscribe(recorder)
        await sim.run_tick()

        patterns = recorder.of(EventType.PATTERN)
        assert len(patterns) == 2
        assert all(p.key.startswith("pattern:price_") for p in patterns)
        assert recorder.of(EventType.PERFORMANCE)[0].patterns_learned >= 1

    async def test_self_learning_off_by_default(self, make_simulator, recorder):
        sim = make_simulator()
        sim.subscribe(recorder, EventType.PATTERN)
        await sim.run_tick()
        assert recorder.events == []
        assert len(sim.context.patterns) == 0

    async def test_technicals_every_n_ticks(self, make_simulator, recorder):
        sim = make_simulator(include_technicals=True, technicals_interval=2)
        sim.subscribe(recorder, EventType.TECHNICAL)

        await sim.run_tick(0)
        assert recorder.events == []

        await sim.run_tick(1)
        batches = recorder.of(EventType.TECHNICAL)
        assert len(batches) == 2
        for batch in batches:
            assert len(batch) == 7
            assert all(isinstance(i, TechnicalIndicator) for i in batch)
        assert {batch[0].symbol for batch in batches} == {"AAPL", "GOOGL"}

    async def test_news_uses_templates(self, make_simulator, recorder):
        sim = make_simulator(symbols=["AAPL"], include_news=True, news_probability=1.0)
        sim.subscribe(recorder, EventType.NEWS)
        await sim.run_tick()

        (news,) = recorder.of(EventType.NEWS)
        assert isinstance(news, News)
        assert news.symbols == ("AAPL",)
        assert news.source == "FeedSim"

    async def test_news_falls_back_when_provider_fails(self, clock, recorder):
        config = SimulatorConfig(symbols=["AAPL"], seed=3, include_news=True, news_probability=1.0)
        service = NewsService(
            fallback=TemplatedNewsProvider(random.Random(3), clock.time),
            providers=[FailingProvider()],
        )
        sim = MarketSimulator(config, clock=clock, news_service=service)
        sim.subscribe(recorder)
        await sim.run_tick()

        (news,) = recorder.of(EventType.NEWS)
        assert news.source == "FeedSim"
        logs = recorder.of(EventType.LOG)
        assert any(msg.startswith("News provider failed, using fallback") for msg in logs)
        assert recorder.of(EventType.ERROR) == []
