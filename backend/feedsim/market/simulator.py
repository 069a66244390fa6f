"""Tick-driven market simulator."""

from __future__ import annotations

import asyncio
import logging
import random
import sys
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .batch_stream import BatchStream
from .cache import ContinuityCache
from .config import SimulatorConfig
from .errors import AlreadyRunningError, ConfigurationError, GenerationError, ProviderError
from .events import EventBroadcaster, EventType, Handler
from .generators import generate_depth, generate_trade
from .governor import PerformanceGovernor
from .indicators import generate_all
from .interface import MarketEventSource
from .models import ErrorReport, MarketState, PatternRecord, PerformanceSnapshot, Quote
from .news import NewsService, TemplatedNewsProvider
from .patterns import PatternLearner, classify_quote
from .price_model import RandomWalkPriceModel
from .regime import MarketRegime
from .scheduler import CancelToken, Clock, SystemClock, TickScheduler

logger = logging.getLogger(__name__)


def quote_key(symbol: str) -> str:
    return f"quote:{symbol}"


@dataclass
class StartOptions:
    """Per-run options for ``MarketSimulator.start``.

    parallel:    fan out all symbols concurrently per tick (True) or await them
                 one by one (False)
    interval_ms: override the configured base tick interval for this run
    max_ticks:   stop by itself after this many ticks (None = until stop())
    """

    parallel: bool = True
    interval_ms: float | None = None
    max_ticks: int | None = None


class SimulationContext:
    """State that survives across ticks: regime, continuity cache, learner, RNG.

    Passed explicitly to everything that generates data; there is no
    module-level state.
    """

    def __init__(self, config: SimulatorConfig, clock: Clock, rng: random.Random) -> None:
        self.config = config
        self.clock = clock
        self.rng = rng
        self.cache = ContinuityCache(
            max_size=config.cache_max_size,
            ttl=config.cache_ttl,
            clock=clock.time,
        )
        self.regime = MarketRegime(
            condition=config.market_condition,
            base_volatility=config.volatility,
            transition_probability=config.regime_probability,
            timestamp=clock.time(),
        )
        self.patterns = PatternLearner()
        self.price_model = RandomWalkPriceModel()

    @property
    def state(self) -> MarketState:
        return self.regime.state

    def next_quote(self, symbol: str) -> Quote:
        """Derive the next quote from the cached one and store it back."""
        key = quote_key(symbol)
        previous = self.cache.get(key)
        quote = self.price_model.next_quote(
            symbol, previous, self.regime.state, self.rng, self.clock.time()
        )
        self.cache.put(key, quote)
        return quote


class MarketSimulator(MarketEventSource):
    """Push/pull market event source backed by a bounded random walk.

    Every tick fans out one generation unit per symbol (quote, then maybe a
    trade, a depth snapshot and a news flash), then rolls the regime, feeds the
    tick's latency to the performance governor and publishes a performance
    snapshot. All events of a tick are published before the next tick starts.

    Failures inside a tick are reported as ``error`` events and the loop goes
    on; only ``stop()`` ends a run.
    """

    def __init__(
        self,
        config: SimulatorConfig | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        news_service: NewsService | None = None,
    ) -> None:
        self._config = config or SimulatorConfig()
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random(self._config.seed)
        self._ctx = SimulationContext(self._config, self._clock, self._rng)
        self._events = EventBroadcaster()

        self._news = news_service or NewsService(
            fallback=TemplatedNewsProvider(self._rng, self._clock.time),
            timeout=self._config.news_timeout,
        )
        self._news.set_failure_handler(self._on_provider_failure)

        self._symbols: list[str] = list(self._config.symbols)
        self._history: dict[str, deque[tuple[float, float, float, int]]] = {}

        self._governor = self._make_governor(self._config.interval_ms)
        self._scheduler: TickScheduler | None = None
        self._token: CancelToken | None = None
        self._task: asyncio.Task | None = None
        self._running = False
        self._parallel = True

    # --- Public API ---

    @property
    def config(self) -> SimulatorConfig:
        return self._config

    @property
    def context(self) -> SimulationContext:
        return self._ctx

    @property
    def market_state(self) -> MarketState:
        return self._ctx.state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> str:
        """'running' or 'idle'."""
        return "running" if self._running else "idle"

    @property
    def interval_ms(self) -> float:
        """Current tick interval, including any governor slow-down."""
        return self._governor.interval_ms

    def subscribe(self, handler: Handler, *event_types: EventType) -> Callable[[], None]:
        return self._events.subscribe(handler, *event_types)

    def unsubscribe(self, handler: Handler) -> None:
        self._events.unsubscribe(handler)

    async def start(self, options: StartOptions | None = None) -> None:
        if self._running:
            raise AlreadyRunningError()

        options = options or StartOptions()
        interval_ms = options.interval_ms if options.interval_ms is not None else self._config.interval_ms
        if interval_ms <= 0:
            raise ConfigurationError("interval_ms must be positive")
        if options.max_ticks is not None and options.max_ticks < 0:
            raise ConfigurationError("max_ticks must be >= 0")

        self._governor = self._make_governor(interval_ms)
        self._scheduler = TickScheduler(self._clock, interval_ms / 1000)
        self._token = CancelToken()
        self._parallel = options.parallel
        self._running = True

        self._events.publish(
            EventType.STARTED,
            {"timestamp": self._clock.time(), "interval_ms": interval_ms, "parallel": options.parallel},
        )
        self._log(
            f"Streaming started: {len(self._symbols)} symbols, {interval_ms:.0f}ms interval, "
            f"{'parallel' if options.parallel else 'sequential'}"
        )
        self._task = asyncio.create_task(self._run_loop(options.max_ticks), name="feedsim-ticker")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return

        if self._token is not None:
            self._token.cancel()

        # Called from inside a tick (e.g. by a handler): the loop exits at the boundary
        if task is asyncio.current_task():
            return

        # Between ticks the loop is only sleeping, so it is safe to interrupt
        if not task.done() and self._scheduler is not None and not self._scheduler.in_tick:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._finish()

    async def wait_closed(self) -> None:
        """Wait until the current run ends (by stop() or by reaching max_ticks)."""
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_tick(self, tick_index: int = 0, parallel: bool = True) -> None:
        """Run a single tick outside the background loop."""
        previous = self._parallel
        self._parallel = parallel
        try:
            await self._on_tick(tick_index)
        finally:
            self._parallel = previous

    def next_batch(self, count: int, chunk_size: int = 100, delay_ms: float = 0.0) -> BatchStream:
        return BatchStream(
            context=self._ctx,
            symbols=self._symbols,
            count=count,
            chunk_size=chunk_size,
            delay=delay_ms / 1000,
            trade_probability=self._config.trade_probability,
        )

    async def add_symbol(self, symbol: str) -> None:
        symbol = symbol.upper().strip()
        if symbol and symbol not in self._symbols:
            self._symbols.append(symbol)
            logger.info("Simulator: added symbol %s", symbol)

    async def remove_symbol(self, symbol: str) -> None:
        symbol = symbol.upper().strip()
        if symbol in self._symbols:
            self._symbols.remove(symbol)
        self._ctx.cache.remove(quote_key(symbol))
        self._history.pop(symbol, None)
        logger.info("Simulator: removed symbol %s", symbol)

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    def force_condition(self, condition: str) -> MarketState:
        """Switch the regime immediately and broadcast the change."""
        state = self._ctx.regime.force(condition, self._clock.time())
        self._events.publish(EventType.REGIME, state)
        return state

    def observe_pattern(self, pattern: dict[str, Any]) -> PatternRecord:
        """Feed one pattern sample to the learner and broadcast the updated record."""
        record = self._ctx.patterns.learn(pattern)
        snapshot = PatternRecord(key=record.key, count=record.count, samples=list(record.samples))
        self._events.publish(EventType.PATTERN, snapshot)
        return snapshot

    def performance_snapshot(self) -> PerformanceSnapshot:
        return PerformanceSnapshot(
            cache_hit_rate=round(self._ctx.cache.hit_rate(), 4),
            memory_mb=round(self._estimate_memory_mb(), 4),
            active_symbols=len(self._symbols),
            patterns_learned=len(self._ctx.patterns),
            interval_ms=round(self._governor.interval_ms, 3),
            timestamp=self._clock.time(),
        )

    # --- Internals ---

    def _make_governor(self, interval_ms: float) -> PerformanceGovernor:
        return PerformanceGovernor(
            interval_ms=interval_ms,
            threshold_ms=self._config.latency_threshold_ms,
            factor=self._config.interval_factor,
            ceiling_ms=max(self._config.max_interval_ms, interval_ms),
        )

    async def _run_loop(self, max_ticks: int | None) -> None:
        assert self._scheduler is not None and self._token is not None
        try:
            await self._scheduler.run(self._on_tick, self._token, max_ticks)
        finally:
            self._finish()

    def _finish(self) -> None:
        if not self._running:
            return
        self._running = False
        self._events.publish(EventType.STOPPED, {"timestamp": self._clock.time()})
        self._log("Streaming stopped")

    async def _on_tick(self, tick_index: int) -> None:
        started = self._clock.monotonic()
        symbols = list(self._symbols)

        if self._parallel:
            await asyncio.gather(*(self._generate_symbol(symbol) for symbol in symbols))
        else:
            for symbol in symbols:
                await self._generate_symbol(symbol)

        self._run_phase("regime", self._update_regime)
        if self._config.include_technicals and (tick_index + 1) % self._config.technicals_interval == 0:
            self._run_phase("technicals", self._emit_technicals)

        latency_ms = (self._clock.monotonic() - started) * 1000
        self._run_phase("governor", self._observe_latency, latency_ms)
        self._run_phase("performance", self._emit_performance)

    async def _generate_symbol(self, symbol: str) -> None:
        """One generation unit: quote, then probabilistic trade/depth/news."""
        config = self._config
        rng = self._rng
        phase = "quote"
        try:
            quote = self._ctx.next_quote(symbol)
            self._events.publish(EventType.QUOTE, quote)
            if config.include_technicals:
                self._record_history(quote)

            if config.self_learning:
                phase = "pattern"
                self.observe_pattern(classify_quote(quote, self._ctx.state.condition))

            phase = "trade"
            if rng.random() < config.trade_probability:
                trade = generate_trade(quote, rng, self._clock.time())
                self._events.publish(EventType.TRADE, trade)

            phase = "depth"
            if config.include_order_book and rng.random() < config.depth_probability:
                depth = generate_depth(quote, rng, self._clock.time())
                self._events.publish(EventType.DEPTH, depth)

            phase = "news"
            if config.include_news and rng.random() < config.news_probability:
                news = await self._news.generate([symbol])
                self._events.publish(EventType.NEWS, news)
        except Exception as e:
            logger.exception("Generation failed for %s during %s", symbol, phase)
            self._report_error(GenerationError(phase, str(e), symbol=symbol), e)

    def _run_phase(self, phase: str, fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.exception("Tick phase %s failed", phase)
            self._report_error(GenerationError(phase, str(e)), e)

    def _report_error(self, error: GenerationError, cause: Exception) -> None:
        report = ErrorReport(
            phase=error.phase,
            error_type=type(cause).__name__,
            message=str(cause),
            symbol=error.symbol,
        )
        self._events.publish(EventType.ERROR, report)

    def _update_regime(self) -> None:
        state = self._ctx.regime.maybe_transition(self._rng, self._clock.time())
        if state is not None:
            self._events.publish(EventType.REGIME, state)
            self._log(f"Market state changed to: {state.condition}")

    def _observe_latency(self, latency_ms: float) -> None:
        new_interval = self._governor.observe(latency_ms)
        if new_interval is None:
            return
        if self._scheduler is not None:
            self._scheduler.interval = new_interval / 1000
        self._events.publish(
            EventType.OPTIMIZED,
            {"action": "reduced_frequency", "latency_ms": latency_ms, "new_interval_ms": new_interval},
        )

    def _emit_performance(self) -> None:
        self._events.publish(EventType.PERFORMANCE, self.performance_snapshot())

    def _record_history(self, quote: Quote) -> None:
        history = self._history.get(quote.symbol)
        if history is None:
            history = deque(maxlen=self._config.history_size)
            self._history[quote.symbol] = history
        history.append((quote.last, quote.high, quote.low, quote.volume))

    def _emit_technicals(self) -> None:
        now = self._clock.time()
        for symbol in self._symbols:
            history = self._history.get(symbol)
            if not history:
                continue
            closes, highs, lows, volumes = zip(*history)
            indicators = generate_all(symbol, closes, highs, lows, volumes, now)
            self._events.publish(EventType.TECHNICAL, indicators)

    def _estimate_memory_mb(self) -> float:
        size = sum(sys.getsizeof(entry.payload) for entry in self._ctx.cache.entries().values())
        for record in self._ctx.patterns.records().values():
            size += sum(sys.getsizeof(sample) for sample in record.samples)
        return size / 1024 / 1024

    def _on_provider_failure(self, error: ProviderError) -> None:
        self._events.publish(EventType.LOG, f"News provider failed, using fallback: {error}")

    def _log(self, message: str) -> None:
        logger.info(message)
        self._events.publish(EventType.LOG, message)
