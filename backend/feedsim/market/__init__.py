"""Market simulation subsystem for FeedSim.

Public API:
    MarketSimulator     - Tick-driven push/pull event source
    StartOptions        - Per-run options for MarketSimulator.start
    SimulatorConfig     - Construction-time configuration
    EventType           - Names of the broadcast event channels
    MarketEvent         - A published event (type + payload)
    Quote, Trade, MarketDepth, News, MarketState - Event payload models
    ContinuityCache     - Bounded per-key store of last derived state
    VirtualClock        - Deterministic clock for tests and replays
    create_simulator    - Factory that wires env-selected news providers
    create_stream_router - FastAPI router factory for SSE/NDJSON endpoints
"""

from .cache import ContinuityCache
from .config import SimulatorConfig
from .errors import (
    AlreadyRunningError,
    ConfigurationError,
    FeedSimError,
    GenerationError,
    ProviderError,
)
from .events import EventType, MarketEvent
from .factory import create_simulator
from .interface import MarketEventSource
from .models import MarketDepth, MarketState, News, Quote, Trade
from .scheduler import SystemClock, VirtualClock
from .simulator import MarketSimulator, StartOptions
from .stream import create_stream_router

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "ContinuityCache",
    "EventType",
    "FeedSimError",
    "GenerationError",
    "MarketDepth",
    "MarketEvent",
    "MarketEventSource",
    "MarketSimulator",
    "MarketState",
    "News",
    "ProviderError",
    "Quote",
    "SimulatorConfig",
    "StartOptions",
    "SystemClock",
    "Trade",
    "VirtualClock",
    "create_simulator",
    "create_stream_router",
]
