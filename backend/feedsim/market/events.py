"""Typed multi-channel event broadcasting."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    QUOTE = "quote:update"
    TRADE = "trade:executed"
    DEPTH = "depth:update"
    NEWS = "news:flash"
    REGIME = "market:state_change"
    PATTERN = "pattern:learned"
    PERFORMANCE = "performance:metrics"
    OPTIMIZED = "performance:optimized"
    TECHNICAL = "technical:update"
    STARTED = "streaming:started"
    STOPPED = "streaming:stopped"
    LOG = "log"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MarketEvent:
    """One notification. ``payload`` is a model object or a plain dict/str."""

    type: EventType
    payload: Any

    def to_dict(self) -> dict[str, Any]:
        payload = self.payload
        if hasattr(payload, "to_dict"):
            data = payload.to_dict()
        elif isinstance(payload, (list, tuple)):
            data = [p.to_dict() if hasattr(p, "to_dict") else p for p in payload]
        else:
            data = payload
        return {"type": self.type.value, "data": data}


Handler = Callable[[MarketEvent], None]


class EventBroadcaster:
    """Delivers events to handlers subscribed per event type or to all types.

    Handlers run synchronously in subscription order. A handler that raises is
    logged and skipped; it never interrupts generation or other handlers.
    """

    def __init__(self) -> None:
        self._handlers: list[tuple[Handler, frozenset[EventType] | None]] = []

    def subscribe(self, handler: Handler, *event_types: EventType) -> Callable[[], None]:
        """Register ``handler``. No event types means every type.

        Returns a callable that unsubscribes the handler.
        """
        types = frozenset(event_types) if event_types else None
        self._handlers.append((handler, types))
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Handler) -> None:
        """Remove every registration of ``handler``. No-op if not subscribed."""
        self._handlers = [(h, t) for h, t in self._handlers if h is not handler]

    def publish(self, event_type: EventType, payload: Any) -> MarketEvent:
        event = MarketEvent(type=event_type, payload=payload)
        for handler, types in list(self._handlers):
            if types is not None and event_type not in types:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed on %s", handler, event_type.value)
        return event

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
