"""SSE and NDJSON streaming endpoints for simulated market events."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Iterable

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from .batch_stream import BatchStream
from .events import EventType, MarketEvent
from .models import Quote
from .simulator import MarketSimulator

logger = logging.getLogger(__name__)


def create_stream_router(simulator: MarketSimulator) -> APIRouter:
    """Create the streaming router bound to one simulator instance."""
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/events")
    async def stream_events(request: Request, types: str | None = None) -> StreamingResponse:
        """SSE endpoint for push-mode events.

        ``types`` is an optional comma-separated filter, e.g.
        ``?types=quote:update,trade:executed``. Each event is sent as:

            event: quote:update
            data: {"type": "quote:update", "data": {...}}
        """
        event_types = parse_event_types(types)
        return StreamingResponse(
            _generate_events(simulator, request, event_types),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/batch")
    async def stream_batch(count: int = 100, chunk_size: int = 100, delay_ms: float = 0.0) -> StreamingResponse:
        """Pull-mode endpoint: up to ``count`` quotes/trades as NDJSON lines."""
        try:
            batch = simulator.next_batch(count, chunk_size=chunk_size, delay_ms=delay_ms)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return StreamingResponse(_generate_ndjson(batch), media_type="application/x-ndjson")

    return router


def parse_event_types(raw: str | None) -> tuple[EventType, ...]:
    """Parse a comma-separated event type filter. Empty means all types."""
    if not raw:
        return ()
    result = []
    for name in raw.split(","):
        name = name.strip()
        if not name:
            continue
        try:
            result.append(EventType(name))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown event type: {name}") from None
    return tuple(result)


def format_sse(event: MarketEvent) -> str:
    return f"event: {event.type.value}\ndata: {json.dumps(event.to_dict())}\n\n"


async def _generate_events(
    simulator: MarketSimulator,
    request: Request,
    event_types: Iterable[EventType] = (),
    poll_interval: float = 0.5,
    max_queue: int = 1000,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE frames for every published event.

    Subscribes a bounded queue to the simulator; when a slow client lets the
    queue fill up, newer events are dropped rather than buffered without limit.
    Sends a comment line every ``poll_interval`` seconds of silence and stops
    when the client disconnects.
    """
    queue: asyncio.Queue[MarketEvent] = asyncio.Queue(maxsize=max_queue)
    dropped = 0

    def enqueue(event: MarketEvent) -> None:
        nonlocal dropped
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            dropped += 1

    unsubscribe = simulator.subscribe(enqueue, *event_types)
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        # Tell the client to retry after 1 second if the connection drops
        yield "retry: 1000\n\n"

        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            try:
                event = await asyncio.wait_for(queue.get(), timeout=poll_interval)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue

            yield format_sse(event)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
    finally:
        unsubscribe()
        if dropped:
            logger.warning("SSE client %s dropped %d events (queue full)", client_ip, dropped)


async def _generate_ndjson(batch: BatchStream) -> AsyncGenerator[str, None]:
    async for item in batch:
        kind = "quote" if isinstance(item, Quote) else "trade"
        yield json.dumps({"type": kind, "data": item.to_dict()}) + "\n"
