"""
Streaming protocol adapter.

Turns an orchestration run's event sequence into server-sent-event frames:

    data: {"type": "tool_start", "data": {...}}\\n\\n

The run is driven by its own task that pushes events onto a bounded
channel; the transport side drains the channel and writes one frame per
event as soon as it arrives. The stream ends after the first ``done`` or
``error`` frame.

If the client goes away, the transport side abandons the channel. The
producer task is not cancelled: whatever model or tool call is already in
flight finishes, and the run stops at its next event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol

from gamesage.llm.models import StreamEvent

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data: "
FRAME_SEPARATOR = "\n\n"

_END = object()

# Producer tasks outlive a disconnected response; keep references until they finish.
_producers: set[asyncio.Task] = set()


class EventSource(Protocol):
    def events(self) -> AsyncIterator[StreamEvent]: ...


def encode_frame(event: StreamEvent) -> str:
    """Serialize one event as an SSE data frame."""
    return f"{FRAME_PREFIX}{json.dumps(event.model_dump(mode='json'))}{FRAME_SEPARATOR}"


def parse_frame(frame: str) -> dict[str, Any]:
    """
    Parse one SSE data frame back into its JSON payload.

    Raises:
        ValueError: If the frame lacks the data prefix or is not valid JSON
    """
    frame = frame.strip()
    if not frame.startswith(FRAME_PREFIX.strip()):
        raise ValueError(f"Not an SSE data frame: {frame[:40]!r}")
    return json.loads(frame[len(FRAME_PREFIX.strip()):].strip())


def iter_frames(body: str) -> list[dict[str, Any]]:
    """Split an accumulated SSE body into parsed frames."""
    return [parse_frame(chunk) for chunk in body.split(FRAME_SEPARATOR) if chunk.strip()]


class EventChannel:
    """
    Bounded single-producer, single-consumer queue of StreamEvents.

    Args:
        maxsize: Events buffered before the producer waits for the consumer
    """

    def __init__(self, maxsize: int = 16):
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._abandoned = False

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    async def publish(self, event: StreamEvent) -> bool:
        """Queue an event. Returns False once the consumer has gone away."""
        if self._abandoned:
            return False
        await self._queue.put(event)
        return True

    async def close(self) -> None:
        """Producer side: no more events."""
        if not self._abandoned:
            await self._queue.put(_END)

    def abandon(self) -> None:
        """Consumer side: stop accepting events and release a blocked producer."""
        self._abandoned = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item


async def _produce(source: EventSource, channel: EventChannel) -> None:
    events = source.events()
    try:
        async for event in events:
            if not await channel.publish(event):
                logger.info("Stream consumer gone; stopping orchestration run")
                break
    finally:
        await events.aclose()
        await channel.close()


async def sse_frames(
    source: EventSource,
    maxsize: int = 16,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """
    Drive ``source`` in a background task and yield its events as SSE frames.

    Args:
        source: An orchestration run (anything with an async ``events()``)
        maxsize: Channel capacity between the run and the transport
        is_disconnected: Optional transport probe checked before each frame
    """
    channel = EventChannel(maxsize)
    producer = asyncio.create_task(_produce(source, channel))
    _producers.add(producer)
    producer.add_done_callback(_producers.discard)

    finished = False
    try:
        async for event in channel:
            if is_disconnected is not None and await is_disconnected():
                break
            yield encode_frame(event)
            if event.is_terminal:
                finished = True
                break
        else:
            finished = True
    finally:
        if not finished:
            logger.info("Client disconnected before the stream finished")
            channel.abandon()
