"""
Unit tests for the SSE streaming adapter.

Runs are replaced by small fake event sources so tests control exactly
when events are produced.
"""

import asyncio

import pytest

from gamesage.llm.models import StreamEvent
from gamesage.server.streaming import (
    EventChannel,
    encode_frame,
    iter_frames,
    parse_frame,
    sse_frames,
)


class FakeRun:
    """Event source that yields a fixed list, optionally pausing between events."""

    def __init__(self, events, delay: float = 0.0):
        self._events = events
        self._delay = delay
        self.emitted = 0
        self.closed = False

    async def events(self):
        try:
            for event in self._events:
                if self._delay:
                    await asyncio.sleep(self._delay)
                self.emitted += 1
                yield event
        finally:
            self.closed = True


SUCCESS_EVENTS = [
    StreamEvent(type="tool_complete", data={"toolName": "execute_calculation"}),
    StreamEvent.response("The answer"),
    StreamEvent.done([]),
]


class TestFrames:
    """Tests for frame encoding and parsing."""

    def test_encode_frame(self):
        frame = encode_frame(StreamEvent.response("hi"))
        assert frame == 'data: {"type": "response", "data": "hi"}\n\n'

    def test_parse_frame_inverse(self):
        frame = encode_frame(StreamEvent.error("boom"))
        assert parse_frame(frame) == {"type": "error", "data": "boom"}

    def test_parse_rejects_non_data_frame(self):
        with pytest.raises(ValueError):
            parse_frame("event: ping")

    def test_iter_frames_splits_body(self):
        body = "".join(encode_frame(event) for event in SUCCESS_EVENTS)
        assert [frame["type"] for frame in iter_frames(body)] == ["tool_complete", "response", "done"]


class TestEventChannel:
    """Tests for EventChannel."""

    @pytest.mark.asyncio
    async def test_delivers_in_order_until_closed(self):
        channel = EventChannel(maxsize=4)
        for event in SUCCESS_EVENTS:
            assert await channel.publish(event)
        await channel.close()

        received = [event async for event in channel]
        assert received == SUCCESS_EVENTS

    @pytest.mark.asyncio
    async def test_publish_after_abandon_returns_false(self):
        channel = EventChannel(maxsize=1)
        channel.abandon()
        assert await channel.publish(StreamEvent.response("x")) is False
        assert channel.abandoned

    @pytest.mark.asyncio
    async def test_abandon_releases_blocked_producer(self):
        channel = EventChannel(maxsize=1)
        await channel.publish(StreamEvent.response("first"))
        blocked = asyncio.create_task(channel.publish(StreamEvent.response("second")))
        await asyncio.sleep(0)
        assert not blocked.done()

        channel.abandon()
        await asyncio.wait_for(blocked, timeout=1)


class TestSSEFrames:
    """Tests for sse_frames."""

    @pytest.mark.asyncio
    async def test_yields_one_frame_per_event(self):
        frames = [frame async for frame in sse_frames(FakeRun(SUCCESS_EVENTS))]
        assert [parse_frame(frame)["type"] for frame in frames] == ["tool_complete", "response", "done"]

    @pytest.mark.asyncio
    async def test_stops_after_first_terminal_event(self):
        events = [StreamEvent.error("fail"), StreamEvent.response("never sent")]
        frames = [frame async for frame in sse_frames(FakeRun(events))]
        assert len(frames) == 1
        assert parse_frame(frames[0]) == {"type": "error", "data": "fail"}

    @pytest.mark.asyncio
    async def test_frames_arrive_before_run_finishes(self):
        run = FakeRun(SUCCESS_EVENTS, delay=0.01)
        stream = sse_frames(run)

        first = await stream.__anext__()

        assert parse_frame(first)["type"] == "tool_complete"
        assert run.emitted < len(SUCCESS_EVENTS)
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_disconnect_stops_the_run_without_cancelling(self):
        many = [StreamEvent.response(f"chunk {i}") for i in range(50)] + [StreamEvent.done([])]
        run = FakeRun(many, delay=0.001)
        disconnected = False

        async def is_disconnected():
            return disconnected

        stream = sse_frames(run, maxsize=2, is_disconnected=is_disconnected)
        await stream.__anext__()
        disconnected = True
        rest = [frame async for frame in stream]

        assert rest == []
        # The producer notices at its next publish and closes the run's generator
        for _ in range(100):
            if run.closed:
                break
            await asyncio.sleep(0.01)
        assert run.closed
        assert run.emitted < len(many)
