# Serializes orchestrator events into Server-Sent Events and owns stream cancellation.
# Date: 2025-06-14
# Version: 0.1.0

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from toolstream.core import events
from toolstream.core.events import EventChannel, FinishReason, StreamEvent
from toolstream.utils.logger import console

Producer = Callable[[EventChannel], Awaitable[Any]]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: StreamEvent, event_id: Optional[int] = None) -> str:
    """Formats one event as an SSE message."""
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event.type.value}")
    lines.append(f"data: {json.dumps(event.data, default=str)}")
    return "\n".join(lines) + "\n\n"


class ChatStream:
    """
    Runs a producer (the orchestrator) as its own task and relays what it
    sends on the channel, in order. After cancel() nothing but a final
    `stream_end` with finish_reason 'cancelled' is emitted.
    """
    def __init__(self, producer: Producer, stream_id: Optional[str] = None):
        self.id = stream_id or uuid4().hex
        self._producer = producer
        self._channel = EventChannel()
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Stops generation and every in-flight tool call. Returns False if the stream already ended."""
        if self._cancelled or self._finished:
            return False
        self._cancelled = True
        console.info(f"Cancelling stream '{self.id}'.")
        if self._task is not None:
            self._task.cancel()
        self._channel.close()
        return True

    async def _produce(self):
        try:
            await self._producer(self._channel)
        finally:
            self._channel.close()

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._cancelled:
            self._finished = True
            yield events.stream_end(FinishReason.CANCELLED)
            return
        self._task = asyncio.create_task(self._produce())
        try:
            async for event in self._channel:
                if self._cancelled:
                    break
                yield event
            if self._cancelled:
                yield events.stream_end(FinishReason.CANCELLED)
            else:
                await self._task
        finally:
            self._finished = True
            if not self._task.done():
                # the consumer went away before the producer finished
                self._task.cancel()
            await asyncio.wait([self._task])

    async def sse(self) -> AsyncIterator[str]:
        event_id = 0
        source = self.events()
        try:
            async for event in source:
                event_id += 1
                yield format_sse(event, event_id)
        finally:
            await source.aclose()


class StreamRegistry:
    """Live streams of this process, by id, so they can be cancelled from another request."""
    def __init__(self):
        self._streams: Dict[str, ChatStream] = {}

    def add(self, stream: ChatStream):
        self._streams[stream.id] = stream

    def remove(self, stream_id: str):
        self._streams.pop(stream_id, None)

    def get(self, stream_id: str) -> Optional[ChatStream]:
        return self._streams.get(stream_id)

    def cancel(self, stream_id: str) -> bool:
        stream = self._streams.get(stream_id)
        if stream is None:
            return False
        return stream.cancel()

    async def serve(self, stream: ChatStream) -> AsyncIterator[str]:
        """Registers the stream for the lifetime of its SSE frames."""
        self.add(stream)
        frames = stream.sse()
        try:
            async for frame in frames:
                yield frame
        finally:
            await frames.aclose()
            self.remove(stream.id)

    def __len__(self) -> int:
        return len(self._streams)


stream_registry = StreamRegistry()


def get_stream_registry() -> StreamRegistry:
    return stream_registry
