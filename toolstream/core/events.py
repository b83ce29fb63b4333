# Event types emitted by the orchestrator and the channel that carries them to the transport.
# Date: 2025-06-14
# Version: 0.1.0

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from toolstream.models.common import ToolInvocation


class EventType(str, Enum):
    TEXT_DELTA = "text_delta"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_RESULT = "tool_call_result"
    TURN_END = "turn_end"
    ERROR = "error"
    STREAM_END = "stream_end"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    BUDGET_EXHAUSTED = "budget_exhausted"
    ERROR = "error"
    CANCELLED = "cancelled"


class StreamEvent(BaseModel):
    """
    One frame of the outgoing stream.
    Attributes:
        type (EventType): What happened.
        data (dict): The JSON payload sent to the client.
    """
    type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)


def text_delta(turn: int, text: str) -> StreamEvent:
    return StreamEvent(type=EventType.TEXT_DELTA, data={"turn": turn, "text": text})


def tool_call_start(turn: int, invocation: ToolInvocation) -> StreamEvent:
    return StreamEvent(
        type=EventType.TOOL_CALL_START,
        data={"turn": turn, "id": invocation.id, "tool": invocation.tool_name, "arguments": invocation.arguments},
    )


def tool_call_result(turn: int, invocation: ToolInvocation) -> StreamEvent:
    return StreamEvent(
        type=EventType.TOOL_CALL_RESULT,
        data={
            "turn": turn,
            "id": invocation.id,
            "tool": invocation.tool_name,
            "state": invocation.state.value,
            "result": invocation.payload(),
        },
    )


def turn_end(turn: int, finish_reason: FinishReason) -> StreamEvent:
    return StreamEvent(type=EventType.TURN_END, data={"turn": turn, "finish_reason": finish_reason.value})


def error(message: str) -> StreamEvent:
    return StreamEvent(type=EventType.ERROR, data={"message": message})


def stream_end(finish_reason: FinishReason, steps: Optional[int] = None) -> StreamEvent:
    data: Dict[str, Any] = {"finish_reason": finish_reason.value}
    if steps is not None:
        data["steps"] = steps
    return StreamEvent(type=EventType.STREAM_END, data=data)


_CLOSED = object()


class EventChannel:
    """
    Single-producer / single-consumer queue between the orchestrator and the
    transport. Iteration ends once the channel is closed and drained; sends
    after close are dropped and reported as such.
    """
    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: StreamEvent) -> bool:
        if self._closed:
            return False
        await self._queue.put(event)
        return True

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> StreamEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the marker for any later reader
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item
