"""Ordered event channel between the pipeline and the transport."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Sequence

from langchain_core.documents import Document

from metasearch.metrics.observability import PipelineMetrics, get_logger
from metasearch.models import serialize_document

TIMEOUT_MESSAGE = "Request timed out. The AI is taking longer than expected. Please try again."
DEFAULT_ERROR_MESSAGE = "An error occurred while processing your request"


class EventType(str, Enum):
    SOURCES = "sources"
    RESPONSE = "response"
    TEMPLATE = "template"
    MESSAGE_END = "messageEnd"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.MESSAGE_END, EventType.DONE, EventType.ERROR})


class StreamState(str, Enum):
    IDLE = "idle"
    SOURCES_EMITTED = "sourcesEmitted"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class StreamOrderError(RuntimeError):
    """Raised when a producer tries to emit sources after the answer started streaming."""


@dataclass(frozen=True)
class StreamEvent:
    """One line of the newline-delimited JSON stream."""

    type: EventType
    data: Any = None
    template: str | None = None
    message_id: str | None = None

    @classmethod
    def sources(cls, documents: Sequence[Document]) -> "StreamEvent":
        return cls(EventType.SOURCES, [serialize_document(doc) for doc in documents])

    @classmethod
    def response(cls, text: str) -> "StreamEvent":
        return cls(EventType.RESPONSE, text)

    @classmethod
    def template_block(cls, name: str, data: Any) -> "StreamEvent":
        return cls(EventType.TEMPLATE, data, template=name)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventType.ERROR, message or DEFAULT_ERROR_MESSAGE)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def with_message_id(self, message_id: str | None) -> "StreamEvent":
        return replace(self, message_id=message_id)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value}
        if self.type == EventType.TEMPLATE:
            payload["template"] = self.template
        if self.type not in (EventType.MESSAGE_END, EventType.DONE):
            payload["data"] = self.data
        if self.message_id:
            payload["messageId"] = self.message_id
        return payload

    def to_ndjson(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False) + "\n"


class EventStream:
    """Single ordered channel carrying one turn's events to exactly one consumer.

    The producer side (``emit_*``, ``finish``, ``fail``) is synchronous and only
    enqueues; the consumer iterates ``events()``. State moves
    ``idle -> sourcesEmitted -> streaming -> done`` with ``error`` reachable from
    any non-terminal state. After a terminal event every further emit is dropped.
    If no event arrives within ``first_event_timeout`` seconds a single timeout
    error is emitted and the attached producer task is cancelled; the producer is
    also cancelled when the consumer stops iterating early.
    """

    _logger = get_logger("stream")

    def __init__(
        self,
        *,
        end_event: EventType = EventType.MESSAGE_END,
        message_id: str | None = None,
        first_event_timeout: float | None = 60.0,
    ) -> None:
        if end_event not in (EventType.MESSAGE_END, EventType.DONE):
            raise ValueError(f"end_event must be messageEnd or done, got {end_event!r}")
        self._end_event = end_event
        self._message_id = message_id
        self._first_event_timeout = first_event_timeout
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._state = StreamState.IDLE
        self._producer: asyncio.Task[Any] | None = None
        self._consumed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state in (StreamState.DONE, StreamState.ERROR)

    @property
    def message_id(self) -> str | None:
        return self._message_id

    def attach(self, producer: asyncio.Task[Any]) -> None:
        """Tie the producing task to this stream's lifetime."""

        self._producer = producer
        producer.add_done_callback(self._on_producer_done)

    def emit_sources(self, documents: Sequence[Document]) -> bool:
        if self.closed:
            return False
        if self._state != StreamState.IDLE:
            raise StreamOrderError(f"sources cannot be emitted in state {self._state.value}")
        self._state = StreamState.SOURCES_EMITTED
        self._put(StreamEvent.sources(documents))
        return True

    def emit_response(self, text: str) -> bool:
        if self.closed:
            return False
        self._state = StreamState.STREAMING
        self._put(StreamEvent.response(text))
        return True

    def emit_template(self, name: str, data: Any) -> bool:
        if self.closed:
            return False
        self._state = StreamState.STREAMING
        self._put(StreamEvent.template_block(name, data))
        return True

    def finish(self) -> bool:
        if self.closed:
            return False
        self._state = StreamState.DONE
        self._put(StreamEvent(self._end_event))
        PipelineMetrics.observe_stream_outcome(self._end_event.value)
        return True

    def fail(self, message: str, *, outcome: str = "error") -> bool:
        if self.closed:
            return False
        self._state = StreamState.ERROR
        self._put(StreamEvent.error(message))
        PipelineMetrics.observe_stream_outcome(outcome)
        return True

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events in emission order, ending after the terminal event."""

        if self._consumed:
            raise RuntimeError("EventStream can only be consumed once")
        self._consumed = True
        finished = False
        try:
            event = await self._first_event()
            while True:
                yield event
                if event.is_terminal:
                    finished = True
                    return
                event = await self._queue.get()
        finally:
            if not finished:
                self._logger.info("stream.cancelled", state=self._state.value)
                if not self.closed:
                    PipelineMetrics.observe_stream_outcome("cancelled")
            self._cancel_producer()

    async def _first_event(self) -> StreamEvent:
        if self._first_event_timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=self._first_event_timeout)
        except asyncio.TimeoutError:
            self._logger.warning("stream.timeout", timeout_seconds=self._first_event_timeout)
            self.fail(TIMEOUT_MESSAGE, outcome="timeout")
            self._cancel_producer()
            return self._queue.get_nowait()

    def _put(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event.with_message_id(self._message_id))

    def _cancel_producer(self) -> None:
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()

    def _on_producer_done(self, task: asyncio.Task[Any]) -> None:
        if self.closed or task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("stream.producer_failed", error=str(exc))
            self.fail(str(exc))
        else:
            self.finish()


@dataclass
class CollectedAnswer:
    """Non-streaming view of a finished stream."""

    message: str = ""
    sources: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


async def collect(stream: EventStream) -> CollectedAnswer:
    """Drain ``stream`` and accumulate the response text and sources."""

    answer = CollectedAnswer()
    async for event in stream.events():
        if event.type == EventType.SOURCES:
            answer.sources = list(event.data or [])
        elif event.type == EventType.RESPONSE:
            answer.message += event.data or ""
        elif event.type == EventType.ERROR:
            answer.error = event.data
    return answer


async def iter_ndjson(stream: EventStream) -> AsyncIterator[str]:
    async for event in stream.events():
        yield event.to_ndjson()
