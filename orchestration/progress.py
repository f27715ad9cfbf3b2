# orchestration/progress.py
"""Ordered progress events and the sinks that carry them to callers."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

import structlog

from core.errors import ProgressOrderError
from models.document_models import DocumentResult, DocumentType
from models.event_models import ProgressEvent, ProgressEventType

logger = structlog.get_logger(__name__)


def format_sse(event: ProgressEvent) -> str:
    """Render ``event`` as one server-sent-events frame."""
    payload = event.model_dump_json(exclude_none=True)
    return f"event: {event.type.value}\ndata: {payload}\n\n"


class ProgressSink(Protocol):
    def deliver(self, event: ProgressEvent) -> None: ...


class CallbackSink:
    """Hands each event to a plain or async callback.

    Async callbacks are scheduled, not awaited, so a slow consumer never
    holds up generation.
    """

    def __init__(self, callback: Callable[[ProgressEvent], Any]) -> None:
        self.callback = callback
        self._tasks: set[asyncio.Task] = set()

    def deliver(self, event: ProgressEvent) -> None:
        outcome = self.callback(event)
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                "Progress callback failed", error=str(task.exception())
            )


class ProgressChannel:
    """Unbounded in-memory channel consumed as an async iterator.

    Iteration ends after the terminal event or when the channel is closed.
    Events delivered after ``close()`` are dropped.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False

    def deliver(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        self._queue.put_nowait(event)
        if event.type.is_terminal:
            self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item

    async def sse(self) -> AsyncIterator[str]:
        async for event in self:
            yield format_sse(event)


class ProgressReporter:
    """Validates event order and fans events out to every sink.

    ``start`` comes first unless the run ends immediately with a terminal
    event (a cache hit), a document's ``document_start`` precedes its
    completion or failure, and nothing follows ``complete`` or ``error``.
    Order violations raise ``ProgressOrderError``; sink failures are logged
    and swallowed.
    """

    def __init__(self, *sinks: ProgressSink) -> None:
        self.sinks = list(sinks)
        self._started_at = time.monotonic()
        self._emitted = 0
        self._started = False
        self._terminated = False
        self._open: set[int] = set()
        self._closed: set[int] = set()

    def add_sink(self, sink: ProgressSink) -> None:
        self.sinks.append(sink)

    @property
    def terminated(self) -> bool:
        return self._terminated

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started_at) * 1000)

    def emit(self, event: ProgressEvent) -> None:
        self._check_order(event)
        self._emitted += 1
        for sink in self.sinks:
            try:
                sink.deliver(event)
            except Exception as exc:
                logger.warning(
                    "Progress sink failed",
                    sink=type(sink).__name__,
                    event_type=event.type.value,
                    error=str(exc),
                )

    def _check_order(self, event: ProgressEvent) -> None:
        if self._terminated:
            raise ProgressOrderError(f"{event.type.value} emitted after terminal event")
        kind = event.type
        if kind is ProgressEventType.START:
            if self._emitted:
                raise ProgressOrderError("start must be the first event")
            self._started = True
        elif kind.is_terminal:
            self._terminated = True
        else:
            if not self._started:
                raise ProgressOrderError(f"{kind.value} emitted before start")
            if event.index is None:
                raise ProgressOrderError(f"{kind.value} requires an index")
            if kind is ProgressEventType.DOCUMENT_START:
                if event.index in self._open or event.index in self._closed:
                    raise ProgressOrderError(
                        f"document {event.index} already started"
                    )
                self._open.add(event.index)
            else:
                if event.index not in self._open:
                    raise ProgressOrderError(
                        f"{kind.value} for document {event.index} without document_start"
                    )
                self._open.discard(event.index)
                self._closed.add(event.index)

    def start(self, total: int, document_types: list[DocumentType]) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.START,
                total=total,
                timings={"elapsed_ms": self.elapsed_ms()},
                data={"document_types": [t.value for t in document_types]},
            )
        )

    def document_start(self, index: int, total: int, document_type: DocumentType) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.DOCUMENT_START,
                index=index,
                total=total,
                title=document_type.display_title,
                document_type=document_type.value,
                timings={"elapsed_ms": self.elapsed_ms()},
            )
        )

    def document_complete(self, index: int, total: int, result: DocumentResult) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.DOCUMENT_COMPLETE,
                index=index,
                total=total,
                title=result.title,
                document_type=result.type.value,
                timings={
                    "elapsed_ms": self.elapsed_ms(),
                    "generation_time_ms": result.generation_time_ms,
                },
                data={"attempts": result.attempts, "insights": result.insights},
            )
        )

    def document_failed(self, index: int, total: int, result: DocumentResult) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.DOCUMENT_FAILED,
                index=index,
                total=total,
                title=result.title,
                document_type=result.type.value,
                timings={"elapsed_ms": self.elapsed_ms()},
                error=result.error,
                data={"attempts": result.attempts},
            )
        )

    def complete(self, total: int, data: dict[str, Any]) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.COMPLETE,
                total=total,
                timings={"elapsed_ms": self.elapsed_ms()},
                data=data,
            )
        )

    def error(self, message: str, total: int = 0, data: dict[str, Any] | None = None) -> None:
        self.emit(
            ProgressEvent(
                type=ProgressEventType.ERROR,
                total=total,
                timings={"elapsed_ms": self.elapsed_ms()},
                error=message,
                data=data or {},
            )
        )
