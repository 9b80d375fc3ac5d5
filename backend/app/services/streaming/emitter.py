from __future__ import annotations

"""backend/app/services/streaming/emitter.py

SSE emission: canonical events -> `data: <json>\\n\\n` frames on a sink.

A sink is anything with `write(str)` and `flush()`. Every event is
written then flushed before the caller continues, so arrival order is
preserved. Any failure to write closes the emitter and surfaces as a
SinkError; the pipeline treats that as "client is gone".

Sinks provided here:
- BufferSink: in-memory, for tests and non-streaming callers
- QueueSink: hands frames to another thread (the HTTP response body)
"""

import json
import logging
import queue
from typing import Iterator, List, Optional, Protocol

from app.services.streaming.errors import SinkError
from app.services.streaming.events import CanonicalEvent, to_wire

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable proxy buffering
}


def format_sse(event: CanonicalEvent) -> str:
    return f"data: {to_wire(event)}\n\n"


class Sink(Protocol):
    def write(self, data: str) -> None:
        ...

    def flush(self) -> None:
        ...


class SSEEmitter:
    """Write-then-flush each event to a sink."""

    def __init__(self, sink: Sink) -> None:
        self.sink = sink
        self.closed = False
        self.events_written = 0

    def emit(self, event: CanonicalEvent) -> None:
        if self.closed:
            raise SinkError("sink is closed")
        frame = format_sse(event)
        try:
            self.sink.write(frame)
            self.sink.flush()
        except SinkError:
            self.closed = True
            raise
        except Exception as exc:
            self.closed = True
            raise SinkError(f"{type(exc).__name__}: {exc}") from exc
        self.events_written += 1


class BufferSink:
    """Collect frames in memory."""

    def __init__(self) -> None:
        self.frames: List[str] = []

    def write(self, data: str) -> None:
        self.frames.append(data)

    def flush(self) -> None:
        pass

    def getvalue(self) -> str:
        return "".join(self.frames)

    def payloads(self) -> List[dict]:
        """Decode every frame back into its JSON payload."""
        return [json.loads(frame[len("data: ") :].strip()) for frame in self.frames]


_END = object()


class QueueSink:
    """Thread-safe hand-off between the pipeline thread and a response body.

    The producer calls write()/close(); the consumer calls get() or
    iterates. The queue is bounded, so a slow or vanished consumer blocks
    the producer instead of growing memory. When the consumer goes away it
    calls abandon(), after which write() raises SinkError so the producer
    stops and cleans up its child process.
    """

    def __init__(self, maxsize: int = 256, poll_seconds: float = 0.1) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._poll_seconds = poll_seconds
        self._abandoned = False
        self._finished = False

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    @property
    def finished(self) -> bool:
        """True once the consumer has seen the end of the stream."""
        return self._finished

    def _put(self, item: object) -> bool:
        while not self._abandoned:
            try:
                self._queue.put(item, timeout=self._poll_seconds)
                return True
            except queue.Full:
                continue
        return False

    def write(self, data: str) -> None:
        if not self._put(data):
            raise SinkError("client disconnected")

    def flush(self) -> None:
        if self._abandoned:
            raise SinkError("client disconnected")

    def close(self) -> None:
        self._put(_END)

    def abandon(self) -> None:
        if not self._abandoned:
            logger.debug("Response body closed; abandoning stream")
        self._abandoned = True

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next frame, or None once the producer has closed the stream.

        Raises:
            queue.Empty: nothing arrived within ``timeout`` seconds.
        """
        item = self._queue.get(timeout=timeout)
        if item is _END:
            self._finished = True
            return None
        return item

    def __iter__(self) -> Iterator[str]:
        while True:
            frame = self.get()
            if frame is None:
                return
            yield frame
