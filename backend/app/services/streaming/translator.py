from __future__ import annotations

"""backend/app/services/streaming/translator.py

Event translation: ParsedRecord stream -> canonical events.

One EventTranslator exists per request and exclusively owns its
StreamSession. It moves through three states:

- STARTING: session initialized, nothing processed yet
- STREAMING: records are being fed one at a time
- COMPLETED: `finish()` ran; at most one ErrorEvent then exactly one DoneEvent
  were emitted and no further events will ever be produced

Emission goes through a plain callable so the translator knows nothing
about SSE or sinks; any exception raised by it propagates to the caller.
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from app.services.diagnostics import FailurePolicy, describe_exit_code, keyword_failure_policy
from app.services.streaming.events import (
    CanonicalEvent,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ToolResultEvent,
    ToolUseEvent,
)
from app.services.streaming.records import (
    AssistantRecord,
    ParsedRecord,
    ResultRecord,
    SystemRecord,
    TextItem,
    ToolUseItem,
    UnknownRecord,
    UnparsedLine,
    UserRecord,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "The tool finished without producing a response"


class TranslatorState(str, enum.Enum):
    STARTING = "starting"
    STREAMING = "streaming"
    COMPLETED = "completed"


@dataclass
class ResultStats:
    duration_ms: Optional[int] = None
    total_cost_usd: Optional[float] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@dataclass
class StreamSession:
    """Per-request accumulator. Text is append-only."""

    tool: str
    started_at: float
    started_at_utc: datetime = field(default_factory=datetime.utcnow)
    final_text: Optional[str] = None
    error: bool = False
    error_message: Optional[str] = None
    heuristic_error: bool = False
    tool_reported_error: bool = False
    result: Optional[ResultStats] = None
    content_events: int = 0
    events_emitted: int = 0
    _chunks: List[str] = field(default_factory=list, repr=False)

    @property
    def full_response(self) -> str:
        return "".join(self._chunks)

    @property
    def response(self) -> str:
        """Response of record: streamed text, else the result's final text."""
        if self._chunks:
            return self.full_response
        return self.final_text or ""

    def append_text(self, text: str) -> None:
        self._chunks.append(text)

    def mark_error(self, message: str, *, replace: bool = True) -> None:
        self.error = True
        if replace or not self.error_message:
            self.error_message = message


class EventTranslator:
    """Translate parsed records into canonical events for one session."""

    def __init__(
        self,
        tool: str,
        emit: Callable[[CanonicalEvent], None],
        *,
        failure_policy: FailurePolicy = keyword_failure_policy,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._emit_fn = emit
        self._failure_policy = failure_policy
        self._clock = clock
        self.state = TranslatorState.STARTING
        self.session = StreamSession(tool=tool, started_at=clock())

    # ---- Streaming ----

    def feed(self, record: ParsedRecord) -> None:
        if self.state is TranslatorState.COMPLETED:
            raise RuntimeError("translator already completed")
        self.state = TranslatorState.STREAMING

        if isinstance(record, AssistantRecord):
            self._on_assistant(record)
        elif isinstance(record, UserRecord):
            for item in record.items:
                self._emit(ToolResultEvent(tool_id=item.tool_id, is_error=item.is_error))
        elif isinstance(record, ResultRecord):
            self._on_result(record)
        elif isinstance(record, UnparsedLine):
            self._on_unparsed(record)
        elif isinstance(record, SystemRecord):
            logger.debug("%s system event: %s", self.session.tool, record.subtype)
        elif isinstance(record, UnknownRecord):
            logger.debug("%s ignoring record type %r", self.session.tool, record.type)
        else:
            logger.debug("%s ignoring unexpected record %r", self.session.tool, record)

    def _on_assistant(self, record: AssistantRecord) -> None:
        for item in record.items:
            if isinstance(item, TextItem):
                if not item.value:
                    continue
                self.session.append_text(item.value)
                self._emit(ContentEvent(text=item.value))
                self.session.content_events += 1
            elif isinstance(item, ToolUseItem):
                self._emit(ToolUseEvent(tool=item.name, tool_id=item.id))

    def _on_result(self, record: ResultRecord) -> None:
        session = self.session
        session.result = ResultStats(
            duration_ms=record.duration_ms,
            total_cost_usd=record.total_cost_usd,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
        )
        if not session.full_response and record.final_text:
            session.final_text = record.final_text
        if record.is_error:
            session.tool_reported_error = True
            detail = record.error_message or record.final_text or record.subtype or "error"
            session.mark_error(f"{session.tool} reported an error: {detail}")

    def _on_unparsed(self, record: UnparsedLine) -> None:
        text = record.raw_text.strip()
        if not text:
            return
        logger.info("%s: %s", self.session.tool, text)
        if self._failure_policy(text):
            self.session.heuristic_error = True
            self.session.mark_error(text)

    # ---- Completion ----

    def finish(self, exit_code: Optional[int]) -> None:
        """Emit the terminal events. Safe to call more than once."""
        if self.state is TranslatorState.COMPLETED:
            return
        self.state = TranslatorState.COMPLETED
        session = self.session

        if exit_code is not None and exit_code != 0:
            session.mark_error(describe_exit_code(session.tool, exit_code), replace=False)

        if not session.full_response and session.result is None:
            session.mark_error(GENERIC_ERROR_MESSAGE, replace=False)

        if session.error:
            self._emit(ErrorEvent(message=session.error_message or GENERIC_ERROR_MESSAGE))

        self._emit(
            DoneEvent(
                duration_ms=self.duration_ms(),
                total_cost=session.result.total_cost_usd if session.result else None,
            )
        )

    def duration_ms(self) -> int:
        result = self.session.result
        if result is not None and result.duration_ms is not None:
            return result.duration_ms
        return int((self._clock() - self.session.started_at) * 1000)

    def _emit(self, event: CanonicalEvent) -> None:
        self._emit_fn(event)
        self.session.events_emitted += 1
