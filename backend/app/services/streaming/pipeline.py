from __future__ import annotations

"""backend/app/services/streaming/pipeline.py

One request -> one child process -> one SSE session.

`StreamPipeline.open()` performs all setup that may fail loudly (catalog
lookup, command resolution, credential resolution, spawn). Anything it
raises happens before a single SSE byte is sent, so the HTTP layer can
still answer with a conventional error.

`StreamPipeline.run(sink)` then drives ProcessRunner -> classifier ->
EventTranslator -> SSEEmitter synchronously, line by line. It never
raises: every failure inside the loop is folded into the session and
surfaces as the terminal ErrorEvent, and the child process plus its
prompt file are released on every path.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from app.services.diagnostics import FailurePolicy, classify_failure_reason, keyword_failure_policy
from app.services.streaming.classifier import LineClassifier, classify_line, classify_plain_line
from app.services.streaming.emitter import Sink, SSEEmitter
from app.services.streaming.errors import SinkError
from app.services.streaming.runner import ProcessRunner
from app.services.streaming.translator import EventTranslator
from app.services.tools.base import InvocationRequest, PromptDelivery, ToolSpec
from app.services.tools.catalog import ToolCatalog, build_arguments, build_environment
from app.services.tools.credentials import CredentialResolver

logger = logging.getLogger(__name__)


class OutputSource(Protocol):
    """What the pipeline needs from a child process."""

    @property
    def exit_code(self) -> Optional[int]:
        ...

    def lines(self):
        ...

    def terminate(self) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass
class StreamSummary:
    """Outcome of one finished session, for run history and telemetry."""

    tool: str
    model: Optional[str]
    exit_code: Optional[int]
    response: str
    error_message: Optional[str]
    failure_reason: str
    duration_ms: int
    total_cost_usd: Optional[float]
    input_tokens: Optional[int]
    output_tokens: Optional[int]
    events_emitted: int
    client_disconnected: bool
    started_at: datetime
    finished_at: datetime

    @property
    def succeeded(self) -> bool:
        return self.failure_reason == "ok"


class StreamPipeline:
    def __init__(
        self,
        spec: ToolSpec,
        request: InvocationRequest,
        process: OutputSource,
        *,
        failure_policy: FailurePolicy = keyword_failure_policy,
    ) -> None:
        self.spec = spec
        self.request = request
        self.process = process
        self.failure_policy = failure_policy
        self.classifier: LineClassifier = (
            classify_line if spec.structured_output else classify_plain_line
        )
        self._cancelled = False

    @classmethod
    def open(
        cls,
        request: InvocationRequest,
        *,
        catalog: ToolCatalog,
        credentials: CredentialResolver,
        runner: ProcessRunner,
        failure_policy: FailurePolicy = keyword_failure_policy,
    ) -> "StreamPipeline":
        """Resolve the tool and spawn it.

        Raises:
            UnknownToolError: tool not in the catalog.
            ToolNotInstalledError: command not on PATH.
            SpawnError: the process could not start.
        """
        spec = catalog.get(request.tool)
        command = catalog.resolve_command(spec)
        args = build_arguments(spec, request)
        env = credentials.resolve(spec, request.credentials_path)
        env.update(build_environment(spec, request))

        stdin_prompt = request.prompt if spec.prompt_delivery is PromptDelivery.STDIN_FILE else None
        process = runner.spawn(command, args, env, stdin_prompt=stdin_prompt)
        return cls(spec, request, process, failure_policy=failure_policy)

    def cancel(self) -> None:
        """Stop the child from another thread.

        Used when the consumer has gone away while the child is silent, so
        `run()` would otherwise stay blocked on its output. Termination runs
        on its own thread because it may wait out the grace period.
        """
        if self._cancelled:
            return
        self._cancelled = True
        logger.info("Cancelling %s stream", self.spec.name)
        threading.Thread(
            target=self.process.terminate,
            name=f"cancel-{self.spec.name}",
            daemon=True,
        ).start()

    def run(self, sink: Sink) -> StreamSummary:
        emitter = SSEEmitter(sink)
        translator = EventTranslator(
            self.spec.name,
            emitter.emit,
            failure_policy=self.failure_policy,
        )
        session = translator.session
        disconnected = False
        crashed = False

        try:
            try:
                for line in self.process.lines():
                    translator.feed(self.classifier(line))
            except SinkError as exc:
                disconnected = True
                logger.warning("%s stream abandoned by client: %s", self.spec.name, exc)
                self.process.terminate()
            except Exception as exc:  # noqa: BLE001
                crashed = True
                logger.exception("%s stream failed", self.spec.name)
                session.mark_error(f"{self.spec.name} stream failed: {exc}")
                self.process.terminate()

            if self._cancelled:
                disconnected = True

            try:
                translator.finish(self.process.exit_code)
            except SinkError:
                disconnected = True
            except Exception:  # noqa: BLE001
                crashed = True
                logger.exception("%s stream could not be completed", self.spec.name)
        finally:
            self.process.close()

        summary = StreamSummary(
            tool=self.spec.name,
            model=self.request.model,
            exit_code=self.process.exit_code,
            response=session.response,
            error_message=session.error_message if session.error else None,
            failure_reason=classify_failure_reason(
                error_message=session.error_message if session.error else None,
                heuristic_error=session.heuristic_error,
                tool_reported_error=session.tool_reported_error,
                exit_code=self.process.exit_code,
                empty_response=not session.response and session.result is None,
                client_disconnected=disconnected,
                pipeline_exception=crashed,
            ),
            duration_ms=translator.duration_ms(),
            total_cost_usd=session.result.total_cost_usd if session.result else None,
            input_tokens=session.result.input_tokens if session.result else None,
            output_tokens=session.result.output_tokens if session.result else None,
            events_emitted=session.events_emitted,
            client_disconnected=disconnected,
            started_at=session.started_at_utc,
            finished_at=datetime.utcnow(),
        )
        logger.info(
            "%s stream finished: reason=%s exit=%s events=%s duration_ms=%s",
            summary.tool,
            summary.failure_reason,
            summary.exit_code,
            summary.events_emitted,
            summary.duration_ms,
        )
        return summary
