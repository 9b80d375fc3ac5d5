"""Tests for StreamPipeline: setup errors, streaming, and cleanup."""

import threading
import time

import pytest

from app.services.streaming.emitter import BufferSink, QueueSink
from app.services.streaming.errors import SpawnError, ToolNotInstalledError, UnknownToolError
from app.services.streaming.pipeline import StreamPipeline
from app.services.streaming.runner import ProcessRunner
from app.services.tools.base import InvocationRequest, ToolSpec
from conftest import (
    ASSISTANT_HI_LINE,
    RESULT_LINE,
    TOOL_USE_LINE,
    FailingSink,
    RecordedProcess,
)

CLAUDE = ToolSpec(name="claude", command="claude", structured_output=True)
CODEX = ToolSpec(name="codex", command="codex")


def _pipeline(process, spec=CLAUDE):
    return StreamPipeline(spec, InvocationRequest(tool=spec.name, prompt="hi"), process)


class TestRecordedStreams:
    def test_end_to_end(self, sink):
        process = RecordedProcess([ASSISTANT_HI_LINE, RESULT_LINE], exit_code=0)
        summary = _pipeline(process).run(sink)

        assert sink.payloads() == [
            {"type": "content", "text": "Hi"},
            {"type": "done", "durationMs": 500, "totalCost": 0.001},
        ]
        assert process.closed is True
        assert summary.succeeded is True
        assert summary.response == "Hi"
        assert summary.events_emitted == 2
        assert summary.duration_ms == 500
        assert summary.total_cost_usd == 0.001

    def test_non_zero_exit(self, sink):
        summary = _pipeline(RecordedProcess([], exit_code=1)).run(sink)
        kinds = [p["type"] for p in sink.payloads()]
        assert kinds == ["error", "done"]
        assert summary.failure_reason == "non-zero-exit"
        assert summary.error_message == "claude exited with code 1"

    def test_heuristic_error(self, sink):
        summary = _pipeline(
            RecordedProcess(["unexpected token at line 4", ASSISTANT_HI_LINE, RESULT_LINE])
        ).run(sink)
        payloads = sink.payloads()
        assert payloads[-2] == {"type": "error", "message": "unexpected token at line 4"}
        assert payloads[-1]["type"] == "done"
        assert summary.failure_reason == "heuristic-error"

    def test_plain_text_tool(self, sink):
        summary = _pipeline(RecordedProcess(["line one", "line two"]), spec=CODEX).run(sink)
        assert [p for p in sink.payloads() if p["type"] == "content"] == [
            {"type": "content", "text": "line one\n"},
            {"type": "content", "text": "line two\n"},
        ]
        assert sink.payloads()[-1]["type"] == "done"
        assert summary.response == "line one\nline two\n"
        assert summary.succeeded is True

    def test_crash_mid_stream_still_terminates_session(self, sink):
        process = RecordedProcess([ASSISTANT_HI_LINE, RESULT_LINE], fail_after=1)
        summary = _pipeline(process).run(sink)

        payloads = sink.payloads()
        assert payloads[0] == {"type": "content", "text": "Hi"}
        assert payloads[1]["type"] == "error"
        assert "stdout pipe broke" in payloads[1]["message"]
        assert payloads[2]["type"] == "done"
        assert len(payloads) == 3
        assert process.terminated is True
        assert process.closed is True
        assert summary.failure_reason == "pipeline-exception"

    def test_sink_failure_terminates_process(self):
        process = RecordedProcess([ASSISTANT_HI_LINE, TOOL_USE_LINE, RESULT_LINE])
        sink = FailingSink(accept=1)
        summary = _pipeline(process).run(sink)

        assert len(sink.frames) == 1
        assert process.terminated is True
        assert process.closed is True
        assert summary.client_disconnected is True
        assert summary.failure_reason == "client-disconnected"

    def test_runtime_error_from_sink_counts_as_disconnect(self):
        process = RecordedProcess([ASSISTANT_HI_LINE, TOOL_USE_LINE, RESULT_LINE])
        sink = FailingSink(accept=0, error=RuntimeError("Event loop is closed"))
        summary = _pipeline(process).run(sink)

        assert sink.frames == []
        assert process.terminated is True
        assert process.closed is True
        assert summary.failure_reason == "client-disconnected"

    def test_replay_is_identical(self):
        lines = [TOOL_USE_LINE, ASSISTANT_HI_LINE, "error: flaky", RESULT_LINE]
        first, second = BufferSink(), BufferSink()
        _pipeline(RecordedProcess(lines, exit_code=0)).run(first)
        _pipeline(RecordedProcess(lines, exit_code=0)).run(second)
        assert first.frames == second.frames


class TestOpen:
    def _open(self, tool, test_catalog, no_credentials, tmp_path, **kwargs):
        return StreamPipeline.open(
            InvocationRequest(tool=tool, prompt="ping", **kwargs),
            catalog=test_catalog,
            credentials=no_credentials,
            runner=ProcessRunner(tmp_dir=tmp_path, terminate_grace_seconds=2),
        )

    def test_unknown_tool(self, test_catalog, no_credentials, tmp_path):
        with pytest.raises(UnknownToolError):
            self._open("nope", test_catalog, no_credentials, tmp_path)

    def test_not_installed(self, test_catalog, no_credentials, tmp_path):
        with pytest.raises(ToolNotInstalledError):
            self._open("ghost", test_catalog, no_credentials, tmp_path)
        assert issubclass(ToolNotInstalledError, SpawnError)

    def test_real_process(self, test_catalog, no_credentials, tmp_path, sink):
        pipeline = self._open("echo", test_catalog, no_credentials, tmp_path)
        summary = pipeline.run(sink)

        assert sink.payloads() == [
            {"type": "content", "text": "echo: ping"},
            {"type": "done", "durationMs": 42, "totalCost": 0.25},
        ]
        assert summary.exit_code == 0
        assert summary.input_tokens == 3
        assert summary.output_tokens == 4
        assert list(tmp_path.iterdir()) == []

    def test_real_failing_process(self, test_catalog, no_credentials, tmp_path, sink):
        summary = self._open("failing", test_catalog, no_credentials, tmp_path).run(sink)
        assert sink.payloads()[0] == {"type": "error", "message": "fatal error: model unavailable"}
        assert sink.payloads()[1]["type"] == "done"
        assert summary.exit_code == 2
        assert summary.failure_reason == "non-zero-exit"

    def test_disconnect_kills_real_process(self, test_catalog, no_credentials, tmp_path):
        pipeline = self._open("slow", test_catalog, no_credentials, tmp_path)
        started = time.monotonic()
        summary = pipeline.run(FailingSink(accept=1))

        assert time.monotonic() - started < 30
        assert summary.client_disconnected is True
        assert summary.exit_code is not None and summary.exit_code != 0
        assert list(tmp_path.iterdir()) == []

    def test_cancel_stops_silent_process(self, test_catalog, no_credentials, tmp_path):
        pipeline = self._open("slow", test_catalog, no_credentials, tmp_path)
        sink = QueueSink()
        summaries = []
        worker = threading.Thread(target=lambda: summaries.append(pipeline.run(sink)))
        worker.start()

        # The child prints two lines and then goes quiet
        assert "first" in sink.get(timeout=10)
        assert "second" in sink.get(timeout=10)
        sink.abandon()
        pipeline.cancel()
        worker.join(timeout=20)

        assert not worker.is_alive()
        (summary,) = summaries
        assert summary.client_disconnected is True
        assert summary.failure_reason == "client-disconnected"
        assert summary.exit_code is not None and summary.exit_code != 0
        assert list(tmp_path.iterdir()) == []
