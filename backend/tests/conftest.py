"""Shared test fixtures for the stream bridge tests."""

import os
import sys
import tempfile
from pathlib import Path

# Settings are cached on first use; point them at throwaway locations first.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="stream-bridge-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR / 'runs.db'}")
os.environ.setdefault("CREDENTIALS_STORE_PATH", str(_TEST_DIR / "credentials.json"))
os.environ.setdefault("STATSIG_SERVER_SECRET", "")
os.environ.setdefault("TERMINATE_GRACE_SECONDS", "2")

import pytest  # noqa: E402

from app.services.streaming.emitter import BufferSink  # noqa: E402
from app.services.tools.base import PromptDelivery, ToolSpec  # noqa: E402
from app.services.tools.catalog import ToolCatalog  # noqa: E402
from app.services.tools.credentials import CredentialResolver  # noqa: E402


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA - Claude Code stream-json lines
# ─────────────────────────────────────────────────────────────────────

SYSTEM_LINE = '{"type":"system","subtype":"init","session_id":"abc"}'
ASSISTANT_HI_LINE = '{"type":"assistant","message":{"content":[{"type":"text","text":"Hi"}]}}'
RESULT_LINE = '{"type":"result","duration_ms":500,"total_cost_usd":0.001}'
TOOL_USE_LINE = (
    '{"type":"assistant","message":{"content":['
    '{"type":"tool_use","id":"toolu_1","name":"Bash","input":{"command":"ls"}}]}}'
)
TOOL_RESULT_LINE = (
    '{"type":"user","message":{"content":['
    '{"type":"tool_result","tool_use_id":"toolu_1","is_error":false,"content":"a.txt"}]}}'
)


# Child process scripts (run with sys.executable -c)

ECHO_TOOL_SCRIPT = """
import json, sys
prompt = sys.stdin.read()
print(json.dumps({"type": "system", "subtype": "init"}), flush=True)
print(json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "echo: " + prompt}]}}), flush=True)
print(json.dumps({"type": "result", "duration_ms": 42, "total_cost_usd": 0.25, "usage": {"input_tokens": 3, "output_tokens": 4}}), flush=True)
"""

FAILING_TOOL_SCRIPT = """
import sys
print("fatal error: model unavailable", file=sys.stderr, flush=True)
sys.exit(2)
"""

SLOW_TOOL_SCRIPT = """
import json, sys, time
print(json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "first"}]}}), flush=True)
print(json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "second"}]}}), flush=True)
time.sleep(60)
"""


class RecordedProcess:
    """Stands in for SpawnedProcess, replaying recorded output."""

    def __init__(self, lines, exit_code=0, fail_after=None):
        self._lines = list(lines)
        self._final_exit_code = exit_code
        self._fail_after = fail_after
        self.exit_code = None
        self.terminated = False
        self.closed = False

    def lines(self):
        for index, line in enumerate(self._lines):
            if self._fail_after is not None and index >= self._fail_after:
                raise RuntimeError("stdout pipe broke")
            yield line
        self.exit_code = self._final_exit_code

    def terminate(self):
        self.terminated = True
        if self.exit_code is None:
            self.exit_code = -15

    def close(self):
        self.closed = True


class FailingSink(BufferSink):
    """Accepts ``accept`` frames, then behaves like a dropped connection."""

    def __init__(self, accept=1, error=None):
        super().__init__()
        self.accept = accept
        self.error = error or BrokenPipeError("connection reset by peer")

    def write(self, data):
        if len(self.frames) >= self.accept:
            raise self.error
        super().write(data)


def python_tool(name, script, structured=True):
    """ToolSpec that runs ``script`` with the current interpreter."""
    return ToolSpec(
        name=name,
        command=sys.executable,
        prompt_delivery=PromptDelivery.STDIN_FILE,
        required_args=("-c", script),
        structured_output=structured,
    )


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def sink():
    return BufferSink()


@pytest.fixture
def test_catalog():
    """Catalog of fake tools backed by small Python scripts."""
    return ToolCatalog(
        [
            python_tool("echo", ECHO_TOOL_SCRIPT),
            python_tool("failing", FAILING_TOOL_SCRIPT),
            python_tool("slow", SLOW_TOOL_SCRIPT),
            ToolSpec(name="ghost", command="definitely-not-installed-cli-xyz"),
        ]
    )


@pytest.fixture
def no_credentials():
    return CredentialResolver([])
