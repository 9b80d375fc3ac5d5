from __future__ import annotations

"""backend/app/services/streaming/errors.py

Exceptions raised by the streaming translator.

Only setup failures (unknown tool, tool not installed, spawn failure) are
ever raised to the HTTP layer; they happen before any SSE bytes are sent.
Everything detected while streaming is folded into the session's error
state instead. SinkError is internal to the pipeline and never escapes it.
"""


class StreamBridgeError(Exception):
    """Base class for all translator errors."""


class UnknownToolError(StreamBridgeError):
    """The requested tool is not in the catalog."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"Unknown tool '{tool}'")
        self.tool = tool


class SpawnError(StreamBridgeError):
    """The child process could not be started."""


class ToolNotInstalledError(SpawnError):
    """The tool's command could not be found on PATH."""

    def __init__(self, tool: str, command: str) -> None:
        super().__init__(f"Tool '{tool}' is not installed (command '{command}' not found)")
        self.tool = tool
        self.command = command


class SinkError(StreamBridgeError):
    """Writing to the client sink failed; the connection is gone."""
