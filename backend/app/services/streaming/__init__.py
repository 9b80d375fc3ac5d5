# backend/app/services/streaming/__init__.py
from __future__ import annotations

"""
Streaming protocol translator.

This package provides, leaves first:
- runner.py: ProcessRunner / SpawnedProcess (child process + prompt file)
- classifier.py: raw line -> ParsedRecord (records.py)
- translator.py: ParsedRecord -> canonical events (events.py), session state
- emitter.py: canonical events -> SSE frames on a sink
- pipeline.py: StreamPipeline wiring the above together per request

pipeline.py is not re-exported here because it depends on
app.services.tools, which itself imports from this package.
"""

from .emitter import SSE_HEADERS, SSE_MEDIA_TYPE, BufferSink, QueueSink, SSEEmitter  # noqa: F401
from .errors import (  # noqa: F401
    SinkError,
    SpawnError,
    StreamBridgeError,
    ToolNotInstalledError,
    UnknownToolError,
)
from .runner import ProcessRunner, SpawnedProcess  # noqa: F401
