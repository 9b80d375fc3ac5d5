# backend/app/api/stream.py
from __future__ import annotations

import logging
import queue
import threading
from typing import AsyncIterator

import anyio.to_thread
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from app import schemas
from app.config import get_settings
from app.services.history import record_stream_run
from app.services.statsig_client import log_backend_event, log_stream_completed
from app.services.streaming import (
    SSE_HEADERS,
    SSE_MEDIA_TYPE,
    ProcessRunner,
    QueueSink,
    SpawnError,
    ToolNotInstalledError,
    UnknownToolError,
)
from app.services.streaming.pipeline import StreamPipeline
from app.services.tools import get_credential_resolver, get_tool_catalog
from app.services.tools.catalog import ToolCatalog
from app.services.tools.credentials import CredentialResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stream", tags=["stream"])

# How often the response body re-checks for a vanished client
DRAIN_POLL_SECONDS = 0.5


def get_process_runner() -> ProcessRunner:
    settings = get_settings()
    return ProcessRunner(
        tmp_dir=settings.prompt_tmp_dir,
        terminate_grace_seconds=settings.terminate_grace_seconds,
    )


def _run_pipeline(pipeline: StreamPipeline, sink: QueueSink) -> None:
    """Worker thread body: stream into the sink, then record the outcome."""
    try:
        summary = pipeline.run(sink)
    finally:
        sink.close()

    if get_settings().record_runs:
        record_stream_run(summary)
    log_stream_completed(summary)


async def _drain(request: Request, pipeline: StreamPipeline, sink: QueueSink) -> AsyncIterator[str]:
    """Response body: relay frames until the stream ends or the client leaves."""
    try:
        while True:
            if await request.is_disconnected():
                logger.info("Client left the %s stream", pipeline.spec.name)
                return
            try:
                frame = await anyio.to_thread.run_sync(sink.get, DRAIN_POLL_SECONDS)
            except queue.Empty:
                continue
            if frame is None:
                return
            yield frame
    finally:
        if not sink.finished:
            sink.abandon()
            pipeline.cancel()


@router.post("")
def stream(
    payload: schemas.StreamRequest,
    http_request: Request,
    catalog: ToolCatalog = Depends(get_tool_catalog),
    credentials: CredentialResolver = Depends(get_credential_resolver),
    runner: ProcessRunner = Depends(get_process_runner),
) -> StreamingResponse:
    """
    Run an assistant CLI and stream its response as Server-Sent Events.

    Setup failures are ordinary HTTP errors:
    - 404 unknown tool
    - 424 tool not installed
    - 500 process could not start
    Once streaming has begun, failures arrive as a terminal `error` event,
    always followed by exactly one `done` event.
    """
    request = payload.to_invocation()
    try:
        pipeline = StreamPipeline.open(
            request,
            catalog=catalog,
            credentials=credentials,
            runner=runner,
        )
    except UnknownToolError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ToolNotInstalledError as exc:
        raise HTTPException(status_code=424, detail=str(exc)) from exc
    except SpawnError as exc:
        logger.error("Could not start %s: %s", request.tool, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    log_backend_event(
        "stream_started",
        metadata={"tool": pipeline.spec.name, "model": request.model or ""},
    )

    sink = QueueSink()
    worker = threading.Thread(
        target=_run_pipeline,
        args=(pipeline, sink),
        name=f"stream-{pipeline.spec.name}",
        daemon=True,
    )
    worker.start()

    return StreamingResponse(
        _drain(http_request, pipeline, sink),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
