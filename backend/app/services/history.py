from __future__ import annotations

"""backend/app/services/history.py

Persistence of finished streaming sessions.

Each pipeline produces one StreamSummary; `record_stream_run` stores it
as a StreamRun row. Recording happens on the pipeline thread after the
stream has ended, so it opens its own session and never raises: a
failure to persist history must not affect a stream already delivered.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.db.session import SessionLocal
from app.services.streaming.pipeline import StreamSummary

logger = logging.getLogger(__name__)


def record_stream_run(summary: StreamSummary) -> str | None:
    """Persist ``summary``; return the new run id, or None on failure."""
    db = SessionLocal()
    try:
        run = models.StreamRun(
            tool=summary.tool,
            model=summary.model,
            status=(
                models.StreamRunStatus.SUCCEEDED
                if summary.succeeded
                else models.StreamRunStatus.FAILED
            ),
            exit_code=summary.exit_code,
            error=summary.error_message,
            failure_reason=summary.failure_reason,
            client_disconnected=summary.client_disconnected,
            duration_ms=summary.duration_ms,
            total_cost_usd=summary.total_cost_usd,
            input_tokens=summary.input_tokens,
            output_tokens=summary.output_tokens,
            response_chars=len(summary.response),
            events_emitted=summary.events_emitted,
            started_at=summary.started_at,
            finished_at=summary.finished_at,
        )
        db.add(run)
        db.commit()
        return run.id
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Could not record %s stream run: %s", summary.tool, exc)
        return None
    finally:
        db.close()
