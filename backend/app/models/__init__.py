# backend/app/models/__init__.py
from __future__ import annotations

"""
Core ORM models for the stream bridge.

This module depends on:
- app.db.session.Base for the declarative base

It is used by:
- app.schemas (for type references)
- app.services.history (recording finished streams)
- API routes (listing run history)

Models:
- StreamRun: summary of one finished streaming session
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
)

from app.db.session import Base


class StreamRunStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class StreamRun(Base):
    __tablename__ = "stream_runs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    tool = Column(String, nullable=False, index=True)
    model = Column(String, nullable=True)
    status = Column(Enum(StreamRunStatus), default=StreamRunStatus.RUNNING, nullable=False)

    # Process outcome
    exit_code = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    failure_reason = Column(String, nullable=True)
    client_disconnected = Column(Boolean, nullable=False, default=False)

    # Usage stats (from the tool's result record when present)
    duration_ms = Column(Integer, nullable=True)
    total_cost_usd = Column(Float, nullable=True)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)

    response_chars = Column(Integer, nullable=False, default=0)
    events_emitted = Column(Integer, nullable=False, default=0)

    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
