# backend/app/schemas/__init__.py
from __future__ import annotations

"""
Pydantic schemas for request/response models.

This module is the API contract layer and depends on:
- app.models.StreamRunStatus
- app.services.tools.base.InvocationRequest

It is used by:
- API routes
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models import StreamRunStatus
from app.services.tools.base import InvocationRequest


# ---------- Stream Schemas ----------


class StreamRequest(BaseModel):
    """
    Payload for POST /api/stream.

    `tool` is a catalog name or alias ("claude", "claude-code", "gemini", ...).
    `allowed_tools` is the capability allow-list forwarded to tools that
    support one; it is ignored by the others.
    """

    tool: str
    prompt: str
    model: Optional[str] = None
    allowed_tools: List[str] = Field(default_factory=list)
    system_prompt: Optional[str] = None
    credentials_path: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def normalize(self) -> "StreamRequest":
        self.tool = self.tool.strip()
        if not self.tool:
            raise ValueError("Provide a tool name")
        if not self.prompt.strip():
            raise ValueError("Provide a non-empty prompt")
        self.allowed_tools = [t.strip() for t in self.allowed_tools if t and t.strip()]
        return self

    def to_invocation(self) -> InvocationRequest:
        return InvocationRequest(
            tool=self.tool,
            prompt=self.prompt,
            model=self.model or None,
            allowed_tools=tuple(self.allowed_tools),
            system_prompt=self.system_prompt or None,
            credentials_path=self.credentials_path or None,
            max_tokens=self.max_tokens,
        )


# ---------- Run History Schemas ----------


class StreamRunRead(BaseModel):
    id: str
    tool: str
    model: Optional[str]
    status: StreamRunStatus
    exit_code: Optional[int]
    error: Optional[str]
    failure_reason: Optional[str]
    client_disconnected: bool
    duration_ms: Optional[int]
    total_cost_usd: Optional[float]
    input_tokens: Optional[int]
    output_tokens: Optional[int]
    response_chars: int
    events_emitted: int
    started_at: datetime
    finished_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


# ---------- Tool Schemas ----------


class ToolInfo(BaseModel):
    name: str
    aliases: List[str]
    kind: str
    command: str
    installed: bool
    structured_output: bool
    description: str
