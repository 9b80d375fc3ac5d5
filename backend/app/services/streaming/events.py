from __future__ import annotations

"""backend/app/services/streaming/events.py

Canonical, tool-agnostic events sent to the client as SSE payloads.

Each model serializes (by alias, compact JSON) to exactly the wire shape:

    {"type":"content","text":"..."}
    {"type":"tool_use","tool":"...","toolId":"..."}
    {"type":"tool_result","toolId":"...","isError":false}
    {"type":"error","message":"..."}
    {"type":"done","durationMs":1234,"totalCost":0.002}
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ContentEvent(_Event):
    type: Literal["content"] = "content"
    text: str


class ToolUseEvent(_Event):
    type: Literal["tool_use"] = "tool_use"
    tool: str
    tool_id: str = Field(alias="toolId")


class ToolResultEvent(_Event):
    type: Literal["tool_result"] = "tool_result"
    tool_id: str = Field(alias="toolId")
    is_error: bool = Field(default=False, alias="isError")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str


class DoneEvent(_Event):
    type: Literal["done"] = "done"
    duration_ms: int = Field(alias="durationMs")
    total_cost: Optional[float] = Field(default=None, alias="totalCost")


CanonicalEvent = Union[ContentEvent, ToolUseEvent, ToolResultEvent, ErrorEvent, DoneEvent]


def to_wire(event: CanonicalEvent) -> str:
    """Compact JSON for one event, keys in declaration order."""
    return event.model_dump_json(by_alias=True)
