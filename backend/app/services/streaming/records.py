from __future__ import annotations

"""backend/app/services/streaming/records.py

Tagged records decoded from a tool's JSON-lines output.

Every raw output line becomes exactly one ParsedRecord:

- SystemRecord      `{"type": "system", ...}`
- AssistantRecord   `{"type": "assistant", "message": {"content": [...]}}`
- UserRecord        `{"type": "user", "message": {"content": [...]}}`
- ResultRecord      `{"type": "result", "duration_ms": ..., ...}`
- UnknownRecord     valid JSON object with a missing/unrecognized `type`
- UnparsedLine      anything that is not a JSON object (diagnostics, noise)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class TextItem:
    value: str


@dataclass(frozen=True)
class ToolUseItem:
    name: str
    id: str


@dataclass(frozen=True)
class ToolResultItem:
    tool_id: str
    is_error: bool = False


AssistantItem = Union[TextItem, ToolUseItem]


@dataclass(frozen=True)
class SystemRecord:
    subtype: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class AssistantRecord:
    items: List[AssistantItem] = field(default_factory=list)


@dataclass(frozen=True)
class UserRecord:
    items: List[ToolResultItem] = field(default_factory=list)


@dataclass(frozen=True)
class ResultRecord:
    duration_ms: Optional[int] = None
    total_cost_usd: Optional[float] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    final_text: Optional[str] = None
    is_error: bool = False
    subtype: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class UnknownRecord:
    type: Optional[str] = None


@dataclass(frozen=True)
class UnparsedLine:
    raw_text: str


ParsedRecord = Union[
    SystemRecord,
    AssistantRecord,
    UserRecord,
    ResultRecord,
    UnknownRecord,
    UnparsedLine,
]
