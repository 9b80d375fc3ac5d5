from __future__ import annotations

"""backend/app/services/streaming/classifier.py

Line classification: raw output line -> ParsedRecord.

Decoding never raises. A line that is not a JSON object becomes an
UnparsedLine; a JSON object with a missing or unrecognized `type`
becomes an UnknownRecord and is ignored downstream.

Two vendor dialects share the `type` discriminator:

- Claude Code `stream-json`: system / assistant / user / result, with
  `message.content` arrays of text / tool_use / tool_result items.
- Gemini CLI `stream-json`: init / message / tool_use / tool_result /
  result, with flat fields and a `stats` object on the result.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from app.services.streaming.records import (
    AssistantItem,
    AssistantRecord,
    ParsedRecord,
    ResultRecord,
    SystemRecord,
    TextItem,
    ToolResultItem,
    ToolUseItem,
    UnknownRecord,
    UnparsedLine,
    UserRecord,
)

logger = logging.getLogger(__name__)

LineClassifier = Callable[[str], ParsedRecord]


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _content_items(data: Dict[str, Any]) -> List[Any]:
    message = data.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if isinstance(content, list):
        return content
    return []


def _decode_system(data: Dict[str, Any]) -> ParsedRecord:
    return SystemRecord(subtype=_str(data.get("subtype")) or _str(data.get("type")), raw=data)


def _decode_assistant(data: Dict[str, Any]) -> ParsedRecord:
    items: List[AssistantItem] = []
    for item in _content_items(data):
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "text":
            items.append(TextItem(value=_str(item.get("text")) or ""))
        elif kind == "tool_use":
            items.append(
                ToolUseItem(
                    name=_str(item.get("name")) or "unknown",
                    id=_str(item.get("id")) or "",
                )
            )
        # thinking and other item kinds are not forwarded
    return AssistantRecord(items=items)


def _decode_user(data: Dict[str, Any]) -> ParsedRecord:
    items: List[ToolResultItem] = []
    for item in _content_items(data):
        if isinstance(item, dict) and item.get("type") == "tool_result":
            items.append(
                ToolResultItem(
                    tool_id=_str(item.get("tool_use_id")) or "",
                    is_error=item.get("is_error") is True,
                )
            )
    return UserRecord(items=items)


def _decode_result(data: Dict[str, Any]) -> ParsedRecord:
    usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
    stats = data.get("stats") if isinstance(data.get("stats"), dict) else {}

    duration = _int(data.get("duration_ms"))
    if duration is None:
        duration = _int(stats.get("duration_ms"))

    input_tokens = _int(usage.get("input_tokens"))
    if input_tokens is None:
        input_tokens = _int(stats.get("input_tokens"))
    output_tokens = _int(usage.get("output_tokens"))
    if output_tokens is None:
        output_tokens = _int(stats.get("output_tokens"))

    error = data.get("error")
    error_message = _str(error.get("message")) if isinstance(error, dict) else _str(error)

    return ResultRecord(
        duration_ms=duration,
        total_cost_usd=_float(data.get("total_cost_usd")),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        final_text=_str(data.get("result")),
        is_error=data.get("is_error") is True or data.get("status") == "error",
        subtype=_str(data.get("subtype")),
        error_message=error_message,
    )


def _decode_gemini_message(data: Dict[str, Any]) -> ParsedRecord:
    # User echoes of the prompt carry role "user" and are ignored
    if data.get("role") != "assistant":
        return UnknownRecord(type="message")
    return AssistantRecord(items=[TextItem(value=_str(data.get("content")) or "")])


def _decode_gemini_tool_use(data: Dict[str, Any]) -> ParsedRecord:
    return AssistantRecord(
        items=[
            ToolUseItem(
                name=_str(data.get("tool_name")) or "unknown",
                id=_str(data.get("tool_id")) or "",
            )
        ]
    )


def _decode_gemini_tool_result(data: Dict[str, Any]) -> ParsedRecord:
    return UserRecord(
        items=[
            ToolResultItem(
                tool_id=_str(data.get("tool_id")) or "",
                is_error=data.get("status") == "error",
            )
        ]
    )


_DECODERS: Dict[str, Callable[[Dict[str, Any]], ParsedRecord]] = {
    "system": _decode_system,
    "assistant": _decode_assistant,
    "user": _decode_user,
    "result": _decode_result,
    "init": _decode_system,
    "message": _decode_gemini_message,
    "tool_use": _decode_gemini_tool_use,
    "tool_result": _decode_gemini_tool_result,
}


def decode_record(data: Dict[str, Any]) -> ParsedRecord:
    """Map a decoded JSON object onto its tagged record."""
    kind = data.get("type")
    decoder = _DECODERS.get(kind) if isinstance(kind, str) else None
    if decoder is None:
        return UnknownRecord(type=kind if isinstance(kind, str) else None)
    return decoder(data)


def classify_line(line: str) -> ParsedRecord:
    """Classify one line of structured (JSON-lines) tool output."""
    text = line.strip()
    if not text:
        return UnparsedLine(raw_text=line)
    try:
        data = json.loads(text)
    except ValueError:
        return UnparsedLine(raw_text=line)
    if not isinstance(data, dict):
        return UnparsedLine(raw_text=line)
    try:
        return decode_record(data)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not decode %r record: %s", data.get("type"), exc)
        return UnparsedLine(raw_text=line)


def classify_plain_line(line: str) -> ParsedRecord:
    """Classify one line from a tool without a structured protocol.

    Every line is response text; line breaks are preserved.
    """
    return AssistantRecord(items=[TextItem(value=line + "\n")])
