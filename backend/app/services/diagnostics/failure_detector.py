from __future__ import annotations

"""backend/app/services/diagnostics/failure_detector.py

Centralized failure detection for streaming tool sessions.

This module holds the three pieces of policy the pipeline consults but
does not own:

- keyword_failure_policy: advisory check applied to non-JSON diagnostic
  lines. Keyword lines are common in ordinary chatter, so this is a
  best-effort signal only; callers may swap in a stricter policy.
- describe_exit_code: human-readable message for a process exit code.
- classify_failure_reason: stable, machine-readable reason for a finished
  session, stored with run history and sent with telemetry.

Typical failure_reason values:
- ok
- heuristic-error
- tool-reported-error
- non-zero-exit
- empty-response
- client-disconnected
- pipeline-exception
- unknown-error
"""

from typing import Callable, Optional

FailurePolicy = Callable[[str], bool]

FAILURE_KEYWORDS: tuple[str, ...] = ("error", "failed", "exception")

# Opening delimiter of a structured (JSON object) line
STRUCTURED_PREFIX = "{"


def _text(value: Optional[str]) -> str:
    return (value or "").strip()


def _lower(value: Optional[str]) -> str:
    return _text(value).lower()


def _contains_any(haystack: str, needles: tuple[str, ...]) -> bool:
    return any(n in haystack for n in needles)


def keyword_failure_policy(line: str) -> bool:
    """Return True when an unstructured line looks like a failure report."""
    text = _text(line)
    if not text or text.startswith(STRUCTURED_PREFIX):
        return False
    return _contains_any(_lower(text), FAILURE_KEYWORDS)


def never_fail_policy(line: str) -> bool:
    """Disable heuristic detection entirely."""
    return False


def describe_exit_code(tool: str, code: int) -> str:
    """Describe a non-zero exit code the way a shell would."""
    if code == 126:
        return f"{tool} exited with code 126 (command not executable)"
    if code == 127:
        return f"{tool} exited with code 127 (command not found)"
    if code < 0:
        return f"{tool} was terminated by signal {-code}"
    return f"{tool} exited with code {code}"


def classify_failure_reason(
    *,
    error_message: Optional[str],
    heuristic_error: bool,
    tool_reported_error: bool,
    exit_code: Optional[int],
    empty_response: bool,
    client_disconnected: bool,
    pipeline_exception: bool,
) -> str:
    """Classify a finished session into a stable failure_reason code.

    Order matters: the most specific cause wins.
    """
    if client_disconnected:
        return "client-disconnected"
    if pipeline_exception:
        return "pipeline-exception"
    if tool_reported_error:
        return "tool-reported-error"
    if exit_code is not None and exit_code != 0:
        return "non-zero-exit"
    if heuristic_error:
        return "heuristic-error"
    if empty_response:
        return "empty-response"
    if _text(error_message):
        return "unknown-error"
    return "ok"
