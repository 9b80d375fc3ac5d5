from __future__ import annotations

"""
Diagnostics and failure classification utilities.

This package currently provides:
- failure_detector: the replaceable heuristic applied to diagnostic lines,
  exit-code descriptions, and stable machine-readable failure reasons for
  finished streaming sessions.

The goal is to keep failure policy centralized and out of the pipeline.
"""

from .failure_detector import (  # noqa: F401
    FailurePolicy,
    classify_failure_reason,
    describe_exit_code,
    keyword_failure_policy,
    never_fail_policy,
)
