from __future__ import annotations

"""backend/app/services/tools/base.py

Shared types describing assistant CLI tools and how to invoke them.

This module provides:

- ToolKind: standalone executable vs. wrapped (Python) library
- PromptDelivery: how the prompt reaches the child process
- ToolSpec: static catalog entry for a single tool
- InvocationRequest: immutable description of one streaming request

The catalog in `app.services.tools.catalog` builds on these types; the
streaming pipeline only ever sees a resolved command plus arguments.
"""

import enum
from dataclasses import dataclass, field
from typing import Tuple


class ToolKind(str, enum.Enum):
    EXECUTABLE = "executable"
    LIBRARY = "library"


class PromptDelivery(str, enum.Enum):
    # Prompt is written to a transient file which becomes the child's stdin
    STDIN_FILE = "stdin-file"
    # Prompt is passed verbatim as the last command-line argument
    ARGUMENT = "argument"


@dataclass(frozen=True)
class ToolSpec:
    """Static description of an assistant CLI."""

    name: str
    command: str
    kind: ToolKind = ToolKind.EXECUTABLE
    aliases: Tuple[str, ...] = ()
    # For LIBRARY tools: module run with `python -m`
    module: str | None = None
    prompt_delivery: PromptDelivery = PromptDelivery.ARGUMENT
    required_args: Tuple[str, ...] = ()
    # Whether the tool emits the structured JSON-lines protocol
    structured_output: bool = False
    model_flag: str | None = None
    allowed_tools_flag: str | None = None
    system_prompt_flag: str | None = None
    max_tokens_env: str | None = None
    # Environment variable carrying the tool's credential, if any
    credential_env: str | None = None
    description: str = ""


@dataclass(frozen=True)
class InvocationRequest:
    """One request to stream a tool's response. Immutable once constructed."""

    tool: str
    prompt: str
    model: str | None = None
    allowed_tools: Tuple[str, ...] = field(default_factory=tuple)
    system_prompt: str | None = None
    credentials_path: str | None = None
    max_tokens: int | None = None
