from __future__ import annotations

"""backend/app/services/tools/catalog.py

Static catalog of the assistant CLIs the bridge can stream.

The catalog answers three questions for the pipeline:
- which ToolSpec does a requested name/alias refer to
- which command (argv prefix) invokes it on this machine
- which arguments and environment overlay a given request needs

Argument assembly is deliberately narrow: only the documented per-tool
flag set is produced, nothing is inferred from the prompt.
"""

import shutil
import subprocess
import sys
from functools import lru_cache
from typing import Dict, Iterable, Iterator, List

from app.config import Settings
from app.services.streaming.errors import ToolNotInstalledError, UnknownToolError
from app.services.tools.base import InvocationRequest, PromptDelivery, ToolKind, ToolSpec

_MODULE_PROBE = "import importlib.util, sys; sys.exit(0 if importlib.util.find_spec(sys.argv[1]) else 1)"


@lru_cache(maxsize=32)
def module_available(interpreter: str, module: str) -> bool:
    """Whether `interpreter` can import `module` (checked in that interpreter)."""
    try:
        proc = subprocess.run(
            [interpreter, "-c", _MODULE_PROBE, module],
            capture_output=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return proc.returncode == 0


def default_tool_specs(settings: Settings) -> List[ToolSpec]:
    return [
        ToolSpec(
            name="claude",
            command=settings.claude_binary,
            aliases=("claude-code", "claude-cli"),
            prompt_delivery=PromptDelivery.STDIN_FILE,
            required_args=("--print", "--output-format", "stream-json", "--verbose"),
            structured_output=True,
            model_flag="--model",
            allowed_tools_flag="--allowedTools",
            system_prompt_flag="--append-system-prompt",
            max_tokens_env="CLAUDE_CODE_MAX_OUTPUT_TOKENS",
            credential_env="ANTHROPIC_API_KEY",
            description="Primary assistant (Claude Code CLI)",
        ),
        ToolSpec(
            name="gemini",
            command=settings.gemini_binary,
            aliases=("gemini-cli",),
            prompt_delivery=PromptDelivery.STDIN_FILE,
            required_args=("--output-format", "stream-json"),
            structured_output=True,
            model_flag="--model",
            credential_env="GEMINI_API_KEY",
            description="Secondary assistant (Gemini CLI)",
        ),
        ToolSpec(
            name="codex",
            command=settings.codex_binary,
            aliases=("codex-cli",),
            required_args=("exec",),
            credential_env="OPENAI_API_KEY",
            description="OpenAI Codex CLI, raw prompt argument",
        ),
        ToolSpec(
            name="aider",
            command=settings.python_binary or sys.executable,
            kind=ToolKind.LIBRARY,
            module="aider",
            required_args=("--yes-always", "--no-pretty", "--message"),
            credential_env="OPENAI_API_KEY",
            description="Aider, run as a Python module",
        ),
    ]


class ToolCatalog:
    """Read-only lookup of ToolSpecs by name or alias."""

    def __init__(self, specs: Iterable[ToolSpec]) -> None:
        self._specs: Dict[str, ToolSpec] = {}
        self._aliases: Dict[str, str] = {}
        for spec in specs:
            self._specs[spec.name] = spec
            self._aliases[spec.name.lower()] = spec.name
            for alias in spec.aliases:
                self._aliases[alias.lower()] = spec.name

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, tool: str) -> ToolSpec:
        """Return the spec for a tool name or alias.

        Raises:
            UnknownToolError: if nothing in the catalog matches.
        """
        name = self._aliases.get((tool or "").strip().lower())
        if name is None:
            raise UnknownToolError(tool)
        return self._specs[name]

    def resolve_command(self, spec: ToolSpec) -> List[str]:
        """Return the argv prefix that invokes ``spec``.

        Raises:
            ToolNotInstalledError: if the executable is not on PATH, or a
                library tool's module cannot be imported by the interpreter.
        """
        path = shutil.which(spec.command)
        if path is None:
            raise ToolNotInstalledError(spec.name, spec.command)
        if spec.kind is ToolKind.LIBRARY:
            module = spec.module or spec.name
            if not module_available(path, module):
                raise ToolNotInstalledError(spec.name, f"{spec.command} -m {module}")
            return [path, "-m", module]
        return [path]

    def is_installed(self, spec: ToolSpec) -> bool:
        try:
            self.resolve_command(spec)
        except ToolNotInstalledError:
            return False
        return True


def build_arguments(spec: ToolSpec, request: InvocationRequest) -> List[str]:
    """Assemble the documented flag set for one request."""
    args: List[str] = list(spec.required_args)

    if spec.model_flag and request.model:
        args.extend([spec.model_flag, request.model])
    if spec.allowed_tools_flag and request.allowed_tools:
        args.extend([spec.allowed_tools_flag, ",".join(request.allowed_tools)])
    if spec.system_prompt_flag and request.system_prompt:
        args.extend([spec.system_prompt_flag, request.system_prompt])

    if spec.prompt_delivery is PromptDelivery.ARGUMENT:
        args.append(request.prompt)
    return args


def build_environment(spec: ToolSpec, request: InvocationRequest) -> Dict[str, str]:
    """Environment overlay derived from the request itself (not credentials)."""
    env: Dict[str, str] = {}
    if spec.max_tokens_env and request.max_tokens:
        env[spec.max_tokens_env] = str(request.max_tokens)
    return env
