from __future__ import annotations

"""backend/app/services/tools/credentials.py

Credential resolution for assistant CLIs.

Resolution is an ordered list of provider functions, tried in sequence;
the first provider returning a non-empty mapping wins:

1. explicit file path supplied with the request
2. the bridge's own process environment
3. the persisted JSON credential store (settings.credentials_store_path)
4. a default per-tool key file: ~/.config/<tool>/api_key

The result is a mapping of environment variable name -> value that the
process runner overlays onto the child's environment. The streaming
pipeline never knows which tier produced a value.
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional

from app.services.tools.base import ToolSpec

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[ToolSpec, Optional[str]], Optional[Dict[str, str]]]


def _safe_read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return ""


def _parse_credential_text(spec: ToolSpec, text: str) -> Dict[str, str] | None:
    """Accept either a bare secret or a JSON object keyed by env var name."""
    text = text.strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed credential file for %s", spec.name)
            return None
        if not isinstance(data, dict):
            return None
        env = {str(k): str(v) for k, v in data.items() if isinstance(v, str) and v}
        return env or None
    if not spec.credential_env:
        return None
    return {spec.credential_env: text}


def from_explicit_path(spec: ToolSpec, explicit_path: str | None) -> Dict[str, str] | None:
    if not explicit_path:
        return None
    path = Path(explicit_path).expanduser()
    if not path.is_file():
        logger.warning("Credential path for %s does not exist: %s", spec.name, path)
        return None
    return _parse_credential_text(spec, _safe_read(path))


def from_environment(spec: ToolSpec, explicit_path: str | None) -> Dict[str, str] | None:
    if not spec.credential_env:
        return None
    value = os.environ.get(spec.credential_env)
    return {spec.credential_env: value} if value else None


def store_provider(store_path: str | Path) -> CredentialProvider:
    """Provider reading ``{"<tool>": {"ENV_VAR": "value"}}`` from a JSON file."""

    def from_store(spec: ToolSpec, explicit_path: str | None) -> Dict[str, str] | None:
        path = Path(store_path).expanduser()
        raw = _safe_read(path)
        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Credential store %s is not valid JSON: %s", path, exc)
            return None
        entry = data.get(spec.name) if isinstance(data, dict) else None
        if not isinstance(entry, dict):
            return None
        env = {str(k): str(v) for k, v in entry.items() if isinstance(v, str) and v}
        return env or None

    return from_store


def default_path_provider(config_home: str | Path | None = None) -> CredentialProvider:
    """Provider reading ``<config_home>/<tool>/api_key``."""

    def from_default_path(spec: ToolSpec, explicit_path: str | None) -> Dict[str, str] | None:
        base = Path(config_home).expanduser() if config_home else Path.home() / ".config"
        return _parse_credential_text(spec, _safe_read(base / spec.name / "api_key"))

    return from_default_path


class CredentialResolver:
    """Resolve the environment overlay carrying a tool's credentials."""

    def __init__(self, providers: List[CredentialProvider]) -> None:
        self.providers = list(providers)

    def resolve(self, spec: ToolSpec, credentials_path: str | None = None) -> Dict[str, str]:
        if not spec.credential_env and not credentials_path:
            return {}
        for provider in self.providers:
            env = provider(spec, credentials_path)
            if env:
                logger.debug(
                    "Resolved credentials for %s via %s: %s",
                    spec.name,
                    getattr(provider, "__name__", "provider"),
                    sorted(env),
                )
                return env
        logger.info("No credentials found for %s; relying on the tool's own login", spec.name)
        return {}


def default_credential_resolver(store_path: str | Path) -> CredentialResolver:
    return CredentialResolver(
        [
            from_explicit_path,
            from_environment,
            store_provider(store_path),
            default_path_provider(),
        ]
    )
