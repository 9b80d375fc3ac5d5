from __future__ import annotations

"""backend/app/config/settings.py

Application configuration using environment-driven settings.

This module centralizes:
- database connection URL (run history)
- CORS configuration
- CLI binary overrides for the supported assistant tools
- Location of transient prompt files and persisted credentials
- Stream lifecycle knobs (termination grace period, run recording)
"""
from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  app_name: str = "cli-stream-bridge"
  environment: str = "development"
  log_level: str = "INFO"

  # Database (run history)
  database_url: str = "sqlite:///./stream_runs.db"
  record_runs: bool = True

  # Telemetry
  statsig_server_secret: str | None = None

  # CORS
  allowed_origins: List[AnyHttpUrl] = [
      "http://localhost:3000",
      "http://127.0.0.1:3000",
      "http://localhost:5173",
      "http://127.0.0.1:5173",
  ]

  # CLI tooling
  claude_binary: str = "claude"
  gemini_binary: str = "gemini"
  codex_binary: str = "codex"
  python_binary: str | None = None

  # Prompt files are written here right before spawn; system temp dir when unset
  prompt_tmp_dir: str | None = None

  # Persisted credential store (JSON object: tool name -> {ENV_VAR: value})
  credentials_store_path: str = "~/.config/cli-stream-bridge/credentials.json"

  # Seconds to wait after SIGTERM before SIGKILL on abandoned streams
  terminate_grace_seconds: float = 5.0

  model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Return a cached Settings instance."""
  return Settings()
