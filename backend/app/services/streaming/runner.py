from __future__ import annotations

"""backend/app/services/streaming/runner.py

Process runner for assistant CLIs.

This module provides:

- ProcessRunner: spawns a resolved command with combined stdout/stderr
- SpawnedProcess: owns the child, its prompt file, and exposes output as a
  lazy, non-restartable sequence of lines followed by an exit code

The prompt is written to a transient file right before spawn (and fed to
the child as stdin) so it never goes through command-line escaping. The
file belongs to the SpawnedProcess and is removed by `close()`, which the
pipeline calls on every exit path. If spawn itself fails the file is
removed before the error propagates.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from app.services.streaming.errors import SpawnError

logger = logging.getLogger(__name__)


def _remove(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove prompt file %s: %s", path, exc)


class SpawnedProcess:
    """A running child process plus the resources it owns."""

    def __init__(
        self,
        popen: subprocess.Popen,
        args: List[str],
        env_overlay: Dict[str, str],
        prompt_path: Optional[Path] = None,
        terminate_grace_seconds: float = 5.0,
    ) -> None:
        self._popen = popen
        self.args = list(args)
        self.env_overlay = dict(env_overlay)
        self.prompt_path = prompt_path
        self.terminate_grace_seconds = terminate_grace_seconds
        self._consumed = False
        self._closed = False

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def exit_code(self) -> Optional[int]:
        return self._popen.returncode

    def lines(self) -> Iterator[str]:
        """Yield output lines (without line endings) as they arrive.

        The exit code is available once the iterator is exhausted.
        """
        if self._consumed:
            raise RuntimeError("process output can only be consumed once")
        self._consumed = True
        stream = self._popen.stdout
        if stream is not None:
            for raw in stream:
                yield raw.rstrip("\r\n")
        self._popen.wait()

    def terminate(self) -> None:
        """SIGTERM, then SIGKILL after the grace period."""
        if self._popen.poll() is not None:
            return
        logger.info("Terminating pid %s", self._popen.pid)
        self._popen.terminate()
        try:
            self._popen.wait(timeout=self.terminate_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("pid %s ignored SIGTERM; killing", self._popen.pid)
            self._popen.kill()
            self._popen.wait()

    def close(self) -> None:
        """Release the child and the prompt file. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            self.terminate()
            if self._popen.stdout is not None:
                self._popen.stdout.close()
        finally:
            _remove(self.prompt_path)

    def __enter__(self) -> "SpawnedProcess":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ProcessRunner:
    """Spawn CLI processes with injected environment and a prompt file."""

    def __init__(
        self,
        tmp_dir: str | Path | None = None,
        terminate_grace_seconds: float = 5.0,
    ) -> None:
        self.tmp_dir = Path(tmp_dir) if tmp_dir else None
        self.terminate_grace_seconds = terminate_grace_seconds

    def _write_prompt(self, prompt: str) -> Path:
        if self.tmp_dir is not None:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(
            prefix="prompt-",
            suffix=".txt",
            dir=str(self.tmp_dir) if self.tmp_dir else None,
        )
        path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(prompt)
        except OSError:
            _remove(path)
            raise
        return path

    def spawn(
        self,
        command: List[str],
        args: List[str],
        env: Dict[str, str] | None = None,
        *,
        stdin_prompt: str | None = None,
        workdir: str | Path | None = None,
    ) -> SpawnedProcess:
        """Start ``command + args``.

        Raises:
            SpawnError: if the command is missing or cannot be started.
        """
        if not command:
            raise SpawnError("No command to run")

        cmd = list(command) + list(args)
        environment = os.environ.copy()
        environment.update(env or {})

        try:
            prompt_path = self._write_prompt(stdin_prompt) if stdin_prompt is not None else None
        except OSError as exc:
            raise SpawnError(f"Could not write prompt file: {exc}") from exc

        stdin_handle = None
        try:
            if prompt_path is not None:
                stdin_handle = prompt_path.open("rb")
            popen = subprocess.Popen(
                cmd,
                stdin=stdin_handle if stdin_handle is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                cwd=str(workdir) if workdir is not None else None,
                env=environment,
            )
        except FileNotFoundError as exc:
            _remove(prompt_path)
            raise SpawnError(f"Command not found: {command[0]}") from exc
        except OSError as exc:
            _remove(prompt_path)
            raise SpawnError(f"Could not start {command[0]}: {exc}") from exc
        finally:
            if stdin_handle is not None:
                stdin_handle.close()

        logger.info(
            "Spawned pid %s: %s (env overlay: %s)",
            popen.pid,
            command[0],
            sorted(env or {}),
        )
        return SpawnedProcess(
            popen,
            cmd,
            env or {},
            prompt_path=prompt_path,
            terminate_grace_seconds=self.terminate_grace_seconds,
        )
