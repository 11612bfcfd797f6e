"""Thin subprocess wrapper shared by every external-tool adapter.

Scanners, the container engine, the registry client and the git client
all shell out through ``run_command`` so that timeouts, missing binaries
and stdin-delivered secrets are handled the same way everywhere.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 1800  # container builds can be slow


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        """Short description for error messages (stderr tail, or stdout)."""
        text = (self.stderr or self.stdout).strip()
        return text[-500:] if text else f"exit code {self.returncode}"


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    stdin: str | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run *args* and capture its output.

    A missing binary or an expired timeout is reported as a non-zero
    ``CommandResult`` (returncode 127 / 124) rather than raised, so callers
    map every failure onto their own error type in one place.
    """
    argv = tuple(str(a) for a in args)
    logger.debug("exec: %s (cwd=%s)", " ".join(argv), cwd or ".")
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            input=stdin,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(argv, 127, "", f"command not found: {argv[0]}")
    except subprocess.TimeoutExpired:
        return CommandResult(argv, 124, "", f"{argv[0]} timed out after {timeout}s")
    return CommandResult(argv, completed.returncode, completed.stdout, completed.stderr)
