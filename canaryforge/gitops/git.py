"""Git client for the source and configuration repositories.

``GitRepository`` wraps the ``git`` CLI.  It serves two roles:

- as a ``ChangeSource`` for the classifier (``changed_paths``), and
- as the ``ConfigRepository`` the GitOps committer writes to.

Remote credentials are handed to git through a short-lived
``GIT_ASKPASS`` helper that reads them from the child's environment, so
the token is never part of a command line or a remote URL.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from canaryforge.core.process import CommandResult, run_command
from canaryforge.errors import ClassificationError, CommitConflict, CommitFailure
from canaryforge.models.config import GitOpsTarget

logger = logging.getLogger(__name__)

GIT_COMMAND_TIMEOUT = 120
GIT_PUSH_TIMEOUT = 300

# stderr fragments git prints when the remote branch moved underneath us
_CONFLICT_MARKERS = ("[rejected]", "non-fast-forward", "fetch first", "stale info")

_ASKPASS_SCRIPT = """#!/bin/sh
case "$1" in
  Username*) printf '%s\\n' "$CANARYFORGE_GIT_USERNAME" ;;
  *) printf '%s\\n' "$CANARYFORGE_GIT_PASSWORD" ;;
esac
"""


@runtime_checkable
class ConfigRepository(Protocol):
    """Write-side operations the committer needs from the config repo."""

    def fetch(self) -> None: ...

    def reset_to_remote(self) -> None: ...

    def add(self, paths: Iterable[Path]) -> None: ...

    def has_staged_changes(self) -> bool: ...

    def commit(self, message: str) -> None: ...

    def push(self) -> None:
        """Push HEAD; raise ``CommitConflict`` if the remote moved."""
        ...


class GitRepository:
    """``git`` CLI wrapper rooted at *path*."""

    def __init__(
        self,
        path: Path | str,
        target: GitOpsTarget | None = None,
        command_timeout: float = GIT_COMMAND_TIMEOUT,
        push_timeout: float = GIT_PUSH_TIMEOUT,
    ) -> None:
        self.path = Path(path)
        self.target = target or GitOpsTarget()
        self.command_timeout = command_timeout
        self.push_timeout = push_timeout

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run_git(
        self,
        *args: str,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        return run_command(
            ["git", *args],
            cwd=self.path,
            timeout=timeout or self.command_timeout,
            env=env,
        )

    @contextmanager
    def _credentials(self) -> Iterator[dict[str, str] | None]:
        """Yield a child environment carrying the remote credentials."""
        token = self.target.token.get_secret_value()
        if not token:
            yield None
            return
        helper_dir = Path(tempfile.mkdtemp(prefix="canaryforge-askpass-"))
        try:
            helper = helper_dir / "askpass.sh"
            helper.write_text(_ASKPASS_SCRIPT, encoding="utf-8")
            helper.chmod(stat.S_IRWXU)
            env = dict(os.environ)
            env.update(
                GIT_ASKPASS=str(helper),
                GIT_TERMINAL_PROMPT="0",
                CANARYFORGE_GIT_USERNAME=self.target.username or "git",
                CANARYFORGE_GIT_PASSWORD=token,
            )
            yield env
        finally:
            shutil.rmtree(helper_dir, ignore_errors=True)

    def _relative(self, path: Path) -> str:
        path = Path(path)
        if path.is_absolute():
            try:
                return str(path.relative_to(self.path.resolve()))
            except ValueError:
                return str(path.relative_to(self.path))
        return str(path)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def head_sha(self) -> str:
        result = self._run_git("rev-parse", "HEAD")
        if not result.ok:
            raise CommitFailure(f"cannot resolve HEAD in {self.path}: {result.describe()}")
        return result.stdout.strip()

    def changed_paths(self, base: str, head: str) -> set[str]:
        """Paths changed between *base* and *head* (``git diff --name-only``)."""
        result = self._run_git("diff", "--name-only", base, head)
        if not result.ok:
            raise ClassificationError(
                f"git diff {base}..{head} failed: {result.describe()}"
            )
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _remote(self) -> str:
        """Where fetch and push go: the configured URL, else the named remote."""
        return self.target.remote_url or self.target.remote_name

    def fetch(self) -> None:
        # Explicit refspec keeps the tracking ref current even when fetching by URL.
        refspec = (
            f"+refs/heads/{self.target.branch}:"
            f"refs/remotes/{self.target.remote_name}/{self.target.branch}"
        )
        with self._credentials() as env:
            result = self._run_git(
                "fetch", self._remote(), refspec,
                timeout=self.push_timeout, env=env,
            )
        if not result.ok:
            raise CommitFailure(f"git fetch failed: {result.describe()}")

    def reset_to_remote(self) -> None:
        ref = f"{self.target.remote_name}/{self.target.branch}"
        result = self._run_git("reset", "--hard", ref)
        if not result.ok:
            raise CommitFailure(f"git reset --hard {ref} failed: {result.describe()}")

    def add(self, paths: Iterable[Path]) -> None:
        relative = [self._relative(p) for p in paths]
        if not relative:
            return
        result = self._run_git("add", "--", *relative)
        if not result.ok:
            raise CommitFailure(f"git add failed: {result.describe()}")

    def has_staged_changes(self) -> bool:
        result = self._run_git("diff", "--cached", "--quiet")
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise CommitFailure(f"git diff --cached failed: {result.describe()}")

    def commit(self, message: str) -> None:
        result = self._run_git(
            "-c", f"user.name={self.target.author_name}",
            "-c", f"user.email={self.target.author_email}",
            "commit", "-m", message,
        )
        if not result.ok:
            raise CommitFailure(f"git commit failed: {result.describe()}")

    def push(self) -> None:
        with self._credentials() as env:
            result = self._run_git(
                "push", self._remote(), f"HEAD:{self.target.branch}",
                timeout=self.push_timeout, env=env,
            )
        if result.ok:
            return
        detail = result.describe()
        if any(marker in detail for marker in _CONFLICT_MARKERS):
            raise CommitConflict(f"push to {self.target.branch} rejected: {detail}")
        raise CommitFailure(f"git push failed: {detail}")
