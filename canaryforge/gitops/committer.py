"""GitOps committer — records promoted manifests in the configuration repo.

The cluster reconciler applies whatever the configuration repository's
branch holds, so the commit is the actual release.  Only the manifest
files the promoter touched are staged.  An empty staged diff is a
successful ``NO_CHANGES`` outcome.

When the push is rejected because another run advanced the branch, the
committer re-fetches, hard-resets the workspace to the remote branch,
asks the caller to re-apply its promotion against the fresh manifests,
and tries again.  Nothing is ever force-pushed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from canaryforge.errors import CommitConflict, CommitFailure, ReleaseError
from canaryforge.gitops.git import ConfigRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

Reapply = Callable[[], Sequence[Path]]


class CommitOutcome(str, Enum):
    COMMITTED = "committed"
    NO_CHANGES = "no_changes"


def commit_message(build_id: int, paths: Sequence[Path]) -> str:
    names = ", ".join(sorted(p.name for p in paths))
    return f"Promote build #{build_id}\n\nUpdated manifests: {names}\n"


class GitOpsCommitter:
    """Commits and pushes manifest changes with bounded conflict retries.

    Parameters
    ----------
    repository:
        The configuration repository working copy.
    max_retries:
        How many times a rejected push is retried after the first attempt.
    """

    def __init__(
        self, repository: ConfigRepository, max_retries: int = DEFAULT_MAX_RETRIES
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._repo = repository
        self.max_retries = max_retries

    def commit_and_push(
        self,
        manifest_paths: Sequence[Path],
        build_id: int,
        reapply: Reapply,
    ) -> CommitOutcome:
        """Stage *manifest_paths*, commit and push.

        Parameters
        ----------
        manifest_paths:
            Files touched by the promotion.
        build_id:
            Run identifier, used in the commit message.
        reapply:
            Called after a conflict reset; must redo the promotion against
            the fresh manifests and return the paths it touched.

        Raises
        ------
        CommitFailure
            When retries are exhausted or any non-conflict git step fails.
        """
        paths = list(manifest_paths)
        retries = 0
        while True:
            try:
                outcome = self._attempt(paths, build_id)
            except CommitConflict as exc:
                if retries >= self.max_retries:
                    raise CommitFailure(
                        f"push still rejected after {retries} retries: {exc}"
                    ) from exc
                retries += 1
                logger.warning(
                    "Push rejected (retry %d/%d): %s", retries, self.max_retries, exc
                )
                paths = self._resync(reapply)
                continue
            if retries:
                logger.info("Push succeeded after %d retries", retries)
            return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attempt(self, paths: Sequence[Path], build_id: int) -> CommitOutcome:
        try:
            self._repo.add(paths)
            if not self._repo.has_staged_changes():
                logger.info("Manifests unchanged; nothing to commit")
                return CommitOutcome.NO_CHANGES
            self._repo.commit(commit_message(build_id, paths))
            self._repo.push()
        except (CommitConflict, CommitFailure):
            raise
        except ReleaseError as exc:
            raise CommitFailure(str(exc)) from exc
        except Exception as exc:
            raise CommitFailure(f"unexpected git failure: {exc}") from exc
        logger.info("Committed and pushed build #%d", build_id)
        return CommitOutcome.COMMITTED

    def _resync(self, reapply: Reapply) -> list[Path]:
        try:
            self._repo.fetch()
            self._repo.reset_to_remote()
        except CommitFailure:
            raise
        except Exception as exc:
            raise CommitFailure(f"could not resync with remote: {exc}") from exc
        return list(reapply())
