"""GitOps configuration repository access."""

from canaryforge.gitops.committer import CommitOutcome, GitOpsCommitter
from canaryforge.gitops.git import ConfigRepository, GitRepository

__all__ = [
    "CommitOutcome",
    "ConfigRepository",
    "GitOpsCommitter",
    "GitRepository",
]
