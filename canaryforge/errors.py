"""Release error taxonomy.

Every error a stage can raise derives from ``ReleaseError``.  The ``fatal``
class attribute tells the orchestrator whether the error ends the run:

- ``ClassificationError``  — never fatal; the classifier fails open.
- ``GateFailure``          — fatal only when the gate is hard.
- ``BuildFailure``         — always fatal; nothing partially built is tagged.
- ``PushFailure``          — always fatal, for every component of the run.
- ``PromotionFailure``     — always fatal; manifests are restored first.
- ``CommitConflict``       — recoverable; retried inside the committer.
- ``CommitFailure``        — fatal once retries are exhausted.
- ``NotifyError``          — always swallowed by the dispatcher.
"""

from __future__ import annotations

from typing import ClassVar


class ReleaseError(RuntimeError):
    """Base class for all release pipeline errors."""

    fatal: ClassVar[bool] = True


class ConfigError(ReleaseError):
    """Raised when the pipeline configuration is invalid."""


class InvalidTransitionError(ReleaseError):
    """Raised when a requested pipeline state transition is not valid."""


class ClassificationError(ReleaseError):
    """Raised when the changed-path diff cannot be computed."""

    fatal: ClassVar[bool] = False


class GateFailure(ReleaseError):
    """A quality gate did not pass."""

    def __init__(self, gate_name: str, hard: bool, detail: str = "") -> None:
        self.gate_name = gate_name
        self.hard = hard
        self.detail = detail
        kind = "hard" if hard else "soft"
        message = f"{kind} gate {gate_name!r} failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def fatal(self) -> bool:  # type: ignore[override]
        return self.hard


class BuildFailure(ReleaseError):
    """Building a component image failed."""

    def __init__(self, component: str, detail: str = "") -> None:
        self.component = component
        self.detail = detail
        super().__init__(
            f"build failed for {component}" + (f": {detail}" if detail else "")
        )


class PushFailure(ReleaseError):
    """Publishing an image (or authenticating to the registry) failed."""

    def __init__(self, component: str, detail: str = "") -> None:
        self.component = component
        self.detail = detail
        super().__init__(
            f"push failed for {component}" + (f": {detail}" if detail else "")
        )


class PromotionFailure(ReleaseError):
    """A manifest could not be promoted."""

    def __init__(self, component: str, reason: str) -> None:
        self.component = component
        self.reason = reason
        super().__init__(f"promotion failed for {component}: {reason}")


class CommitConflict(ReleaseError):
    """The remote rejected the push because another run advanced the branch."""

    fatal: ClassVar[bool] = False


class CommitFailure(ReleaseError):
    """Committing or pushing the manifests failed for good."""


class NotifyError(ReleaseError):
    """A notification sink failed.  Logged, never propagated."""

    fatal: ClassVar[bool] = False


class StageError(ReleaseError):
    """An unexpected exception escaped a stage."""

    def __init__(self, stage_id: str, detail: str) -> None:
        self.stage_id = stage_id
        super().__init__(f"stage {stage_id} failed unexpectedly: {detail}")
