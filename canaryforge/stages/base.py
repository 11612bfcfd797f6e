"""Abstract base stage with an enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only
``execute()``.  The ``run_stage()`` wrapper is **not overridable**: it
turns whatever ``execute()`` does into a tagged ``StageOutcome`` so the
orchestrator never has to reason about raw exceptions:

    execute -> StageOutcome.ok(...)            on success
            -> StageOutcome.failed(error)      on a ReleaseError
            -> StageOutcome.failed(StageError) on anything else

Each stage also declares the pipeline states it moves through, so the
state machine (not the stage) decides whether the stage may run at all.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import ClassVar, final

from canaryforge.errors import ReleaseError, StageError
from canaryforge.models.runs import PipelineState
from canaryforge.stages.context import RunContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageOutcome:
    """Tagged result of one stage: ``ok`` or a specific failure."""

    stage_id: str
    error: ReleaseError | None = None
    redirect: PipelineState | None = None  # e.g. SKIPPED after classification

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def fatal(self) -> bool:
        return self.error is not None and self.error.fatal

    @classmethod
    def succeeded(
        cls, stage_id: str, redirect: PipelineState | None = None
    ) -> StageOutcome:
        return cls(stage_id=stage_id, redirect=redirect)

    @classmethod
    def failed(cls, stage_id: str, error: ReleaseError) -> StageOutcome:
        return cls(stage_id=stage_id, error=error)


class BaseStage(abc.ABC):
    """Abstract base for all release pipeline stages.

    Subclasses **must** implement:
        * ``stage_id``     — unique identifier (e.g. ``"s3_build"``).
        * ``display_name`` — human-readable name shown in run summaries.
        * ``execute(ctx)`` — the stage's core logic.

    Subclasses set ``entered`` (the in-progress state taken before
    ``execute``; ``None`` if the stage has none) and ``completed`` (the
    state taken after a successful ``execute``).

    Subclasses **must not** override ``run_stage()``.
    """

    entered: ClassVar[PipelineState | None] = None
    completed: ClassVar[PipelineState]

    # ------------------------------------------------------------------
    # Abstract interface: subclasses implement these
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def stage_id(self) -> str:
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        ...

    @abc.abstractmethod
    def execute(self, ctx: RunContext) -> PipelineState | None:
        """Run the stage against *ctx*.

        Returns ``None`` to continue along the happy path, or a state the
        run should move to after ``completed`` (only classification uses
        this, to end the run as SKIPPED).  Raises a ``ReleaseError`` on
        failure.
        """
        ...

    # ------------------------------------------------------------------
    # Lifecycle: NOT overridable
    # ------------------------------------------------------------------

    @final
    def run_stage(self, ctx: RunContext) -> StageOutcome:
        """Execute the stage and tag the result.  **Do not override.**"""
        logger.info("%s [%s] starting (build #%d)", self.display_name, self.stage_id, ctx.build_id)
        try:
            redirect = self.execute(ctx)
        except ReleaseError as exc:
            logger.error("%s [%s] failed: %s", self.display_name, self.stage_id, exc)
            return StageOutcome.failed(self.stage_id, exc)
        except Exception as exc:
            logger.exception("%s [%s] raised unexpectedly", self.display_name, self.stage_id)
            return StageOutcome.failed(
                self.stage_id, StageError(self.stage_id, f"{type(exc).__name__}: {exc}")
            )
        logger.info("%s [%s] finished", self.display_name, self.stage_id)
        return StageOutcome.succeeded(self.stage_id, redirect)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} stage_id={self.stage_id!r}>"
