"""Run state models — pipeline states and their legal transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PipelineState(str, Enum):
    """States of a single release run."""

    START = "start"
    CLASSIFIED = "classified"
    SKIPPED = "skipped"
    GATING = "gating"
    GATED_OK = "gated_ok"
    BUILDING = "building"
    BUILT = "built"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    PROMOTING = "promoting"
    PROMOTED = "promoted"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES: frozenset[PipelineState] = frozenset(
    {PipelineState.SKIPPED, PipelineState.DONE, PipelineState.FAILED}
)

# The happy path.  Every non-terminal state may also fall to FAILED.
_HAPPY_PATH: dict[PipelineState, set[PipelineState]] = {
    PipelineState.START: {PipelineState.CLASSIFIED},
    PipelineState.CLASSIFIED: {PipelineState.SKIPPED, PipelineState.GATING},
    PipelineState.GATING: {PipelineState.GATED_OK},
    PipelineState.GATED_OK: {PipelineState.BUILDING},
    PipelineState.BUILDING: {PipelineState.BUILT},
    PipelineState.BUILT: {PipelineState.PUBLISHING},
    PipelineState.PUBLISHING: {PipelineState.PUBLISHED},
    PipelineState.PUBLISHED: {PipelineState.PROMOTING},
    PipelineState.PROMOTING: {PipelineState.PROMOTED},
    PipelineState.PROMOTED: {PipelineState.COMMITTING},
    PipelineState.COMMITTING: {PipelineState.DONE},
}

VALID_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    state: (
        set()
        if state in TERMINAL_STATES
        else _HAPPY_PATH[state] | {PipelineState.FAILED}
    )
    for state in PipelineState
}


class RunOutcome(str, Enum):
    """Reported outcome of a run (what notifications and exit codes see)."""

    SUCCESS = "success"
    FAILURE = "failure"

    @classmethod
    def for_state(cls, state: PipelineState) -> RunOutcome:
        """SKIPPED and DONE both count as success."""
        return cls.FAILURE if state == PipelineState.FAILED else cls.SUCCESS


class BuildRun(BaseModel):
    """One invocation of the release pipeline.

    ``id`` comes from the invoking environment and is used verbatim as
    the image tag for every component built in this run.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0)
    commit_sha: str
    base_sha: str | None = None  # previous revision, None on the first run
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    outcome: RunOutcome | None = None  # set once the run is terminal


class StateTransition(BaseModel):
    """Records a single state transition for the audit trail."""

    model_config = ConfigDict(frozen=True)

    build_id: int
    from_state: PipelineState
    to_state: PipelineState
    reason: str = ""  # populated when entering FAILED or SKIPPED
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
