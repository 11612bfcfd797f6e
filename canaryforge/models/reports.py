"""Run report — the summary ``ReleasePipeline.run`` returns to its caller."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from canaryforge.models.gates import GateReport
from canaryforge.models.release import ImageReference, PromotionRecord
from canaryforge.models.runs import BuildRun, PipelineState, RunOutcome, StateTransition


class RunReport(BaseModel):
    """Everything one release run did, in the order it did it."""

    model_config = ConfigDict(frozen=True)

    build: BuildRun
    final_state: PipelineState
    classification: str = ""
    changed_paths: list[str] = []
    gate_report: GateReport | None = None
    images: dict[str, ImageReference] = {}
    promotions: list[PromotionRecord] = []
    commit_outcome: str = ""
    failed_stage: str = ""
    error: str = ""
    transitions: list[StateTransition] = []

    @property
    def build_id(self) -> int:
        return self.build.id

    @property
    def commit_sha(self) -> str:
        return self.build.commit_sha

    @property
    def outcome(self) -> RunOutcome:
        return self.build.outcome or RunOutcome.for_state(self.final_state)

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 for DONE or SKIPPED, 1 for FAILED."""
        return 1 if self.outcome == RunOutcome.FAILURE else 0
