"""Notification model — the one message every run sends when it ends."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from canaryforge.models.runs import PipelineState, RunOutcome

_STATUS_LABELS: dict[PipelineState, str] = {
    PipelineState.DONE: "SUCCESS",
    PipelineState.SKIPPED: "SKIPPED",
    PipelineState.FAILED: "FAILURE",
}


class RunNotification(BaseModel):
    """Terminal outcome of a run, as reported to every sink."""

    model_config = ConfigDict(frozen=True)

    job_name: str
    build_id: int
    final_state: PipelineState
    run_url: str = ""
    detail: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def outcome(self) -> RunOutcome:
        return RunOutcome.for_state(self.final_state)

    @property
    def status(self) -> str:
        return _STATUS_LABELS.get(self.final_state, self.final_state.value.upper())

    def template_fields(self) -> dict[str, Any]:
        """Values available to the subject/body templates."""
        return {
            "job_name": self.job_name,
            "build_id": self.build_id,
            "status": self.status,
            "run_url": self.run_url or "n/a",
            "detail": self.detail,
        }
