"""Stage 2 — Quality and security gates.

Runs every configured gate (all of them, even after a hard failure) and
then blocks the run on the first hard gate that did not pass.  Failures
of report-only gates are logged and archived but never block.
"""

from __future__ import annotations

from typing import ClassVar

from canaryforge.errors import GateFailure
from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext


class GatingStage(BaseStage):
    """Stage 2: Gating — the release blocks on hard gate failures."""

    entered: ClassVar[PipelineState | None] = PipelineState.GATING
    completed: ClassVar[PipelineState] = PipelineState.GATED_OK

    @property
    def stage_id(self) -> str:
        return "s2_gating"

    @property
    def display_name(self) -> str:
        return "Quality Gates"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        report = ctx.services.gates.run(
            ctx.source_tree, ctx.config.gates, build_id=ctx.build_id
        )
        ctx.gate_report = report
        blocking = report.hard_failures
        if blocking:
            first = blocking[0]
            raise GateFailure(
                first.gate_name, hard=True, detail=f"{first.status.value}: {first.detail}"
            )
        return None
