"""Stage 5 — Manifest promotion.

Stable takes the canary written by the previous run, then canary takes
the image built by this run.  All stable writes happen before any
canary write.
"""

from __future__ import annotations

from typing import ClassVar

from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext


class PromoteStage(BaseStage):
    """Stage 5: Promote."""

    entered: ClassVar[PipelineState | None] = PipelineState.PROMOTING
    completed: ClassVar[PipelineState] = PipelineState.PROMOTED

    @property
    def stage_id(self) -> str:
        return "s5_promote"

    @property
    def display_name(self) -> str:
        return "Manifest Promotion"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        ctx.promotion = ctx.services.promoter.promote(
            ctx.component_names, ctx.images, ctx.build_id
        )
        return None
