"""Stage 3 — Image build.

Builds one image per component, tagged with the build id.  The first
failed build ends the stage; no reference to a failed build is kept.
"""

from __future__ import annotations

from typing import ClassVar

from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext


class BuildStage(BaseStage):
    """Stage 3: Build."""

    entered: ClassVar[PipelineState | None] = PipelineState.BUILDING
    completed: ClassVar[PipelineState] = PipelineState.BUILT

    @property
    def stage_id(self) -> str:
        return "s3_build"

    @property
    def display_name(self) -> str:
        return "Image Build"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        ctx.images = ctx.services.builder.build_all(ctx.config.components, ctx.build_id)
        return None
