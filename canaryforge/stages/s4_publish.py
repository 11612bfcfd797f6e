"""Stage 4 — Publish images to the registry, within one session."""

from __future__ import annotations

from typing import ClassVar

from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext


class PublishStage(BaseStage):
    """Stage 4: Publish."""

    entered: ClassVar[PipelineState | None] = PipelineState.PUBLISHING
    completed: ClassVar[PipelineState] = PipelineState.PUBLISHED

    @property
    def stage_id(self) -> str:
        return "s4_publish"

    @property
    def display_name(self) -> str:
        return "Registry Publish"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        ctx.services.publisher.publish(ctx.images, ctx.config.registry)
        return None
