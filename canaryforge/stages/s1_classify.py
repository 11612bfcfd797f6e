"""Stage 1 — Change classification.

Decides whether the commit needs a release at all.  A commit that only
touches excluded paths (the manifests the pipeline itself writes) ends
the run as SKIPPED: nothing is built, published, promoted or committed.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from canaryforge.core.classifier import Classification, classify_revisions
from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext

logger = logging.getLogger(__name__)


class ClassifyStage(BaseStage):
    """Stage 1: Classification — SKIP or PROCEED."""

    completed: ClassVar[PipelineState] = PipelineState.CLASSIFIED

    @property
    def stage_id(self) -> str:
        return "s1_classify"

    @property
    def display_name(self) -> str:
        return "Change Classification"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        decision, paths = classify_revisions(
            ctx.services.change_source,
            ctx.build.base_sha,
            ctx.build.commit_sha,
            ctx.config.exclusion_patterns,
        )
        ctx.classification = decision
        ctx.changed_paths = paths
        if decision == Classification.SKIP:
            logger.info("Only excluded paths changed; skipping build #%d", ctx.build_id)
            return PipelineState.SKIPPED
        return None
