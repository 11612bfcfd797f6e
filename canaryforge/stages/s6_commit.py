"""Stage 6 — GitOps commit.

Commits the promoted manifests to the configuration repository.  When
another run pushed first, the committer resets to the remote branch and
calls back here to redo the promotion against the fresh manifests: the
images are never rebuilt.  If the remote already carries a newer canary
than this build, the run fails instead: promoting would put an older
image on canary than on stable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

from canaryforge.errors import CommitFailure
from canaryforge.models.runs import PipelineState
from canaryforge.stages.base import BaseStage
from canaryforge.stages.context import RunContext

logger = logging.getLogger(__name__)


class CommitStage(BaseStage):
    """Stage 6: Commit."""

    entered: ClassVar[PipelineState | None] = PipelineState.COMMITTING
    completed: ClassVar[PipelineState] = PipelineState.DONE

    @property
    def stage_id(self) -> str:
        return "s6_commit"

    @property
    def display_name(self) -> str:
        return "GitOps Commit"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        if ctx.promotion is None:
            raise RuntimeError("commit stage reached without a promotion result")

        def reapply() -> list[Path]:
            newer = {
                component: image.tag
                for component, image in ctx.services.promoter.current_canaries(
                    ctx.component_names
                ).items()
                if image.tag.isdigit() and int(image.tag) > ctx.build_id
            }
            if newer:
                raise CommitFailure(
                    f"build #{ctx.build_id} superseded on the remote by canary {newer}"
                )
            logger.info("Re-applying promotion of build #%d on fresh manifests", ctx.build_id)
            ctx.promotion = ctx.services.promoter.promote(
                ctx.component_names, ctx.images, ctx.build_id
            )
            return ctx.promotion.touched_paths

        ctx.commit_outcome = ctx.services.committer.commit_and_push(
            ctx.promotion.touched_paths, ctx.build_id, reapply
        )
        return None
