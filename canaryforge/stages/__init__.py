"""Release pipeline stages, one class per step of a run."""

from canaryforge.stages.base import BaseStage, StageOutcome
from canaryforge.stages.context import ReleaseServices, RunContext
from canaryforge.stages.s1_classify import ClassifyStage
from canaryforge.stages.s2_gating import GatingStage
from canaryforge.stages.s3_build import BuildStage
from canaryforge.stages.s4_publish import PublishStage
from canaryforge.stages.s5_promote import PromoteStage
from canaryforge.stages.s6_commit import CommitStage

DEFAULT_STAGES: tuple[type[BaseStage], ...] = (
    ClassifyStage,
    GatingStage,
    BuildStage,
    PublishStage,
    PromoteStage,
    CommitStage,
)

__all__ = [
    "BaseStage",
    "BuildStage",
    "ClassifyStage",
    "CommitStage",
    "DEFAULT_STAGES",
    "GatingStage",
    "PromoteStage",
    "PublishStage",
    "ReleaseServices",
    "RunContext",
    "StageOutcome",
]
