"""Run context — the collaborators and intermediate results of one run.

``ReleaseServices`` bundles the capability implementations a run talks
to; tests substitute fakes here.  ``RunContext`` is the single mutable
object passed from stage to stage: each stage reads what earlier stages
produced and writes its own result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from canaryforge.core.classifier import ChangeSource, Classification
from canaryforge.gates.coordinator import QualityGateCoordinator
from canaryforge.gitops.committer import CommitOutcome, GitOpsCommitter
from canaryforge.images.builder import ImageBuilder
from canaryforge.images.registry import RegistryPublisher
from canaryforge.manifests.promoter import ManifestPromoter, PromotionResult
from canaryforge.models.config import PipelineConfig
from canaryforge.models.gates import GateReport
from canaryforge.models.release import ImageReference
from canaryforge.models.runs import BuildRun


@dataclass
class ReleaseServices:
    """Capability implementations used by the stages of a run."""

    change_source: ChangeSource
    gates: QualityGateCoordinator
    builder: ImageBuilder
    publisher: RegistryPublisher
    promoter: ManifestPromoter
    committer: GitOpsCommitter


@dataclass
class RunContext:
    """State threaded through the stages of one run."""

    config: PipelineConfig
    build: BuildRun
    services: ReleaseServices

    classification: Classification | None = None
    changed_paths: set[str] = field(default_factory=set)
    gate_report: GateReport | None = None
    images: dict[str, ImageReference] = field(default_factory=dict)
    promotion: PromotionResult | None = None
    commit_outcome: CommitOutcome | None = None

    @property
    def build_id(self) -> int:
        return self.build.id

    @property
    def component_names(self) -> list[str]:
        return [c.name for c in self.config.components]

    @property
    def source_tree(self) -> Path:
        return self.config.source_root
