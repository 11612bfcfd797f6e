"""Tests for individual stages and the run_stage lifecycle wrapper."""

from __future__ import annotations

from typing import ClassVar

import pytest

from canaryforge.core.classifier import Classification
from canaryforge.errors import BuildFailure, GateFailure, ReleaseError, StageError
from canaryforge.gitops.committer import CommitOutcome
from canaryforge.models.gates import GateStatus
from canaryforge.models.release import Tier
from canaryforge.models.runs import BuildRun, PipelineState
from canaryforge.stages import (
    DEFAULT_STAGES,
    BaseStage,
    BuildStage,
    ClassifyStage,
    CommitStage,
    GatingStage,
    PromoteStage,
    PublishStage,
    RunContext,
)
from conftest import FakeChangeSource, FakeEngine, FakeScanner, manifest_tag


@pytest.fixture
def context(make_harness):
    def _factory(**overrides) -> RunContext:
        harness = make_harness(**overrides)
        build = BuildRun(id=42, commit_sha="def456", base_sha="abc123")
        return RunContext(config=harness.config, build=build, services=harness.pipeline.services)

    return _factory


class ExplodingStage(BaseStage):
    completed: ClassVar[PipelineState] = PipelineState.CLASSIFIED

    def __init__(self, error: Exception) -> None:
        self.error = error

    @property
    def stage_id(self) -> str:
        return "x_explode"

    @property
    def display_name(self) -> str:
        return "Exploding"

    def execute(self, ctx: RunContext) -> PipelineState | None:
        raise self.error


class TestRunStage:
    def test_unexpected_exception_becomes_stage_error(self, context):
        outcome = ExplodingStage(KeyError("frontend")).run_stage(context())
        assert isinstance(outcome.error, StageError)
        assert outcome.error.stage_id == "x_explode"
        assert outcome.fatal

    def test_release_error_passes_through(self, context):
        error = BuildFailure("frontend", "exit 1")
        outcome = ExplodingStage(error).run_stage(context())
        assert outcome.error is error
        assert not outcome.ok

    def test_default_stage_order(self):
        assert [cls().stage_id for cls in DEFAULT_STAGES] == [
            "s1_classify", "s2_gating", "s3_build", "s4_publish", "s5_promote", "s6_commit",
        ]

    def test_stage_repr(self):
        assert repr(BuildStage()) == "<BuildStage stage_id='s3_build'>"

    def test_release_errors_are_fatal_by_default(self):
        assert ReleaseError.fatal
        assert not GateFailure("deps", hard=False).fatal
        assert GateFailure("deps", hard=True).fatal


class TestClassifyStage:
    def test_proceed(self, context):
        ctx = context()
        outcome = ClassifyStage().run_stage(ctx)
        assert outcome.ok and outcome.redirect is None
        assert ctx.classification == Classification.PROCEED

    def test_skip_redirects(self, context):
        ctx = context(change_source=FakeChangeSource({"deployments/frontend-canary.yaml"}))
        outcome = ClassifyStage().run_stage(ctx)
        assert outcome.redirect == PipelineState.SKIPPED
        assert ctx.changed_paths == {"deployments/frontend-canary.yaml"}


class TestGatingStage:
    def test_hard_failure_raises_gate_failure(self, context):
        ctx = context(scanners={
            "command": FakeScanner(),
            "trivy-fs": FakeScanner(GateStatus.FAIL, "2 HIGH"),
            "dependency-check": FakeScanner(),
        })
        outcome = GatingStage().run_stage(ctx)
        assert isinstance(outcome.error, GateFailure)
        assert outcome.error.gate_name == "filesystem-vulnerabilities"
        assert "2 HIGH" in str(outcome.error)
        assert len(ctx.gate_report.results) == 3

    def test_soft_failure_passes(self, context):
        ctx = context(scanners={
            "command": FakeScanner(),
            "trivy-fs": FakeScanner(),
            "dependency-check": FakeScanner(GateStatus.FAIL),
        })
        assert GatingStage().run_stage(ctx).ok
        assert ctx.gate_report.soft_failures


class TestBuildPublishPromoteCommit:
    def test_full_stage_chain(self, context):
        ctx = context()
        for stage in (BuildStage(), PublishStage(), PromoteStage(), CommitStage()):
            assert stage.run_stage(ctx).ok, stage.stage_id
        assert {ref.tag for ref in ctx.images.values()} == {"42"}
        assert manifest_tag(ctx.config, "frontend", Tier.STABLE) == "41"
        assert manifest_tag(ctx.config, "backend", Tier.CANARY) == "42"
        assert ctx.commit_outcome == CommitOutcome.COMMITTED

    def test_build_failure(self, context):
        ctx = context(engine=FakeEngine(fail_for={"backend"}))
        outcome = BuildStage().run_stage(ctx)
        assert isinstance(outcome.error, BuildFailure)
        assert ctx.images == {}

    def test_commit_without_promotion_is_a_stage_error(self, context):
        outcome = CommitStage().run_stage(context())
        assert isinstance(outcome.error, StageError)
