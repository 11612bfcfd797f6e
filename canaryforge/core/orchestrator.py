"""Release pipeline orchestrator — drives one run from commit to GitOps push.

``ReleasePipeline`` owns the state machine of a run and walks the stage
list in order.  Each stage runs only after the state machine has accepted
its entry transition, so an image can never be built before the gates
passed, published before it was built, and so on.

Whatever happens (success, skip, a fatal stage error, or a crash in the
orchestrator itself) exactly one notification goes out when the run ends.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from canaryforge.core.artifact_archive import GateArtifactArchive
from canaryforge.core.release_ledger import ReleaseLedger
from canaryforge.core.state_machine import PipelineStateMachine
from canaryforge.errors import ReleaseError
from canaryforge.gates import QualityGateCoordinator, default_scanners
from canaryforge.gitops import GitOpsCommitter, GitRepository
from canaryforge.images import DockerEngine, DockerRegistryClient, ImageBuilder, RegistryPublisher
from canaryforge.manifests import ManifestPromoter, ManifestStore
from canaryforge.models.config import PipelineConfig
from canaryforge.models.reports import RunReport
from canaryforge.models.runs import BuildRun, PipelineState, RunOutcome
from canaryforge.routing import EmailSink, LocalFileSink, NotificationDispatcher
from canaryforge.stages import DEFAULT_STAGES, BaseStage, ReleaseServices, RunContext

if TYPE_CHECKING:
    from canaryforge.config import ForgeSettings

logger = logging.getLogger(__name__)

SKIP_REASON = "only excluded paths changed"


class ReleasePipeline:
    """Runs the release workflow for one build at a time.

    Parameters
    ----------
    config:
        The run's immutable pipeline configuration.
    services:
        Capability implementations (real or fake) the stages call.
    dispatcher:
        Receives the single end-of-run notification.
    ledger:
        Optional audit ledger for transitions and promotion records.
    stages:
        Stage instances, in execution order.  Defaults to the six
        standard stages.
    """

    def __init__(
        self,
        config: PipelineConfig,
        services: ReleaseServices,
        dispatcher: NotificationDispatcher,
        ledger: ReleaseLedger | None = None,
        stages: Sequence[BaseStage] | None = None,
    ) -> None:
        self.config = config
        self.services = services
        self.dispatcher = dispatcher
        self.ledger = ledger
        self.stages: list[BaseStage] = (
            list(stages) if stages is not None else [cls() for cls in DEFAULT_STAGES]
        )

    @classmethod
    def from_config(
        cls, config: PipelineConfig, settings: ForgeSettings
    ) -> ReleasePipeline:
        """Wire the production collaborators (git, docker, scanners, SMTP)."""
        ledger = ReleaseLedger(config.ledger_path)
        archive = GateArtifactArchive(config.archive_path)
        sonar_token = settings.sonar_token if settings.sonar_token.get_secret_value() else None

        services = ReleaseServices(
            change_source=GitRepository(config.source_root),
            gates=QualityGateCoordinator(
                default_scanners(settings.sonar_url, sonar_token), archive=archive
            ),
            builder=ImageBuilder(DockerEngine(), source_root=config.source_root),
            publisher=RegistryPublisher(DockerRegistryClient()),
            promoter=ManifestPromoter(ManifestStore(config)),
            committer=GitOpsCommitter(
                GitRepository(config.config_repo_path, config.gitops),
                max_retries=config.commit_max_retries,
            ),
        )

        dispatcher = NotificationDispatcher(job_name=config.job_name)
        dispatcher.register_sink(LocalFileSink(config.archive_path.parent / "notifications"))
        if config.notification.recipient:
            dispatcher.register_sink(EmailSink(config.notification))

        return cls(config, services, dispatcher, ledger=ledger)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, build: BuildRun) -> RunReport:
        """Execute one release run for *build* and report what happened."""
        self._check_build_order(build)
        machine = PipelineStateMachine(build.id, ledger=self.ledger)
        ctx = RunContext(config=self.config, build=build, services=self.services)
        failed_stage = ""
        error = ""

        try:
            failed_stage, error = self._drive(machine, ctx)
        except ReleaseError as exc:
            # A misordered stage list surfaces here as InvalidTransitionError.
            failed_stage, error = "orchestrator", str(exc)
            logger.error("Run %d aborted: %s", build.id, exc)
            if not machine.is_terminal:
                machine.fail(error)
        finally:
            final_state = machine.state if machine.is_terminal else PipelineState.FAILED
            if not machine.is_terminal and not error:
                error = f"run ended in non-terminal state {machine.state.value}"
            self.dispatcher.notify(
                final_state,
                build.id,
                self.config.run_url,
                detail=self._detail(final_state, ctx, failed_stage, error),
            )

        if (
            final_state == PipelineState.DONE
            and ctx.promotion is not None
            and self.ledger is not None
        ):
            for record in ctx.promotion.records:
                self.ledger.record_promotion(record)

        return RunReport(
            build=build.model_copy(update={"outcome": RunOutcome.for_state(final_state)}),
            final_state=final_state,
            classification=ctx.classification.value if ctx.classification else "",
            changed_paths=sorted(ctx.changed_paths),
            gate_report=ctx.gate_report,
            images=ctx.images,
            promotions=ctx.promotion.records if ctx.promotion else [],
            commit_outcome=ctx.commit_outcome.value if ctx.commit_outcome else "",
            failed_stage=failed_stage,
            error=error,
            transitions=machine.history,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _drive(self, machine: PipelineStateMachine, ctx: RunContext) -> tuple[str, str]:
        """Walk the stages until the run is terminal.

        Returns ``(failed_stage_id, error)``, both empty unless a stage
        failed fatally.
        """
        for stage in self.stages:
            if stage.entered is not None:
                machine.transition(stage.entered)

            outcome = stage.run_stage(ctx)
            if outcome.error is not None:
                if outcome.fatal:
                    machine.fail(f"{stage.stage_id}: {outcome.error}")
                    return stage.stage_id, str(outcome.error)
                logger.warning(
                    "%s reported a recoverable error: %s", stage.stage_id, outcome.error
                )

            machine.transition(stage.completed)
            if outcome.redirect is not None:
                reason = SKIP_REASON if outcome.redirect == PipelineState.SKIPPED else ""
                machine.transition(outcome.redirect, reason=reason)
            if machine.is_terminal:
                break

        if not machine.is_terminal:
            reason = f"stage list ended in state {machine.state.value}"
            machine.fail(reason)
            return "orchestrator", reason
        return "", ""

    def _check_build_order(self, build: BuildRun) -> None:
        if self.ledger is None:
            return
        latest = self.ledger.latest_build_id()
        if latest is not None and build.id <= latest:
            logger.warning(
                "Build id %d is not greater than the last recorded build %d",
                build.id,
                latest,
            )

    @staticmethod
    def _detail(
        state: PipelineState, ctx: RunContext, failed_stage: str, error: str
    ) -> str:
        if state == PipelineState.SKIPPED:
            return SKIP_REASON
        if state == PipelineState.FAILED:
            return f"{failed_stage}: {error}" if failed_stage else error
        parts = [f"{name} -> {ref}" for name, ref in ctx.images.items()]
        if ctx.commit_outcome is not None:
            parts.append(f"commit: {ctx.commit_outcome.value}")
        return "; ".join(parts)
