"""Pipeline configuration — one immutable value per run.

``PipelineConfig`` is built once at the start of a run from
``canaryforge.toml`` plus the environment settings, then passed explicitly
to every component.  A minimal ``canaryforge.toml``::

    [pipeline]
    job_name = "socialecho"
    manifests_dir = "deployments"
    exclude = ["deployments/"]

    [[components]]
    name = "frontend"
    source_path = "client"
    image_repository = "registry.example.com/socialecho/frontend"

    [[gates]]
    name = "filesystem-vulnerabilities"
    kind = "trivy-fs"
    hard = true
    severity_threshold = ["CRITICAL", "HIGH"]
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, model_validator

from canaryforge.errors import ConfigError
from canaryforge.models.gates import GateConfig
from canaryforge.models.release import Component, Tier

if TYPE_CHECKING:
    from canaryforge.config import ForgeSettings

STATIC_ANALYSIS_GATE_KIND = "sonar-quality-gate"


class RegistryCredentials(BaseModel):
    """Username/token pair for one registry, valid for one run."""

    model_config = ConfigDict(frozen=True)

    registry: str
    username: str
    token: SecretStr


class GitOpsTarget(BaseModel):
    """The configuration repository the reconciler watches."""

    model_config = ConfigDict(frozen=True)

    remote_url: str = ""
    remote_name: str = "origin"
    branch: str = "main"
    username: str = ""
    token: SecretStr = SecretStr("")
    author_name: str = "canaryforge"
    author_email: str = "canaryforge@localhost"


class NotificationChannel(BaseModel):
    """Where and how the terminal outcome of a run is reported."""

    model_config = ConfigDict(frozen=True)

    recipient: str = ""
    sender: str = "canaryforge@localhost"
    smtp_host: str = ""
    smtp_port: int = 25
    subject_template: str = "[{job_name}] build #{build_id}: {status}"
    body_template: str = (
        "Job: {job_name}\n"
        "Build: #{build_id}\n"
        "Status: {status}\n"
        "Details: {run_url}\n"
    )


class PipelineConfig(BaseModel):
    """Everything a run needs to know, fixed for the run's lifetime."""

    model_config = ConfigDict(frozen=True)

    job_name: str = "canaryforge"
    run_url: str = ""
    source_root: Path = Path(".")
    config_repo_path: Path = Path(".")
    manifests_dir: Path = Path("deployments")
    manifest_filename_template: str = "{component}-{tier}.yaml"
    components: tuple[Component, ...] = ()
    gates: tuple[GateConfig, ...] = ()
    exclusion_patterns: frozenset[str] = frozenset({"deployments/"})
    registry: RegistryCredentials | None = None
    gitops: GitOpsTarget = GitOpsTarget()
    notification: NotificationChannel = NotificationChannel()
    commit_max_retries: int = 3
    ledger_path: Path = Path(".canaryforge/ledger.db")
    archive_path: Path = Path(".canaryforge/gate-reports")

    @model_validator(mode="after")
    def _check_unique_names(self) -> PipelineConfig:
        for label, names in (
            ("component", [c.name for c in self.components]),
            ("gate", [g.name for g in self.gates]),
        ):
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise ValueError(f"duplicate {label} names: {dupes}")
        if self.commit_max_retries < 0:
            raise ValueError("commit_max_retries must be >= 0")
        return self

    def manifest_path(self, component: str, tier: Tier) -> Path:
        """Absolute location of the manifest for ``{component, tier}``."""
        filename = self.manifest_filename_template.format(
            component=component, tier=tier.value
        )
        return self.config_repo_path / self.manifests_dir / filename


def load_pipeline_config(
    path: Path | str, settings: ForgeSettings
) -> PipelineConfig:
    """Build the run's ``PipelineConfig`` from *path* and *settings*.

    Raises ``ConfigError`` if the file is missing, not valid TOML, or does
    not describe a valid pipeline.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError:
        raise ConfigError(f"pipeline file not found: {path}") from None
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc

    return build_pipeline_config(data, settings)


def build_pipeline_config(
    data: dict[str, Any], settings: ForgeSettings
) -> PipelineConfig:
    """Merge parsed ``canaryforge.toml`` content with environment settings."""
    pipeline: dict[str, Any] = data.get("pipeline", {})

    gates: list[dict[str, Any]] = []
    for raw in data.get("gates", []):
        gate = dict(raw)
        if "hard" not in gate:
            raise ConfigError(
                f"gate {gate.get('name', '?')!r} must declare hard = true|false"
            )
        if (
            gate.get("kind") == STATIC_ANALYSIS_GATE_KIND
            and gate.get("timeout_seconds") is None
        ):
            gate["timeout_seconds"] = settings.static_analysis_timeout_seconds
        gates.append(gate)

    registry = None
    if settings.registry_username:
        registry = RegistryCredentials(
            registry=settings.registry_url,
            username=settings.registry_username,
            token=settings.registry_token,
        )

    fields: dict[str, Any] = {
        "job_name": pipeline.get("job_name", settings.job_name),
        "run_url": settings.run_url,
        "source_root": settings.source_root,
        "config_repo_path": settings.config_repo_path,
        "components": data.get("components", []),
        "gates": gates,
        "registry": registry,
        "gitops": GitOpsTarget(
            remote_url=settings.gitops_remote_url,
            branch=pipeline.get("branch", settings.gitops_branch),
            username=settings.gitops_username,
            token=settings.gitops_token,
            author_name=settings.gitops_author_name,
            author_email=settings.gitops_author_email,
        ),
        "notification": NotificationChannel(
            recipient=settings.notify_recipient,
            sender=settings.notify_sender,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
        ),
        "commit_max_retries": settings.commit_max_retries,
        "ledger_path": settings.ledger_path,
        "archive_path": settings.archive_path,
    }
    for key in ("manifests_dir", "manifest_filename_template"):
        if key in pipeline:
            fields[key] = pipeline[key]
    if "exclude" in pipeline:
        fields["exclusion_patterns"] = pipeline["exclude"]

    try:
        return PipelineConfig(**fields)
    except ValidationError as exc:
        raise ConfigError(f"invalid pipeline configuration: {exc}") from exc
