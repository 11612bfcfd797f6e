"""Runtime settings — env-driven, read once per process.

Centralized settings using pydantic-settings.  Reads from a ``.env`` file
and ``CANARYFORGE_*`` environment variables.  Secrets (registry and GitOps
tokens) only ever come from here, never from ``canaryforge.toml``.

The settings are folded into an immutable ``PipelineConfig`` by
``canaryforge.models.config.load_pipeline_config`` at the start of a run;
nothing reads ``ForgeSettings`` after that.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForgeSettings(BaseSettings):
    """Environment-driven settings.

    Examples
    --------
    Override via environment::

        export CANARYFORGE_LOG_LEVEL=DEBUG
        export CANARYFORGE_REGISTRY_USERNAME=ci-bot
        export CANARYFORGE_REGISTRY_TOKEN=...
        export CANARYFORGE_GITOPS_REMOTE_URL=https://git.example.com/acme/deploy.git

    Or via .env file::

        CANARYFORGE_ENVIRONMENT=production
        CANARYFORGE_NOTIFY_RECIPIENT=releases@example.com
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CANARYFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Job identity (populated by the CI host)
    job_name: str = "canaryforge"
    run_url: str = ""

    # Paths
    pipeline_file: Path = Path("canaryforge.toml")
    source_root: Path = Path(".")
    config_repo_path: Path = Path(".")
    ledger_path: Path = Path(".canaryforge/ledger.db")
    archive_path: Path = Path(".canaryforge/gate-reports")

    # Container registry: scoped to one run, never persisted
    registry_url: str = ""
    registry_username: str = ""
    registry_token: SecretStr = SecretStr("")

    # GitOps configuration repository
    gitops_remote_url: str = ""
    gitops_branch: str = "main"
    gitops_username: str = ""
    gitops_token: SecretStr = SecretStr("")
    gitops_author_name: str = "canaryforge"
    gitops_author_email: str = "canaryforge@localhost"
    commit_max_retries: int = 3

    # Quality gates
    static_analysis_timeout_seconds: float = 120.0
    sonar_url: str = ""
    sonar_token: SecretStr = SecretStr("")

    # Notifications
    notify_recipient: str = ""
    notify_sender: str = "canaryforge@localhost"
    smtp_host: str = ""
    smtp_port: int = 25
