"""canaryforge data models — all Pydantic v2, all frozen (immutable)."""

from canaryforge.models.config import (
    GitOpsTarget,
    NotificationChannel,
    PipelineConfig,
    RegistryCredentials,
    build_pipeline_config,
    load_pipeline_config,
)
from canaryforge.models.gates import (
    DEFAULT_SEVERITY_THRESHOLD,
    GateConfig,
    GateReport,
    GateResult,
    GateStatus,
    ScanOutcome,
    Severity,
)
from canaryforge.models.ledger import EntryKind, LedgerEntry
from canaryforge.models.notifications import RunNotification
from canaryforge.models.release import (
    Component,
    ImageReference,
    Manifest,
    PromotionRecord,
    Tier,
)
from canaryforge.models.reports import RunReport
from canaryforge.models.runs import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    BuildRun,
    PipelineState,
    RunOutcome,
    StateTransition,
)

__all__ = [
    # release
    "Component",
    "ImageReference",
    "Manifest",
    "PromotionRecord",
    "Tier",
    # runs
    "BuildRun",
    "PipelineState",
    "RunOutcome",
    "StateTransition",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    # gates
    "DEFAULT_SEVERITY_THRESHOLD",
    "GateConfig",
    "GateReport",
    "GateResult",
    "GateStatus",
    "ScanOutcome",
    "Severity",
    # ledger
    "EntryKind",
    "LedgerEntry",
    # notifications
    "RunNotification",
    # reports
    "RunReport",
    # config
    "GitOpsTarget",
    "NotificationChannel",
    "PipelineConfig",
    "RegistryCredentials",
    "build_pipeline_config",
    "load_pipeline_config",
]
