"""Quality gate models — gate configuration, per-gate results, and the report."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class GateStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class Severity(str, Enum):
    """Finding severities used by vulnerability-style scanners."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


DEFAULT_SEVERITY_THRESHOLD: frozenset[Severity] = frozenset(
    {Severity.CRITICAL, Severity.HIGH}
)


class GateConfig(BaseModel):
    """Configuration of one quality gate.

    ``hard`` has no default: whether a gate blocks the release is always
    an explicit decision of whoever writes the pipeline configuration.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str  # scanner kind, e.g. "trivy-fs", "sonar-quality-gate"
    hard: bool
    severity_threshold: frozenset[Severity] | None = None
    timeout_seconds: float | None = None
    params: dict[str, Any] = {}


class ScanOutcome(BaseModel):
    """What a scanner hands back to the coordinator."""

    model_config = ConfigDict(frozen=True)

    status: GateStatus
    detail: str = ""
    findings: list[dict[str, Any]] = []
    raw_report: str = ""  # the scanner's own output, archived verbatim


class GateResult(BaseModel):
    """Recorded outcome of one gate in one run."""

    model_config = ConfigDict(frozen=True)

    gate_name: str
    status: GateStatus
    hard: bool
    detail: str = ""
    artifact_ref: str = ""  # content address of the archived report

    @property
    def passed(self) -> bool:
        return self.status == GateStatus.PASS

    @property
    def blocks_release(self) -> bool:
        return self.hard and not self.passed


class GateReport(BaseModel):
    """Ordered results of every configured gate."""

    model_config = ConfigDict(frozen=True)

    results: list[GateResult] = []

    @property
    def hard_failures(self) -> list[GateResult]:
        return [r for r in self.results if r.blocks_release]

    @property
    def soft_failures(self) -> list[GateResult]:
        return [r for r in self.results if not r.hard and not r.passed]

    @property
    def passed(self) -> bool:
        """True when no hard gate failed."""
        return not self.hard_failures

    def get(self, gate_name: str) -> GateResult | None:
        for result in self.results:
            if result.gate_name == gate_name:
                return result
        return None
