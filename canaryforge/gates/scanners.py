"""Scanner capability and the command-line scanner adapters.

Every scanner satisfies the ``Scanner`` protocol: given the source tree
and the gate's configuration it returns a ``ScanOutcome``.  Scanners do
not decide whether a failure blocks the release; the coordinator does,
from the gate's ``hard`` flag.

Shipped kinds:
    ``command``           — any command; exit 0 passes.
    ``trivy-fs``          — filesystem vulnerability scan (Trivy JSON).
    ``dependency-check``  — dependency vulnerability scan (OWASP JSON).
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from canaryforge.core.process import run_command
from canaryforge.models.gates import (
    DEFAULT_SEVERITY_THRESHOLD,
    GateConfig,
    GateStatus,
    ScanOutcome,
    Severity,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Scanner(Protocol):
    """Protocol for external quality/security scanners."""

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        """Scan *source_tree* and report pass, fail or error."""
        ...


def parse_severity(value: Any) -> Severity:
    try:
        return Severity(str(value).upper())
    except ValueError:
        return Severity.UNKNOWN


def threshold_outcome(
    findings: list[dict[str, Any]],
    threshold: frozenset[Severity] | None,
    raw_report: str,
) -> ScanOutcome:
    """FAIL when any finding's severity is inside *threshold*."""
    threshold = threshold or DEFAULT_SEVERITY_THRESHOLD
    blocking = [f for f in findings if parse_severity(f.get("severity")) in threshold]
    counts: dict[str, int] = {}
    for finding in findings:
        sev = parse_severity(finding.get("severity")).value
        counts[sev] = counts.get(sev, 0) + 1
    summary = ", ".join(f"{n} {sev}" for sev, n in sorted(counts.items())) or "no findings"

    if blocking:
        levels = "/".join(sorted(s.value for s in threshold))
        return ScanOutcome(
            status=GateStatus.FAIL,
            detail=f"{len(blocking)} finding(s) at {levels} ({summary})",
            findings=findings,
            raw_report=raw_report,
        )
    return ScanOutcome(
        status=GateStatus.PASS, detail=summary, findings=findings, raw_report=raw_report
    )


class CommandScanner:
    """Runs ``params.command``; exit status 0 passes, anything else fails."""

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        command = gate.params.get("command")
        if not command:
            return ScanOutcome(
                status=GateStatus.ERROR, detail="gate has no 'command' parameter"
            )
        result = run_command(command, cwd=source_tree, timeout=gate.timeout_seconds)
        if result.returncode in (124, 127):
            return ScanOutcome(status=GateStatus.ERROR, detail=result.describe())
        status = GateStatus.PASS if result.ok else GateStatus.FAIL
        return ScanOutcome(
            status=status,
            detail=f"exit code {result.returncode}",
            raw_report=result.stdout + result.stderr,
        )


class TrivyFsScanner:
    """Filesystem vulnerability scan via ``trivy fs --format json``."""

    def __init__(self, binary: str = "trivy") -> None:
        self._binary = binary

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        args = [
            self._binary, "fs",
            "--format", "json",
            "--quiet",
            "--exit-code", "0",
            *gate.params.get("extra_args", []),
            str(source_tree),
        ]
        result = run_command(args, timeout=gate.timeout_seconds)
        if not result.ok:
            return ScanOutcome(status=GateStatus.ERROR, detail=result.describe())
        try:
            findings = self.parse_report(result.stdout)
        except ValueError as exc:
            return ScanOutcome(
                status=GateStatus.ERROR,
                detail=f"unreadable trivy report: {exc}",
                raw_report=result.stdout,
            )
        return threshold_outcome(findings, gate.severity_threshold, result.stdout)

    @staticmethod
    def parse_report(text: str) -> list[dict[str, Any]]:
        """Flatten a Trivy JSON report into ``{id, package, severity, target}`` dicts."""
        report = json.loads(text) if text.strip() else {}
        findings: list[dict[str, Any]] = []
        for target in report.get("Results") or []:
            for vuln in target.get("Vulnerabilities") or []:
                findings.append({
                    "id": vuln.get("VulnerabilityID", ""),
                    "package": vuln.get("PkgName", ""),
                    "severity": vuln.get("Severity", "UNKNOWN"),
                    "target": target.get("Target", ""),
                })
        return findings


class DependencyCheckScanner:
    """Dependency vulnerability scan via OWASP ``dependency-check``."""

    report_name = "dependency-check-report.json"

    def __init__(self, binary: str = "dependency-check") -> None:
        self._binary = binary

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        with tempfile.TemporaryDirectory(prefix="depcheck-") as out_dir:
            args = [
                self._binary,
                "--scan", str(source_tree),
                "--format", "JSON",
                "--out", out_dir,
                "--project", gate.params.get("project", gate.name),
                *gate.params.get("extra_args", []),
            ]
            result = run_command(args, timeout=gate.timeout_seconds)
            report_path = Path(out_dir) / self.report_name
            if not result.ok or not report_path.exists():
                return ScanOutcome(status=GateStatus.ERROR, detail=result.describe())
            raw = report_path.read_text(encoding="utf-8")

        try:
            findings = self.parse_report(raw)
        except ValueError as exc:
            return ScanOutcome(
                status=GateStatus.ERROR,
                detail=f"unreadable dependency-check report: {exc}",
                raw_report=raw,
            )
        return threshold_outcome(findings, gate.severity_threshold, raw)

    @staticmethod
    def parse_report(text: str) -> list[dict[str, Any]]:
        report = json.loads(text)
        findings: list[dict[str, Any]] = []
        for dep in report.get("dependencies") or []:
            for vuln in dep.get("vulnerabilities") or []:
                findings.append({
                    "id": vuln.get("name", ""),
                    "package": dep.get("fileName", ""),
                    "severity": vuln.get("severity", "UNKNOWN"),
                })
        return findings
