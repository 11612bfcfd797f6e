"""Quality gate coordinator — runs every configured gate, in order.

Gates are independent: each gets its own scanner call and shares no state
with the others.  All gates run even after a hard failure so the report
is complete; the caller decides what a hard failure means for the run.
A gate with ``timeout_seconds`` is bounded by a wait with timeout, and a
timeout is recorded exactly like a FAIL.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

from canaryforge.core.artifact_archive import GateArtifactArchive
from canaryforge.gates.scanners import Scanner
from canaryforge.models.gates import (
    GateConfig,
    GateReport,
    GateResult,
    GateStatus,
    ScanOutcome,
)

logger = logging.getLogger(__name__)


class QualityGateCoordinator:
    """Sequences scanners and aggregates their verdicts into a ``GateReport``.

    Parameters
    ----------
    scanners:
        Mapping of gate ``kind`` to the scanner that implements it.
    archive:
        Optional archive that receives every gate's report.
    build_id:
        Default build the archived reports belong to; ``run`` may
        override it per call.
    """

    def __init__(
        self,
        scanners: Mapping[str, Scanner],
        archive: GateArtifactArchive | None = None,
        build_id: int = 0,
    ) -> None:
        self._scanners = dict(scanners)
        self._archive = archive
        self._build_id = build_id

    def run(
        self,
        source_tree: Path,
        gate_configs: Sequence[GateConfig],
        build_id: int | None = None,
    ) -> GateReport:
        """Run every gate against *source_tree* and return the full report."""
        archive_id = self._build_id if build_id is None else build_id
        results: list[GateResult] = []
        for gate in gate_configs:
            outcome = self._run_gate(source_tree, gate)
            result = GateResult(
                gate_name=gate.name,
                status=outcome.status,
                hard=gate.hard,
                detail=outcome.detail,
                artifact_ref=self._archive_outcome(archive_id, gate, outcome),
            )
            self._log_result(result)
            results.append(result)
        return GateReport(results=results)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_gate(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        scanner = self._scanners.get(gate.kind)
        if scanner is None:
            return ScanOutcome(
                status=GateStatus.ERROR,
                detail=f"no scanner registered for kind {gate.kind!r}",
            )

        if gate.timeout_seconds is None:
            return self._invoke(scanner, source_tree, gate)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"gate-{gate.name}")
        future = executor.submit(self._invoke, scanner, source_tree, gate)
        try:
            return future.result(timeout=gate.timeout_seconds)
        except FutureTimeoutError:
            return ScanOutcome(
                status=GateStatus.FAIL,
                detail=f"timed out after {gate.timeout_seconds:.0f}s",
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _invoke(scanner: Scanner, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        try:
            return scanner.scan(source_tree, gate)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Scanner for gate %s raised", gate.name)
            return ScanOutcome(
                status=GateStatus.ERROR, detail=f"{type(exc).__name__}: {exc}"
            )

    def _archive_outcome(
        self, build_id: int, gate: GateConfig, outcome: ScanOutcome
    ) -> str:
        if self._archive is None:
            return ""
        document = {
            "gate": gate.name,
            "kind": gate.kind,
            "hard": gate.hard,
            "status": outcome.status.value,
            "detail": outcome.detail,
            "findings": outcome.findings,
            "raw_report": outcome.raw_report,
        }
        data = json.dumps(document, indent=2, sort_keys=True).encode("utf-8")
        return self._archive.archive(build_id, gate.name, data)

    @staticmethod
    def _log_result(result: GateResult) -> None:
        if result.passed:
            logger.info("Gate %s passed: %s", result.gate_name, result.detail)
        elif result.hard:
            logger.error(
                "Hard gate %s %s: %s", result.gate_name, result.status.value, result.detail
            )
        else:
            logger.warning(
                "Report-only gate %s %s (not blocking): %s",
                result.gate_name,
                result.status.value,
                result.detail,
            )
