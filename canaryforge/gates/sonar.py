"""Static-analysis score gate backed by a SonarQube-compatible server.

The scan itself is a command (``sonar-scanner`` by default) that uploads
an analysis and leaves ``.scannerwork/report-task.txt`` behind.  The gate
verdict is only known once the server has processed that analysis, so the
scanner then polls the server over HTTP until it has a quality-gate
status or the gate's deadline passes.  A missed deadline is a FAIL.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

import httpx
from pydantic import SecretStr

from canaryforge.core.process import run_command
from canaryforge.models.gates import GateConfig, GateStatus, ScanOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_POLL_INTERVAL = 5.0
_PENDING_TASK_STATES = {"PENDING", "IN_PROGRESS"}


class SonarQualityGateScanner:
    """Runs the analysis, then waits for the server's quality-gate verdict.

    Parameters
    ----------
    server_url:
        Base URL of the analysis server.
    token:
        API token, sent as the basic-auth user name.
    client:
        Optional ``httpx.Client``; tests pass one built on ``MockTransport``.
    clock / sleep:
        Injectable for deterministic deadline tests.
    """

    def __init__(
        self,
        server_url: str,
        token: SecretStr | None = None,
        *,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._token = token or SecretStr("")
        self._client = client
        self._clock = clock
        self._sleep = sleep

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        timeout = gate.timeout_seconds or DEFAULT_TIMEOUT_SECONDS
        deadline = self._clock() + timeout

        if not gate.params.get("skip_analysis", False):
            failure = self._run_analysis(source_tree, gate)
            if failure is not None:
                return failure

        task_file = source_tree / gate.params.get(
            "report_task_file", ".scannerwork/report-task.txt"
        )
        task_id = self.read_task_id(task_file)
        if not task_id:
            return ScanOutcome(
                status=GateStatus.ERROR, detail=f"no ceTaskId in {task_file}"
            )

        poll_interval = float(gate.params.get("poll_interval", DEFAULT_POLL_INTERVAL))
        client = self._client or httpx.Client(
            base_url=self._server_url,
            auth=(self._token.get_secret_value(), ""),
            timeout=httpx.Timeout(30.0, connect=10.0),
        )
        try:
            return self._await_verdict(client, task_id, deadline, poll_interval, timeout)
        except httpx.HTTPError as exc:
            return ScanOutcome(
                status=GateStatus.ERROR, detail=f"analysis server error: {exc}"
            )
        finally:
            if self._client is None:
                client.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_analysis(self, source_tree: Path, gate: GateConfig) -> ScanOutcome | None:
        command = gate.params.get("command") or [
            "sonar-scanner",
            f"-Dsonar.projectKey={gate.params.get('project_key', gate.name)}",
            f"-Dsonar.host.url={self._server_url}",
        ]
        env = None
        if self._token.get_secret_value():
            env = {**os.environ, "SONAR_TOKEN": self._token.get_secret_value()}
        result = run_command(
            command, cwd=source_tree, timeout=gate.timeout_seconds, env=env
        )
        if not result.ok:
            return ScanOutcome(
                status=GateStatus.ERROR,
                detail=f"analysis failed: {result.describe()}",
                raw_report=result.stdout + result.stderr,
            )
        return None

    @staticmethod
    def read_task_id(task_file: Path) -> str:
        """Pull ``ceTaskId`` out of the scanner's ``key=value`` report file."""
        if not task_file.exists():
            return ""
        for line in task_file.read_text(encoding="utf-8").splitlines():
            key, sep, value = line.partition("=")
            if sep and key.strip() == "ceTaskId":
                return value.strip()
        return ""

    def _await_verdict(
        self,
        client: httpx.Client,
        task_id: str,
        deadline: float,
        poll_interval: float,
        timeout: float,
    ) -> ScanOutcome:
        analysis_id = ""
        while True:
            response = client.get("/api/ce/task", params={"id": task_id})
            response.raise_for_status()
            task = response.json().get("task", {})
            status = task.get("status", "")
            if status not in _PENDING_TASK_STATES:
                if status != "SUCCESS":
                    return ScanOutcome(
                        status=GateStatus.ERROR,
                        detail=f"analysis task {task_id} ended {status or 'UNKNOWN'}",
                    )
                analysis_id = task.get("analysisId", "")
                break
            if self._clock() + poll_interval > deadline:
                logger.warning(
                    "Quality gate verdict not ready after %.0fs (task %s)", timeout, task_id
                )
                return ScanOutcome(
                    status=GateStatus.FAIL,
                    detail=f"timed out after {timeout:.0f}s waiting for quality gate",
                )
            self._sleep(poll_interval)

        response = client.get(
            "/api/qualitygates/project_status", params={"analysisId": analysis_id}
        )
        response.raise_for_status()
        project_status = response.json().get("projectStatus", {})
        verdict = project_status.get("status", "NONE")
        failed_conditions = [
            c.get("metricKey", "?")
            for c in project_status.get("conditions", [])
            if c.get("status") == "ERROR"
        ]
        detail = f"quality gate {verdict}"
        if failed_conditions:
            detail += f" (failed: {', '.join(failed_conditions)})"
        return ScanOutcome(
            status=GateStatus.PASS if verdict == "OK" else GateStatus.FAIL,
            detail=detail,
            raw_report=response.text,
        )
