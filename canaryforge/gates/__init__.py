"""Quality and security gates.

The coordinator runs each configured gate through the scanner registered
for its ``kind``.  ``default_scanners`` builds the registry of shipped
scanner adapters.
"""

from __future__ import annotations

from pydantic import SecretStr

from canaryforge.gates.coordinator import QualityGateCoordinator
from canaryforge.gates.scanners import (
    CommandScanner,
    DependencyCheckScanner,
    Scanner,
    TrivyFsScanner,
)
from canaryforge.gates.sonar import SonarQualityGateScanner


def default_scanners(
    sonar_url: str = "", sonar_token: SecretStr | None = None
) -> dict[str, Scanner]:
    """Return the shipped scanners keyed by gate kind."""
    scanners: dict[str, Scanner] = {
        "command": CommandScanner(),
        "trivy-fs": TrivyFsScanner(),
        "dependency-check": DependencyCheckScanner(),
    }
    if sonar_url:
        scanners["sonar-quality-gate"] = SonarQualityGateScanner(sonar_url, sonar_token)
    return scanners


__all__ = [
    "CommandScanner",
    "DependencyCheckScanner",
    "QualityGateCoordinator",
    "Scanner",
    "SonarQualityGateScanner",
    "TrivyFsScanner",
    "default_scanners",
]
