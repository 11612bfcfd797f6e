"""Content-addressed archive for gate reports.

Layout: {base_path}/{build_id}/{gate_name}-{sha256[:12]}.json

Every gate result (hard or soft, pass or fail) has its report archived so
report-only gates still leave a reviewable artifact behind.  Archived
files are never rewritten.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from canaryforge.core.hasher import content_address, sha256_hex

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ArtifactIntegrityError(RuntimeError):
    """Raised when an archived report's hash does not match its address."""


class GateArtifactArchive:
    """Per-build archive of gate reports.

    Parameters
    ----------
    base_path:
        Root directory of the archive.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _artifact_path(self, build_id: int, gate_name: str, digest: str) -> Path:
        safe_name = _UNSAFE_CHARS.sub("_", gate_name)
        return self._base / str(build_id) / f"{safe_name}-{digest[:12]}.json"

    def archive(self, build_id: int, gate_name: str, data: bytes) -> str:
        """Store a gate report and return its ``sha256:`` address.

        Archiving identical bytes twice is a no-op.
        """
        digest = sha256_hex(data)
        path = self._artifact_path(build_id, gate_name, digest)
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            logger.debug("Archived %s report for build %d at %s", gate_name, build_id, path)
        return content_address(data)

    def retrieve(self, build_id: int, gate_name: str, address: str) -> bytes:
        """Return archived bytes, verifying them against *address*."""
        digest = address.removeprefix("sha256:")
        path = self._artifact_path(build_id, gate_name, digest)
        if not path.exists():
            raise FileNotFoundError(f"Gate report not found: {gate_name} {address}")
        data = path.read_bytes()
        if sha256_hex(data) != digest:
            raise ArtifactIntegrityError(
                f"Archived report {path} does not match {address}"
            )
        return data

    def list_reports(self, build_id: int) -> list[Path]:
        """Return archived report files for a build, sorted by name."""
        build_dir = self._base / str(build_id)
        if not build_dir.is_dir():
            return []
        return sorted(build_dir.glob("*.json"))
