"""Manifest files on disk.

Each ``{component, tier}`` manifest exposes exactly one greppable line::

    image: <repository>:<tag>

Writes rewrite that one line and leave every other byte of the file
alone (indentation, quoting, comments, line endings included).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from canaryforge.errors import PromotionFailure
from canaryforge.models.config import PipelineConfig
from canaryforge.models.release import ImageReference, Manifest, Tier

logger = logging.getLogger(__name__)

IMAGE_LINE = re.compile(
    r"^(?P<lead>[ \t]*(?:-[ \t]+)?image:[ \t]*)"
    r"(?P<quote>[\"']?)(?P<ref>[^\s\"'#]+)(?P=quote)"
    r"(?P<rest>[^\n]*)$",
    re.MULTILINE,
)


class ManifestStore:
    """Reads and rewrites the canary/stable manifests of a configuration repo."""

    def __init__(self, config: PipelineConfig) -> None:
        self._config = config

    def path(self, component: str, tier: Tier) -> Path:
        return self._config.manifest_path(component, tier)

    def read(self, component: str, tier: Tier) -> Manifest:
        """Load the manifest for ``{component, tier}``.

        Raises ``PromotionFailure`` if the file is missing or does not hold
        exactly one parseable image line.
        """
        path = self.path(component, tier)
        text = self._read_text(component, path)
        match = self._single_image_line(component, path, text)
        try:
            image = ImageReference.parse(match.group("ref"))
        except ValueError as exc:
            raise PromotionFailure(component, f"{path}: {exc}") from exc
        return Manifest(
            component=component, tier=tier, image_reference=image, storage_location=path
        )

    def write(self, component: str, tier: Tier, image: ImageReference) -> bool:
        """Point the manifest at *image*.  Returns True if the bytes changed."""
        path = self.path(component, tier)
        text = self._read_text(component, path)
        match = self._single_image_line(component, path, text)
        updated = (
            text[: match.start("ref")] + str(image) + text[match.end("ref"):]
        )
        if updated == text:
            logger.debug("%s already points at %s", path, image)
            return False
        path.write_bytes(updated.encode("utf-8"))
        logger.info("%s %s -> %s", component, tier.value, image)
        return True

    def snapshot(self, paths: list[Path]) -> dict[Path, bytes]:
        """Capture the current bytes of *paths* for a later ``restore``."""
        return {p: p.read_bytes() for p in paths}

    def restore(self, snapshot: dict[Path, bytes]) -> None:
        for path, data in snapshot.items():
            if not path.exists() or path.read_bytes() != data:
                path.write_bytes(data)
                logger.warning("Restored %s", path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _read_text(component: str, path: Path) -> str:
        try:
            # bytes -> str keeps CRLF line endings intact
            return path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            raise PromotionFailure(component, f"manifest missing: {path}") from None

    @staticmethod
    def _single_image_line(component: str, path: Path, text: str) -> re.Match[str]:
        matches = list(IMAGE_LINE.finditer(text))
        if len(matches) != 1:
            raise PromotionFailure(
                component,
                f"{path}: expected exactly one 'image:' line, found {len(matches)}",
            )
        return matches[0]
