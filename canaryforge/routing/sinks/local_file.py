"""Local file sink — writes each run notification to a JSON file.

Layout: {base_path}/{build_id}/notification-{status}.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from canaryforge.core.hasher import canonical_json_bytes
from canaryforge.models.notifications import RunNotification

logger = logging.getLogger(__name__)


class LocalFileSink:
    """Writes notifications to local JSON files.

    Parameters
    ----------
    base_path:
        Root directory for notification files.  Defaults to
        ``.canaryforge/notifications``.
    """

    def __init__(self, base_path: Path | str | None = None) -> None:
        self._base = Path(base_path) if base_path else Path(".canaryforge/notifications")
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def sink_name(self) -> str:
        return "local_file"

    def accept(self, notification: RunNotification) -> None:
        target_dir = self._base / str(notification.build_id)
        target_dir.mkdir(parents=True, exist_ok=True)

        target_file = target_dir / f"notification-{notification.status.lower()}.json"
        data = notification.model_dump(mode="json")
        data["status"] = notification.status
        target_file.write_bytes(canonical_json_bytes(data))

        logger.debug("LocalFileSink: wrote %s", target_file)

    def list_notifications(self, build_id: int | None = None) -> list[Path]:
        """List notification files, optionally for one build only."""
        root = self._base / str(build_id) if build_id is not None else self._base
        if not root.exists():
            return []
        return sorted(root.rglob("*.json"))

    def read_notification(self, path: Path) -> dict:
        return json.loads(path.read_bytes())
