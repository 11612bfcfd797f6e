"""Change classifier — decides whether a commit needs a release run at all.

A run whose changes touch nothing but excluded paths (typically the
deployment-manifest directory the pipeline itself commits to) is skipped.
Diff failures never abort the pipeline: the classifier fails open.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Protocol, runtime_checkable

from canaryforge.errors import ClassificationError

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    SKIP = "skip"
    PROCEED = "proceed"


@runtime_checkable
class ChangeSource(Protocol):
    """Anything that can list the paths changed between two revisions."""

    def changed_paths(self, base: str, head: str) -> set[str]:
        """Return changed paths; raise ``ClassificationError`` on failure."""
        ...


def classify(
    changed_paths: Iterable[str], exclusion_patterns: Iterable[str]
) -> Classification:
    """SKIP iff there are changes and every one matches an exclusion prefix."""
    paths = set(changed_paths)
    prefixes = tuple(exclusion_patterns)
    if paths and prefixes and all(p.startswith(prefixes) for p in paths):
        return Classification.SKIP
    return Classification.PROCEED


def classify_revisions(
    source: ChangeSource,
    base: str | None,
    head: str,
    exclusion_patterns: Iterable[str],
) -> tuple[Classification, set[str]]:
    """Classify the range ``base..head``, failing open to PROCEED.

    Returns the classification and the changed paths that were seen
    (empty when the diff could not be computed).
    """
    if base is None:
        logger.info("No previous revision; proceeding without a diff")
        return Classification.PROCEED, set()

    try:
        paths = source.changed_paths(base, head)
    except ClassificationError as exc:
        logger.warning("Could not compute changed paths, proceeding: %s", exc)
        return Classification.PROCEED, set()
    except Exception:
        logger.exception("Change source failed unexpectedly, proceeding")
        return Classification.PROCEED, set()

    decision = classify(paths, exclusion_patterns)
    logger.info(
        "%d changed path(s) between %s and %s: %s",
        len(paths),
        base[:12],
        head[:12],
        decision.value,
    )
    return decision, paths
