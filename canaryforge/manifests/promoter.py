"""Two-tier manifest promotion.

Per component there is always one canary and one stable manifest.  A run
with build id N:

1. ``promote_stable`` for every component: stable := current canary
   (the image written by run N-1).
2. ``promote_canary`` for every component: canary := image N.

Step 1 must finish for all components before step 2 touches any canary,
otherwise the canary being promoted would already be build N and the
one-run lag between canary and stable would collapse.

Promotion is unconditional by default: no health signal gates it, the
canary has "soaked" for exactly one pipeline run.  ``PromotionPolicy`` is
the hook for adding a canary health check.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from canaryforge.errors import PromotionFailure
from canaryforge.manifests.store import ManifestStore
from canaryforge.models.release import ImageReference, PromotionRecord, Tier

logger = logging.getLogger(__name__)


@runtime_checkable
class PromotionPolicy(Protocol):
    """Decides whether a component's current canary may become stable."""

    def check(self, component: str, canary: ImageReference) -> bool:
        """Return ``True`` to allow promotion of *canary*."""
        ...


class UnconditionalPromotion:
    """Always promotes.  The soak period is one pipeline run."""

    def check(self, component: str, canary: ImageReference) -> bool:
        return True


class PromotionResult(BaseModel):
    """What one call to ``ManifestPromoter.promote`` did."""

    model_config = ConfigDict(frozen=True)

    records: list[PromotionRecord]
    touched_paths: list[Path]

    @property
    def changed(self) -> bool:
        return any(
            r.stable_changed or r.new_stable_image != r.new_canary_image
            for r in self.records
        )


class ManifestPromoter:
    """Owns the canary/stable state of every component's manifests."""

    def __init__(
        self, store: ManifestStore, policy: PromotionPolicy | None = None
    ) -> None:
        self._store = store
        self._policy = policy or UnconditionalPromotion()

    def promote_stable(self, component: str) -> ImageReference:
        """Overwrite stable with the canary currently on disk; return it."""
        canary = self._store.read(component, Tier.CANARY).image_reference
        if not self._policy.check(component, canary):
            raise PromotionFailure(
                component,
                f"{type(self._policy).__name__} refused to promote {canary}",
            )
        self._store.write(component, Tier.STABLE, canary)
        return canary

    def promote_canary(self, component: str, new_ref: ImageReference) -> None:
        """Overwrite only the canary manifest with *new_ref*."""
        self._store.write(component, Tier.CANARY, new_ref)

    def current_canaries(self, components: Sequence[str]) -> dict[str, ImageReference]:
        """The canary image each component's manifest points at right now."""
        return {c: self._store.read(c, Tier.CANARY).image_reference for c in components}

    def promote(
        self,
        components: Sequence[str],
        new_refs: Mapping[str, ImageReference],
        build_id: int,
    ) -> PromotionResult:
        """Promote every component: all stables first, then all canaries.

        On any failure every manifest is restored to the bytes it had
        before this call, and ``PromotionFailure`` is raised.
        """
        missing = [c for c in components if c not in new_refs]
        if missing:
            raise PromotionFailure(missing[0], "no newly built image to promote")

        paths = [
            self._store.path(c, tier) for c in components for tier in (Tier.STABLE, Tier.CANARY)
        ]
        # Read both tiers up front: a missing manifest fails before any write.
        previous_stable = {
            c: self._store.read(c, Tier.STABLE).image_reference for c in components
        }
        for c in components:
            self._store.read(c, Tier.CANARY)
        snapshot = self._store.snapshot(paths)

        try:
            new_stable = {c: self.promote_stable(c) for c in components}
            for c in components:
                self.promote_canary(c, new_refs[c])
        except Exception as exc:
            self._store.restore(snapshot)
            if isinstance(exc, PromotionFailure):
                raise
            raise PromotionFailure("*", str(exc)) from exc

        records = [
            PromotionRecord(
                component=c,
                previous_stable_image=previous_stable[c],
                new_stable_image=new_stable[c],
                new_canary_image=new_refs[c],
                build_id=build_id,
            )
            for c in components
        ]
        for record in records:
            logger.info(
                "%s: stable %s -> %s, canary -> %s",
                record.component,
                record.previous_stable_image,
                record.new_stable_image,
                record.new_canary_image,
            )
        return PromotionResult(records=records, touched_paths=paths)
