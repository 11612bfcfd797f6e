"""Release models — components, image references, manifests, promotion records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Tier(str, Enum):
    """Rollout tier of a deployment manifest."""

    CANARY = "canary"
    STABLE = "stable"


class Component(BaseModel):
    """One deployable unit (e.g. ``frontend``, ``backend``).

    The set of components is fixed configuration and never changes
    during a run.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    source_path: Path
    image_repository: str  # e.g. "registry.example.com/acme/frontend"

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("component name must not be blank")
        return v


class ImageReference(BaseModel):
    """A container image reference, rendered as ``repository:tag``."""

    model_config = ConfigDict(frozen=True)

    repository: str
    tag: str

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"

    @classmethod
    def for_build(cls, component: Component, build_id: int) -> ImageReference:
        """The deterministic reference for *component* built by run *build_id*."""
        return cls(repository=component.image_repository, tag=str(build_id))

    @classmethod
    def parse(cls, text: str) -> ImageReference:
        """Parse ``repository:tag``.

        The tag separator is the last ``:`` after the last ``/``, so a
        registry port (``host:5000/app:42``) stays part of the repository.
        """
        text = text.strip()
        slash = text.rfind("/")
        colon = text.rfind(":")
        if colon <= slash or colon == len(text) - 1:
            raise ValueError(f"image reference has no tag: {text!r}")
        return cls(repository=text[:colon], tag=text[colon + 1:])


class Manifest(BaseModel):
    """A deployment descriptor for one ``{component, tier}`` pair."""

    model_config = ConfigDict(frozen=True)

    component: str
    tier: Tier
    image_reference: ImageReference
    storage_location: Path


class PromotionRecord(BaseModel):
    """Audit entry written once a component's promotion completes.

    Used for traceability only; no control decision reads it.
    """

    model_config = ConfigDict(frozen=True)

    component: str
    previous_stable_image: ImageReference
    new_stable_image: ImageReference
    new_canary_image: ImageReference
    build_id: int
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def stable_changed(self) -> bool:
        return self.previous_stable_image != self.new_stable_image
