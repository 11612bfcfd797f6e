"""Image builder — one tagged image per deployable component.

Tags are ``{image_repository}:{build_id}``: deterministic for a given
build id.  A failed build raises ``BuildFailure`` straight away and no
reference for it is ever returned, so nothing half-built reaches the
publisher.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from canaryforge.core.process import run_command
from canaryforge.errors import BuildFailure
from canaryforge.models.release import Component, ImageReference

logger = logging.getLogger(__name__)


@runtime_checkable
class ContainerEngine(Protocol):
    """Protocol for container build backends."""

    def build(self, context: Path, image: ImageReference) -> None:
        """Build *context* and tag the result as *image*.

        Must raise on failure and must only apply the tag on success.
        """
        ...


class DockerEngine:
    """``docker build`` backend.

    ``docker build -t`` only applies the tag once the build succeeded, so a
    failed build never leaves a tagged image behind.
    """

    def __init__(self, binary: str = "docker", extra_args: Sequence[str] = ()) -> None:
        self._binary = binary
        self._extra_args = tuple(extra_args)

    def build(self, context: Path, image: ImageReference) -> None:
        result = run_command(
            [self._binary, "build", "-t", str(image), *self._extra_args, str(context)]
        )
        if not result.ok:
            raise RuntimeError(result.describe())


class ImageBuilder:
    """Builds component images through a ``ContainerEngine``.

    Parameters
    ----------
    engine:
        The container build backend.
    source_root:
        Directory that component ``source_path`` values are relative to.
    """

    def __init__(self, engine: ContainerEngine, source_root: Path = Path(".")) -> None:
        self._engine = engine
        self._source_root = Path(source_root)

    def build(self, component: Component, build_id: int) -> ImageReference:
        """Build *component* for run *build_id* and return its reference."""
        image = ImageReference.for_build(component, build_id)
        context = self._source_root / component.source_path
        logger.info("Building %s from %s", image, context)
        try:
            self._engine.build(context, image)
        except Exception as exc:
            logger.error("Build of %s failed: %s", component.name, exc)
            raise BuildFailure(component.name, str(exc)) from exc
        return image

    def build_all(
        self, components: Sequence[Component], build_id: int
    ) -> dict[str, ImageReference]:
        """Build every component in order, stopping at the first failure."""
        return {c.name: self.build(c, build_id) for c in components}
