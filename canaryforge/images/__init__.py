"""Container image build and publication."""

from canaryforge.images.builder import ContainerEngine, DockerEngine, ImageBuilder
from canaryforge.images.registry import (
    DockerRegistryClient,
    RegistryClient,
    RegistryPublisher,
    registry_session,
)

__all__ = [
    "ContainerEngine",
    "DockerEngine",
    "DockerRegistryClient",
    "ImageBuilder",
    "RegistryClient",
    "RegistryPublisher",
    "registry_session",
]
