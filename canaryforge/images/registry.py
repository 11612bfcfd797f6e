"""Registry publisher: one authenticated session per run.

``registry_session`` logs in once, yields, and logs out on every exit
path: success, a failed push, or any exception.  A failing logout is
logged and never hides the error that ended the session.

A push failure for any image is fatal for the whole run (not just the
failing component): promoting some components and not others would leave
the cluster split across two releases.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from canaryforge.core.process import run_command
from canaryforge.errors import PushFailure
from canaryforge.models.config import RegistryCredentials
from canaryforge.models.release import ImageReference

logger = logging.getLogger(__name__)

REGISTRY_SUBJECT = "registry"  # component label for session-level failures


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for container registry backends."""

    def login(self, credentials: RegistryCredentials) -> None: ...

    def push(self, image: ImageReference) -> None: ...

    def logout(self, registry: str) -> None: ...


class DockerRegistryClient:
    """``docker login/push/logout`` backend.

    Credentials are written to a throwaway ``DOCKER_CONFIG`` directory that
    lives only for the session, and the token is fed through stdin so it
    never appears on a command line.
    """

    def __init__(self, binary: str = "docker") -> None:
        self._binary = binary
        self._config_dir: Path | None = None

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self._config_dir is not None:
            env["DOCKER_CONFIG"] = str(self._config_dir)
        return env

    def login(self, credentials: RegistryCredentials) -> None:
        self._config_dir = Path(tempfile.mkdtemp(prefix="canaryforge-docker-"))
        args = [self._binary, "login", "--username", credentials.username, "--password-stdin"]
        if credentials.registry:
            args.append(credentials.registry)
        try:
            result = run_command(
                args,
                stdin=credentials.token.get_secret_value(),
                env=self._env(),
                timeout=120,
            )
            if not result.ok:
                raise RuntimeError(result.describe())
        except Exception:
            # No session was opened, so logout() will not run.
            self._discard_config()
            raise

    def push(self, image: ImageReference) -> None:
        result = run_command([self._binary, "push", str(image)], env=self._env())
        if not result.ok:
            raise RuntimeError(result.describe())

    def logout(self, registry: str) -> None:
        try:
            args = [self._binary, "logout"]
            if registry:
                args.append(registry)
            result = run_command(args, env=self._env(), timeout=60)
            if not result.ok:
                raise RuntimeError(result.describe())
        finally:
            self._discard_config()

    def _discard_config(self) -> None:
        if self._config_dir is not None:
            shutil.rmtree(self._config_dir, ignore_errors=True)
            self._config_dir = None


@contextmanager
def registry_session(
    client: RegistryClient, credentials: RegistryCredentials
) -> Iterator[RegistryClient]:
    """Authenticate once; always release the session on exit."""
    try:
        client.login(credentials)
    except Exception as exc:
        raise PushFailure(REGISTRY_SUBJECT, f"login failed: {exc}") from exc
    logger.info("Logged in to %s as %s", credentials.registry or "default registry", credentials.username)
    try:
        yield client
    finally:
        try:
            client.logout(credentials.registry)
            logger.info("Logged out of %s", credentials.registry or "default registry")
        except Exception:  # noqa: BLE001
            logger.exception("Registry logout failed")


class RegistryPublisher:
    """Publishes every built image inside a single registry session."""

    def __init__(self, client: RegistryClient) -> None:
        self._client = client

    def publish(
        self,
        images: Mapping[str, ImageReference],
        credentials: RegistryCredentials | None,
    ) -> list[ImageReference]:
        """Push *images* (component name -> reference) in order.

        Raises ``PushFailure`` naming the first component whose push
        failed; the session is released either way.
        """
        if credentials is None:
            raise PushFailure(REGISTRY_SUBJECT, "no registry credentials configured")

        published: list[ImageReference] = []
        with registry_session(self._client, credentials) as session:
            for component, image in images.items():
                logger.info("Pushing %s", image)
                try:
                    session.push(image)
                except Exception as exc:
                    raise PushFailure(component, str(exc)) from exc
                published.append(image)
        return published
