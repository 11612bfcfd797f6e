"""Tests for the image builder and the registry publisher session."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr

from canaryforge.core.process import CommandResult
from canaryforge.errors import BuildFailure, PushFailure
from canaryforge.images import registry as registry_module
from canaryforge.images.builder import ImageBuilder
from canaryforge.images.registry import (
    DockerRegistryClient,
    RegistryPublisher,
    registry_session,
)
from canaryforge.models.config import RegistryCredentials
from canaryforge.models.release import Component, ImageReference
from conftest import REGISTRY, FakeEngine, FakeRegistryClient

CREDENTIALS = RegistryCredentials(
    registry="registry.example.com", username="ci-bot", token=SecretStr("s3cret")
)

COMPONENTS = [
    Component(name="frontend", source_path=Path("client"), image_repository=f"{REGISTRY}/frontend"),
    Component(name="backend", source_path=Path("server"), image_repository=f"{REGISTRY}/backend"),
]


def _images(build_id: int = 42) -> dict[str, ImageReference]:
    return {c.name: ImageReference.for_build(c, build_id) for c in COMPONENTS}


class TestImageBuilder:
    def test_tag_is_the_build_id(self, tmp_path: Path):
        engine = FakeEngine()
        image = ImageBuilder(engine, source_root=tmp_path).build(COMPONENTS[0], 42)
        assert str(image) == f"{REGISTRY}/frontend:42"
        assert engine.built == [f"{REGISTRY}/frontend:42"]

    def test_build_all_in_order(self, tmp_path: Path):
        images = ImageBuilder(FakeEngine(), source_root=tmp_path).build_all(COMPONENTS, 7)
        assert list(images) == ["frontend", "backend"]
        assert {i.tag for i in images.values()} == {"7"}

    def test_failure_raises_and_stops(self, tmp_path: Path):
        engine = FakeEngine(fail_for={"frontend"})
        with pytest.raises(BuildFailure) as exc_info:
            ImageBuilder(engine, source_root=tmp_path).build_all(COMPONENTS, 42)
        assert exc_info.value.component == "frontend"
        assert engine.built == []

    def test_context_is_relative_to_source_root(self, tmp_path: Path):
        seen: list[Path] = []

        class Recorder:
            def build(self, context: Path, image: ImageReference) -> None:
                seen.append(context)

        ImageBuilder(Recorder(), source_root=tmp_path).build(COMPONENTS[1], 1)
        assert seen == [tmp_path / "server"]


class TestRegistryPublisher:
    def test_single_session_for_all_pushes(self):
        client = FakeRegistryClient()
        published = RegistryPublisher(client).publish(_images(), CREDENTIALS)
        assert len(published) == 2
        assert client.events == [
            "login",
            f"push {REGISTRY}/frontend:42",
            f"push {REGISTRY}/backend:42",
            "logout",
        ]

    def test_push_failure_names_component_and_logs_out(self):
        client = FakeRegistryClient(fail_push_for={"backend"})
        with pytest.raises(PushFailure) as exc_info:
            RegistryPublisher(client).publish(_images(), CREDENTIALS)
        assert exc_info.value.component == "backend"
        assert client.events[-1] == "logout"

    def test_login_failure(self):
        client = FakeRegistryClient(fail_login=True)
        with pytest.raises(PushFailure, match="login failed"):
            RegistryPublisher(client).publish(_images(), CREDENTIALS)
        assert client.pushed == []

    def test_logout_failure_does_not_mask_success(self):
        client = FakeRegistryClient(fail_logout=True)
        published = RegistryPublisher(client).publish(_images(), CREDENTIALS)
        assert len(published) == 2

    def test_missing_credentials(self):
        client = FakeRegistryClient()
        with pytest.raises(PushFailure) as exc_info:
            RegistryPublisher(client).publish(_images(), None)
        assert exc_info.value.component == "registry"
        assert client.events == []

    def test_session_logs_out_when_body_raises(self):
        client = FakeRegistryClient()
        with pytest.raises(KeyError):
            with registry_session(client, CREDENTIALS):
                raise KeyError("boom")
        assert client.events == ["login", "logout"]


class TestDockerRegistryClient:
    def test_token_goes_through_stdin(self, monkeypatch: pytest.MonkeyPatch):
        calls: list[tuple[tuple[str, ...], dict]] = []

        def fake(args, **kwargs):
            calls.append((tuple(args), kwargs))
            return CommandResult(tuple(args), 0, "", "")

        monkeypatch.setattr(registry_module, "run_command", fake)
        client = DockerRegistryClient()
        client.login(CREDENTIALS)
        config_dir = Path(calls[0][1]["env"]["DOCKER_CONFIG"])
        client.logout(CREDENTIALS.registry)

        login_args, login_kwargs = calls[0]
        assert "s3cret" not in login_args
        assert login_kwargs["stdin"] == "s3cret"
        assert "--password-stdin" in login_args
        assert not config_dir.exists()

    def test_failed_push_raises(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            registry_module, "run_command",
            lambda args, **kwargs: CommandResult(tuple(args), 1, "", "denied"),
        )
        with pytest.raises(RuntimeError, match="denied"):
            DockerRegistryClient().push(_images()["frontend"])

    def test_failed_login_removes_the_credential_directory(self, monkeypatch: pytest.MonkeyPatch):
        seen: list[tuple[tuple[str, ...], dict]] = []

        def fake(args, **kwargs):
            seen.append((tuple(args), kwargs))
            return CommandResult(tuple(args), 1, "", "unauthorized: incorrect username or password")

        monkeypatch.setattr(registry_module, "run_command", fake)
        client = DockerRegistryClient()
        with pytest.raises(PushFailure, match="login failed"):
            RegistryPublisher(client).publish(_images(), CREDENTIALS)

        assert [args[1] for args, _ in seen] == ["login"]
        config_dir = Path(seen[0][1]["env"]["DOCKER_CONFIG"])
        assert not config_dir.exists()
        assert client._env().get("DOCKER_CONFIG") != str(config_dir)
