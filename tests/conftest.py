"""Shared test fixtures and fakes for canaryforge."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from pydantic import SecretStr

from canaryforge.core.artifact_archive import GateArtifactArchive
from canaryforge.core.orchestrator import ReleasePipeline
from canaryforge.core.release_ledger import ReleaseLedger
from canaryforge.errors import ClassificationError, CommitConflict
from canaryforge.gates.coordinator import QualityGateCoordinator
from canaryforge.gitops.committer import GitOpsCommitter
from canaryforge.images.builder import ImageBuilder
from canaryforge.images.registry import RegistryPublisher
from canaryforge.manifests.promoter import ManifestPromoter
from canaryforge.manifests.store import ManifestStore
from canaryforge.models.config import PipelineConfig, RegistryCredentials
from canaryforge.models.gates import GateConfig, GateStatus, ScanOutcome
from canaryforge.models.notifications import RunNotification
from canaryforge.models.release import Component, ImageReference, Tier
from canaryforge.routing.dispatcher import NotificationDispatcher
from canaryforge.stages.context import ReleaseServices

REGISTRY = "registry.example.com/socialecho"

MANIFEST_TEMPLATE = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {component}-{tier}
  labels:
    app: {component}
    track: {tier}
spec:
  replicas: 1
  template:
    spec:
      containers:
        - name: {component}
          image: {image}
          ports:
            - containerPort: 8080
"""


def write_manifest(path: Path, component: str, tier: str, image: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        MANIFEST_TEMPLATE.format(component=component, tier=tier, image=image),
        encoding="utf-8",
    )


def manifest_tag(config: PipelineConfig, component: str, tier: Tier) -> str:
    return ManifestStore(config).read(component, tier).image_reference.tag


# ---------------------------------------------------------------------------
# Fakes for the external collaborators
# ---------------------------------------------------------------------------


class FakeChangeSource:
    """ChangeSource returning fixed paths, or raising ClassificationError."""

    def __init__(self, paths: Iterable[str] = ("client/src/app.js",), fail: bool = False) -> None:
        self.paths = set(paths)
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def changed_paths(self, base: str, head: str) -> set[str]:
        self.calls.append((base, head))
        if self.fail:
            raise ClassificationError("unknown revision")
        return set(self.paths)


class FakeScanner:
    """Scanner returning a fixed outcome (or running a callable)."""

    def __init__(
        self,
        status: GateStatus = GateStatus.PASS,
        detail: str = "",
        *,
        action: Callable[[Path, GateConfig], ScanOutcome] | None = None,
    ) -> None:
        self.outcome = ScanOutcome(status=status, detail=detail)
        self.action = action
        self.calls: list[str] = []

    def scan(self, source_tree: Path, gate: GateConfig) -> ScanOutcome:
        self.calls.append(gate.name)
        if self.action is not None:
            return self.action(source_tree, gate)
        return self.outcome


class FakeEngine:
    """ContainerEngine that records builds and fails for chosen repositories."""

    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.fail_for = set(fail_for)
        self.built: list[str] = []

    def build(self, context: Path, image: ImageReference) -> None:
        if any(image.repository.endswith(name) for name in self.fail_for):
            raise RuntimeError(f"build of {image} exited 1")
        self.built.append(str(image))


class FakeRegistryClient:
    """RegistryClient that records the session as a list of events."""

    def __init__(
        self,
        fail_push_for: Iterable[str] = (),
        fail_login: bool = False,
        fail_logout: bool = False,
    ) -> None:
        self.fail_push_for = set(fail_push_for)
        self.fail_login = fail_login
        self.fail_logout = fail_logout
        self.events: list[str] = []

    @property
    def pushed(self) -> list[str]:
        return [e.split(" ", 1)[1] for e in self.events if e.startswith("push ")]

    def login(self, credentials: RegistryCredentials) -> None:
        self.events.append("login")
        if self.fail_login:
            raise RuntimeError("unauthorized")

    def push(self, image: ImageReference) -> None:
        if any(image.repository.endswith(name) for name in self.fail_push_for):
            raise RuntimeError(f"denied: {image}")
        self.events.append(f"push {image}")

    def logout(self, registry: str) -> None:
        self.events.append("logout")
        if self.fail_logout:
            raise RuntimeError("logout failed")


class FakeConfigRepository:
    """In-memory stand-in for the GitOps configuration repository.

    ``remote`` and ``head`` map paths to committed bytes.  ``conflicts``
    push attempts are rejected before one succeeds; ``on_reset`` may
    rewrite ``remote`` to simulate another run having pushed first.
    """

    def __init__(
        self,
        tracked: Iterable[Path] = (),
        conflicts: int = 0,
        on_reset: Callable[[dict[Path, bytes]], None] | None = None,
    ) -> None:
        self.remote: dict[Path, bytes] = {p: p.read_bytes() for p in tracked}
        self.head: dict[Path, bytes] = dict(self.remote)
        self.staged: dict[Path, bytes] = {}
        self.conflicts = conflicts
        self.on_reset = on_reset
        self.calls: list[str] = []
        self.commits: list[str] = []
        self.pushes = 0

    def fetch(self) -> None:
        self.calls.append("fetch")

    def reset_to_remote(self) -> None:
        self.calls.append("reset")
        if self.on_reset is not None:
            self.on_reset(self.remote)
        for path, data in self.remote.items():
            path.write_bytes(data)
        self.head = dict(self.remote)
        self.staged = {}

    def add(self, paths: Iterable[Path]) -> None:
        self.calls.append("add")
        for path in paths:
            self.staged[Path(path)] = Path(path).read_bytes()

    def has_staged_changes(self) -> bool:
        return any(self.head.get(p) != data for p, data in self.staged.items())

    def commit(self, message: str) -> None:
        self.calls.append("commit")
        self.head.update(self.staged)
        self.staged = {}
        self.commits.append(message)

    def push(self) -> None:
        self.calls.append("push")
        if self.conflicts > 0:
            self.conflicts -= 1
            raise CommitConflict("! [rejected] HEAD -> main (fetch first)")
        self.remote = dict(self.head)
        self.pushes += 1


class RecordingSink:
    """Notification sink that keeps everything it receives."""

    def __init__(self, name: str = "recording", fail: bool = False) -> None:
        self._name = name
        self.fail = fail
        self.received: list[RunNotification] = []

    @property
    def sink_name(self) -> str:
        return self._name

    def accept(self, notification: RunNotification) -> None:
        if self.fail:
            raise ConnectionError("relay unreachable")
        self.received.append(notification)


# ---------------------------------------------------------------------------
# Pipeline harness
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    """A fully wired ReleasePipeline over fakes, plus handles on the fakes."""

    config: PipelineConfig
    pipeline: ReleasePipeline
    change_source: FakeChangeSource
    scanners: dict[str, FakeScanner]
    engine: FakeEngine
    registry: FakeRegistryClient
    repo: FakeConfigRepository
    sink: RecordingSink
    ledger: ReleaseLedger
    extras: dict[str, Any] = field(default_factory=dict)

    def tag(self, component: str, tier: Tier) -> str:
        return manifest_tag(self.config, component, tier)

    def manifest_bytes(self) -> dict[Path, bytes]:
        return {p: p.read_bytes() for p in sorted(self.repo.remote)}


@pytest.fixture
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    """Two components; stable at build 40, canary at build 41."""
    config = PipelineConfig(
        job_name="socialecho",
        run_url="https://ci.example.com/job/socialecho/",
        source_root=tmp_path / "src",
        config_repo_path=tmp_path / "config",
        components=(
            Component(name="frontend", source_path=Path("client"), image_repository=f"{REGISTRY}/frontend"),
            Component(name="backend", source_path=Path("server"), image_repository=f"{REGISTRY}/backend"),
        ),
        gates=(
            GateConfig(name="unit-tests", kind="command", hard=True),
            GateConfig(name="filesystem-vulnerabilities", kind="trivy-fs", hard=True),
            GateConfig(name="dependency-vulnerabilities", kind="dependency-check", hard=False),
        ),
        registry=RegistryCredentials(
            registry="registry.example.com", username="ci-bot", token=SecretStr("s3cret")
        ),
        ledger_path=tmp_path / "state" / "ledger.db",
        archive_path=tmp_path / "state" / "gate-reports",
    )
    (tmp_path / "src").mkdir()
    for component in ("frontend", "backend"):
        write_manifest(
            config.manifest_path(component, Tier.STABLE), component, "stable",
            f"{REGISTRY}/{component}:40",
        )
        write_manifest(
            config.manifest_path(component, Tier.CANARY), component, "canary",
            f"{REGISTRY}/{component}:41",
        )
    return config


@pytest.fixture
def make_harness(pipeline_config: PipelineConfig) -> Callable[..., Harness]:
    """Factory fixture: build a Harness, overriding any fake."""

    def _factory(
        config: PipelineConfig | None = None,
        change_source: FakeChangeSource | None = None,
        scanners: dict[str, FakeScanner] | None = None,
        engine: FakeEngine | None = None,
        registry: FakeRegistryClient | None = None,
        conflicts: int = 0,
        on_reset: Callable[[dict[Path, bytes]], None] | None = None,
        max_retries: int = 3,
        sink: RecordingSink | None = None,
    ) -> Harness:
        config = config or pipeline_config
        scanners = scanners if scanners is not None else {
            "command": FakeScanner(),
            "trivy-fs": FakeScanner(),
            "dependency-check": FakeScanner(),
        }
        change_source = change_source or FakeChangeSource()
        engine = engine or FakeEngine()
        registry = registry or FakeRegistryClient()
        sink = sink or RecordingSink()
        tracked = [
            config.manifest_path(c.name, tier)
            for c in config.components
            for tier in (Tier.STABLE, Tier.CANARY)
        ]
        repo = FakeConfigRepository(tracked, conflicts=conflicts, on_reset=on_reset)
        ledger = ReleaseLedger(config.ledger_path)

        services = ReleaseServices(
            change_source=change_source,
            gates=QualityGateCoordinator(scanners, archive=GateArtifactArchive(config.archive_path)),
            builder=ImageBuilder(engine, source_root=config.source_root),
            publisher=RegistryPublisher(registry),
            promoter=ManifestPromoter(ManifestStore(config)),
            committer=GitOpsCommitter(repo, max_retries=max_retries),
        )
        dispatcher = NotificationDispatcher(job_name=config.job_name)
        dispatcher.register_sink(sink)
        pipeline = ReleasePipeline(config, services, dispatcher, ledger=ledger)
        return Harness(
            config=config,
            pipeline=pipeline,
            change_source=change_source,
            scanners=scanners,
            engine=engine,
            registry=registry,
            repo=repo,
            sink=sink,
            ledger=ledger,
        )

    return _factory


@pytest.fixture
def ledger(tmp_path: Path) -> ReleaseLedger:
    """Provide a fresh ReleaseLedger backed by a temp SQLite database."""
    return ReleaseLedger(tmp_path / "test_ledger.db")


@pytest.fixture
def archive(tmp_path: Path) -> GateArtifactArchive:
    return GateArtifactArchive(tmp_path / "reports")
