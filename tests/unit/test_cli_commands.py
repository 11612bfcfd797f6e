"""Tests for the Typer CLI commands."""

from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from canaryforge.cli.app import app
from canaryforge.cli.commands import classify as classify_module
from canaryforge.cli.commands import ledger as ledger_module
from canaryforge.cli.commands import run as run_module
from canaryforge.core.orchestrator import ReleasePipeline
from canaryforge.models.runs import BuildRun
from conftest import FakeChangeSource, FakeEngine

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch):
    for module in (classify_module, ledger_module, run_module):
        monkeypatch.setattr(module, "console", Console(width=200, color_system=None))


@pytest.fixture
def patched_run(make_harness, monkeypatch: pytest.MonkeyPatch):
    """Point ``canaryforge run`` at a harness instead of docker and git."""

    def _patch(**overrides):
        harness = make_harness(**overrides)
        monkeypatch.setattr(run_module, "load_pipeline_config", lambda path, settings: harness.config)
        monkeypatch.setattr(
            ReleasePipeline, "from_config", classmethod(lambda cls, config, settings: harness.pipeline)
        )
        return harness

    return _patch


@pytest.fixture
def ledger_after_run(make_harness) -> Path:
    harness = make_harness()
    harness.pipeline.run(BuildRun(id=42, commit_sha="def456", base_sha="abc123"))
    return harness.config.ledger_path


class TestRunCommand:
    def test_successful_run_exits_zero(self, patched_run):
        harness = patched_run()
        result = runner.invoke(
            app, ["run", "--build-id", "42", "--commit", "def456", "--base", "abc123"]
        )
        assert result.exit_code == 0, result.output
        assert "DONE" in result.output
        assert len(harness.sink.received) == 1

    def test_failed_run_exits_one(self, patched_run):
        patched_run(engine=FakeEngine(fail_for={"frontend"}))
        result = runner.invoke(
            app, ["run", "--build-id", "42", "--commit", "def456", "--base", "abc123"]
        )
        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_build_id_from_environment(self, patched_run):
        harness = patched_run()
        result = runner.invoke(
            app,
            ["run", "--commit", "def456"],
            env={"BUILD_NUMBER": "43", "GIT_PREVIOUS_SUCCESSFUL_COMMIT": "abc123"},
        )
        assert result.exit_code == 0, result.output
        assert harness.sink.received[0].build_id == 43

    def test_zero_build_id_rejected(self, patched_run):
        patched_run()
        result = runner.invoke(app, ["run", "--build-id", "0", "--commit", "def456"])
        assert result.exit_code == 2

    def test_missing_pipeline_file(self, tmp_path: Path):
        result = runner.invoke(
            app,
            ["run", "--build-id", "1", "--commit", "abc", "--config", str(tmp_path / "nope.toml")],
        )
        assert result.exit_code == 2
        assert "Configuration error" in result.output


class TestClassifyCommand:
    def test_skip(self, pipeline_config, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            classify_module, "load_pipeline_config", lambda path, settings: pipeline_config
        )
        monkeypatch.setattr(
            classify_module,
            "GitRepository",
            lambda root: FakeChangeSource({"deployments/frontend-canary.yaml"}),
        )
        result = runner.invoke(app, ["classify", "abc123", "def456"])
        assert result.exit_code == 0, result.output
        assert "SKIP" in result.output
        assert "deployments/frontend-canary.yaml" in result.output

    def test_proceed(self, pipeline_config, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            classify_module, "load_pipeline_config", lambda path, settings: pipeline_config
        )
        monkeypatch.setattr(classify_module, "GitRepository", lambda root: FakeChangeSource())
        result = runner.invoke(app, ["classify", "abc123"])
        assert result.exit_code == 0, result.output
        assert "PROCEED" in result.output


class TestLedgerCommands:
    def test_history(self, ledger_after_run: Path):
        result = runner.invoke(app, ["history", "--ledger", str(ledger_after_run)])
        assert result.exit_code == 0, result.output
        assert "frontend" in result.output

    def test_history_for_unknown_component(self, ledger_after_run: Path):
        result = runner.invoke(
            app, ["history", "--ledger", str(ledger_after_run), "--component", "worker"]
        )
        assert result.exit_code == 0
        assert "No promotions recorded." in result.output

    def test_status(self, ledger_after_run: Path):
        result = runner.invoke(app, ["status", "42", "--ledger", str(ledger_after_run)])
        assert result.exit_code == 0, result.output
        assert "DONE" in result.output

    def test_status_unknown_build(self, ledger_after_run: Path):
        result = runner.invoke(app, ["status", "7", "--ledger", str(ledger_after_run)])
        assert result.exit_code == 1
        assert "Latest recorded build: 42" in result.output

    def test_verify_ledger(self, ledger_after_run: Path):
        result = runner.invoke(app, ["verify-ledger", "42", "--ledger", str(ledger_after_run)])
        assert result.exit_code == 0, result.output
        assert "is valid" in result.output

    def test_missing_ledger(self, tmp_path: Path):
        result = runner.invoke(app, ["history", "--ledger", str(tmp_path / "absent.db")])
        assert result.exit_code == 1
        assert "Ledger not found" in result.output
