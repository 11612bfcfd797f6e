"""Tests for ForgeSettings and pipeline file loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from canaryforge.config import ForgeSettings
from canaryforge.errors import ConfigError
from canaryforge.models.config import load_pipeline_config
from canaryforge.models.gates import Severity

PIPELINE_TOML = """
[pipeline]
job_name = "socialecho"
manifests_dir = "k8s"
exclude = ["k8s/", "docs/"]

[[components]]
name = "frontend"
source_path = "client"
image_repository = "registry.example.com/socialecho/frontend"

[[components]]
name = "backend"
source_path = "server"
image_repository = "registry.example.com/socialecho/backend"

[[gates]]
name = "filesystem-vulnerabilities"
kind = "trivy-fs"
hard = true
severity_threshold = ["CRITICAL", "HIGH"]

[[gates]]
name = "code-quality"
kind = "sonar-quality-gate"
hard = false
"""


@pytest.fixture
def settings(tmp_path: Path) -> ForgeSettings:
    return ForgeSettings(
        _env_file=None,
        config_repo_path=tmp_path / "config",
        registry_url="registry.example.com",
        registry_username="ci-bot",
        registry_token="s3cret",
        static_analysis_timeout_seconds=90.0,
    )


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "canaryforge.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestForgeSettings:
    def test_defaults(self):
        settings = ForgeSettings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.commit_max_retries == 3
        assert settings.static_analysis_timeout_seconds == 120.0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CANARYFORGE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("CANARYFORGE_COMMIT_MAX_RETRIES", "5")
        monkeypatch.setenv("CANARYFORGE_GITOPS_TOKEN", "tok")
        settings = ForgeSettings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.commit_max_retries == 5
        assert settings.gitops_token.get_secret_value() == "tok"

    def test_token_not_in_repr(self):
        settings = ForgeSettings(_env_file=None, registry_token="s3cret")
        assert "s3cret" not in repr(settings)


class TestLoadPipelineConfig:
    def test_loads_components_and_gates(self, tmp_path: Path, settings: ForgeSettings):
        config = load_pipeline_config(_write(tmp_path, PIPELINE_TOML), settings)
        assert config.job_name == "socialecho"
        assert [c.name for c in config.components] == ["frontend", "backend"]
        assert config.exclusion_patterns == frozenset({"k8s/", "docs/"})
        assert config.manifests_dir == Path("k8s")
        gate = config.gates[0]
        assert gate.hard is True
        assert gate.severity_threshold == frozenset({Severity.CRITICAL, Severity.HIGH})

    def test_static_analysis_gate_gets_default_timeout(self, tmp_path: Path, settings: ForgeSettings):
        config = load_pipeline_config(_write(tmp_path, PIPELINE_TOML), settings)
        sonar = next(g for g in config.gates if g.kind == "sonar-quality-gate")
        assert sonar.timeout_seconds == 90.0

    def test_registry_credentials_from_settings(self, tmp_path: Path, settings: ForgeSettings):
        config = load_pipeline_config(_write(tmp_path, PIPELINE_TOML), settings)
        assert config.registry is not None
        assert config.registry.username == "ci-bot"
        assert config.registry.token.get_secret_value() == "s3cret"

    def test_no_registry_without_username(self, tmp_path: Path):
        config = load_pipeline_config(
            _write(tmp_path, PIPELINE_TOML), ForgeSettings(_env_file=None)
        )
        assert config.registry is None

    def test_gate_without_hard_rejected(self, tmp_path: Path, settings: ForgeSettings):
        text = PIPELINE_TOML + '\n[[gates]]\nname = "deps"\nkind = "dependency-check"\n'
        with pytest.raises(ConfigError, match="hard"):
            load_pipeline_config(_write(tmp_path, text), settings)

    def test_duplicate_component_rejected(self, tmp_path: Path, settings: ForgeSettings):
        text = PIPELINE_TOML + (
            '\n[[components]]\nname = "frontend"\nsource_path = "x"\n'
            'image_repository = "acme/x"\n'
        )
        with pytest.raises(ConfigError, match="duplicate component"):
            load_pipeline_config(_write(tmp_path, text), settings)

    def test_missing_file(self, tmp_path: Path, settings: ForgeSettings):
        with pytest.raises(ConfigError, match="not found"):
            load_pipeline_config(tmp_path / "absent.toml", settings)

    def test_invalid_toml(self, tmp_path: Path, settings: ForgeSettings):
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_pipeline_config(_write(tmp_path, "[pipeline\n"), settings)
