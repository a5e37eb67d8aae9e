"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from framesight.config.settings import (
    OPENROUTER_BASE_URL,
    OVHCLOUD_BASE_URL,
    OVHCLOUD_MODEL,
    AnalysisConfig,
    InferenceConfig,
    Settings,
    load_settings,
)

_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "ANTHROPIC_API_KEY",
    "OVH_AI_TOKEN",
    "VISION_MODEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Isolate tests from the developer's environment and .env file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestSettings:
    """Test configuration models and loading."""

    def test_default_settings(self) -> None:
        settings = Settings()
        assert settings.inference.provider == "openai"
        assert settings.inference.model == "gpt-4o"
        assert settings.server.port == 3000
        assert settings.cache.max_entries == 100

    def test_analysis_config_defaults(self) -> None:
        config = AnalysisConfig()
        assert config.max_concurrent == 3
        assert config.batch_delay == 2.0
        assert config.stabilization_timeout == 3.0
        assert config.slide_sample_interval == 10
        assert config.session_timeout is None

    def test_inference_config_defaults(self) -> None:
        config = InferenceConfig()
        assert config.max_tokens == 2000
        assert config.temperature == 0.1
        assert config.synthesis_max_tokens == 3000
        assert config.synthesis_temperature == 0.2

    def test_analysis_config_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisConfig(max_concurent=2)

    def test_analysis_config_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisConfig(max_concurrent=0)

    def test_load_settings_missing_file(self, tmp_path) -> None:
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.analysis.max_concurrent == 3

    def test_load_settings_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "framesight.yaml"
        path.write_text(
            "inference:\n"
            "  provider: anthropic\n"
            "  model: claude-sonnet-4-20250514\n"
            "analysis:\n"
            "  max_concurrent: 2\n"
            "  batch_delay: 0.5\n"
            "server:\n"
            "  port: 8123\n"
        )
        settings = load_settings(path)
        assert settings.inference.provider == "anthropic"
        assert settings.analysis.max_concurrent == 2
        assert settings.analysis.batch_delay == 0.5
        assert settings.server.port == 8123

    def test_api_key_from_env(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.openai_api_key.get_secret_value() == "sk-test"
        assert settings.inference_credentials() == ("sk-test", None)

    def test_openrouter_key_implies_base_url(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.inference_credentials() == ("or-test", OPENROUTER_BASE_URL)

    def test_ovh_token_sets_endpoint_and_model(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OVH_AI_TOKEN", "ovh-test")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.inference.model == OVHCLOUD_MODEL
        assert settings.inference_credentials() == ("ovh-test", OVHCLOUD_BASE_URL)

    def test_vision_model_env_wins_over_ovh_default(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OVH_AI_TOKEN", "ovh-test")
        monkeypatch.setenv("VISION_MODEL", "my-vlm")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.inference.model == "my-vlm"

    def test_yaml_model_not_overridden_by_vision_model(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "framesight.yaml"
        path.write_text("inference:\n  model: from-yaml\n")
        monkeypatch.setenv("VISION_MODEL", "my-vlm")
        assert load_settings(path).inference.model == "from-yaml"

    def test_anthropic_credentials(self) -> None:
        settings = Settings(
            anthropic_api_key="sk-ant",
            openai_api_key="sk-openai",
            inference={"provider": "anthropic"},
        )
        assert settings.inference_credentials() == ("sk-ant", None)

    def test_dotenv_file_is_loaded(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        # Registered so the value written by the loader is removed afterwards.
        monkeypatch.setenv("ANTHROPIC_API_KEY", "")
        (tmp_path / ".env").write_text("# keys\nANTHROPIC_API_KEY='sk-from-dotenv'\n")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.anthropic_api_key.get_secret_value() == "sk-from-dotenv"
