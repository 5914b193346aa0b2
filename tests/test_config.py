"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from remit_match.config import (
    Config,
    ConfigValidationError,
    LLMConfig,
    MatchingConfig,
    create_default_config,
    load_config,
)
from remit_match.schemas import StrategyKind


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REMIT_LLM_ENABLED",
        "REMIT_MIN_CONFIDENCE",
        "OLLAMA_URL",
        "OLLAMA_MODEL",
        "OLLAMA_AUTH_HEADER",
        "OLLAMA_TIMEOUT",
        "GRAPH_URL",
        "GRAPH_MAILBOX",
        "GRAPH_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yaml")

        assert config.matching.min_confidence == 85.0
        assert config.matching.min_search_length == 5
        assert config.matching.persist_top_n == 3
        assert config.matching.enabled_kinds() == list(StrategyKind)
        assert config.llm.enabled is False
        assert config.email_search.cached_days_before == 7
        assert config.email_search.live_days_after == 3
        assert config.email_search.summary_email_limit == 5
        assert config.mailbox.subject_filter == "PAYMENT"
        assert config.mailbox.is_configured is False

    def test_default_file_round_trip(self, tmp_path: Path) -> None:
        """Test the generated default file loads and validates."""
        path = tmp_path / "nested" / "config.yaml"
        create_default_config(path)

        config = load_config(path)

        assert config.validate() == []
        assert config.mailbox.token == "YOUR_GRAPH_TOKEN"

    def test_yaml_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "matching:\n"
            "  min_confidence: 90\n"
            "  strategies: [vector_semantic]\n"
            "llm:\n"
            "  enabled: true\n"
            "  model: tiny\n"
            "email_search:\n"
            "  live_days_before: 5\n"
        )

        config = load_config(path)

        assert config.matching.min_confidence == 90.0
        assert config.matching.enabled_kinds() == [StrategyKind.VECTOR_SEMANTIC]
        assert config.llm.enabled is True
        assert config.llm.model == "tiny"
        assert config.email_search.live_days_before == 5

    def test_env_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REMIT_LLM_ENABLED", "true")
        monkeypatch.setenv("REMIT_MIN_CONFIDENCE", "88.5")
        monkeypatch.setenv("OLLAMA_URL", "http://gpu-box:11434")
        monkeypatch.setenv("OLLAMA_MODEL", "env-model")
        monkeypatch.setenv("OLLAMA_TIMEOUT", "120")
        monkeypatch.setenv("GRAPH_MAILBOX", "ar@example.com")
        monkeypatch.setenv("GRAPH_TOKEN", "secret")

        config = load_config(tmp_path / "missing.yaml")

        assert config.llm.enabled is True
        assert config.matching.min_confidence == 88.5
        assert config.llm.ollama_url == "http://gpu-box:11434"
        assert config.llm.model == "env-model"
        assert config.llm.timeout_seconds == 120
        assert config.mailbox.is_configured is True

    def test_invalid_env_confidence_ignored(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REMIT_MIN_CONFIDENCE", "high")
        assert load_config(tmp_path / "missing.yaml").matching.min_confidence == 85.0

    def test_env_disables_llm(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  enabled: true\n")
        monkeypatch.setenv("REMIT_LLM_ENABLED", "false")

        assert load_config(path).llm.enabled is False


class TestValidate:
    """Tests for Config.validate."""

    def test_defaults_valid(self) -> None:
        assert Config().validate() == []

    def test_invalid_values(self) -> None:
        config = Config(matching=MatchingConfig(min_confidence=120, persist_top_n=0, strategies=["BM25"]))
        config.email_search.cached_days_before = -1

        errors = config.validate()

        assert "matching.min_confidence must be within 0-100" in errors
        assert "matching.persist_top_n must be >= 1" in errors
        assert "matching.strategies: unknown strategy 'BM25'" in errors
        assert "email_search.cached_days_before must be >= 0" in errors

    def test_llm_enabled_requires_model(self) -> None:
        config = Config(llm=LLMConfig(enabled=True, model=""))
        assert "llm.model is required when LLM is enabled" in config.validate()

    def test_require_valid_raises(self) -> None:
        config = Config(matching=MatchingConfig(min_confidence=-1))
        with pytest.raises(ConfigValidationError):
            config.require_valid()


class TestLLMConfig:
    """Tests for LLMConfig helpers."""

    @pytest.mark.parametrize(
        "url,remote",
        [
            ("http://localhost:11434", False),
            ("http://127.0.0.1:11434", False),
            ("http://192.168.1.20:11434", True),
            ("https://llm.example.com", True),
        ],
    )
    def test_is_remote(self, url: str, remote: bool) -> None:
        assert LLMConfig(ollama_url=url).is_remote() is remote
