"""Tests for settings and startup validation."""

import pytest

from tipster.config import Settings, require_llm_settings
from tipster.exceptions import ConfigurationError


class TestRequireLlmSettings:
    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            require_llm_settings(Settings(OPENAI_API_KEY="  "))

    def test_missing_model(self):
        with pytest.raises(ConfigurationError, match="PREDICTION_MODEL"):
            require_llm_settings(Settings(OPENAI_API_KEY="key", PREDICTION_MODEL=""))

    def test_negative_max_repredictions(self):
        with pytest.raises(ConfigurationError):
            require_llm_settings(Settings(OPENAI_API_KEY="key", MAX_REPREDICTIONS=-1))

    def test_valid(self):
        require_llm_settings(Settings(OPENAI_API_KEY="key", PREDICTION_MODEL="o3", MAX_REPREDICTIONS=2))


class TestSettings:
    def test_community_context_falls_back_to_community(self):
        assert Settings(COMMUNITY="league-a", COMMUNITY_CONTEXT="").community_context == "league-a"
        assert Settings(COMMUNITY="league-a", COMMUNITY_CONTEXT="league-b").community_context == "league-b"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PREDICTION_MODEL", "gpt-5-mini")
        monkeypatch.setenv("MAX_REPREDICTIONS", "3")
        settings = Settings()
        assert settings.PREDICTION_MODEL == "gpt-5-mini"
        assert settings.MAX_REPREDICTIONS == 3

    def test_default_ignore_list(self):
        assert Settings().STALENESS_IGNORED_DOCUMENTS == ["bundesliga-standings.csv"]
