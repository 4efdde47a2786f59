"""Tests for runtime wiring from settings."""

import pytest

from tipster.bootstrap import create_runtime, policy_from_settings
from tipster.config import Settings
from tipster.exceptions import ConfigurationError, PredictionPolicyError


def _settings(prompts_dir, **overrides) -> Settings:
    values = {
        "OPENAI_API_KEY": "test-key",
        "PREDICTION_MODEL": "o4-mini",
        "PROMPTS_DIR": str(prompts_dir),
        "DATABASE_URL": "sqlite:///:memory:",
        "COMMUNITY": "test-league",
    }
    values.update(overrides)
    return Settings(**values)


class TestCreateRuntime:
    @pytest.mark.asyncio
    async def test_wires_pipeline(self, prompts_dir):
        runtime = await create_runtime(_settings(prompts_dir, STALENESS_IGNORED_DOCUMENTS=["team-data"]))
        try:
            assert runtime.workflow.model == "o4-mini"
            assert runtime.workflow.community == "test-league"
            assert runtime.workflow.generator.match_prompt_path() == prompts_dir / "o3" / "match.md"
            assert runtime.workflow.sequencer.staleness.ignored_documents == frozenset({"team-data"})
            assert await runtime.document_store.save("a.csv", "x", "test-league") == 0
        finally:
            await runtime.close()

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_fast(self, prompts_dir):
        with pytest.raises(ConfigurationError):
            await create_runtime(_settings(prompts_dir, OPENAI_API_KEY=""))

    @pytest.mark.asyncio
    async def test_missing_templates_fail_fast(self, prompts_dir):
        with pytest.raises(FileNotFoundError):
            await create_runtime(_settings(prompts_dir, PREDICTION_MODEL="gpt-4.1"))


class TestPolicyFromSettings:
    def test_cap_enables_reprediction_mode(self, prompts_dir):
        policy = policy_from_settings(_settings(prompts_dir, MAX_REPREDICTIONS=2))
        assert policy.reprediction_mode
        assert policy.max_repredictions == 2

    def test_override_with_cap_rejected(self, prompts_dir):
        with pytest.raises(PredictionPolicyError):
            policy_from_settings(_settings(prompts_dir, MAX_REPREDICTIONS=2), override_existing=True)
