"""Tests for instruction template resolution."""

import pytest

from tipster.llm.templates import InstructionsTemplateProvider, resolve_template_set


class TestTemplateAliases:
    def test_aliases(self):
        assert resolve_template_set("o4-mini") == "o3"
        assert resolve_template_set("gpt-5-mini") == "gpt-5"
        assert resolve_template_set("gpt-5-nano") == "gpt-5"

    def test_identity_for_unaliased_models(self):
        assert resolve_template_set("o3") == "o3"
        assert resolve_template_set("gpt-4.1") == "gpt-4.1"


class TestInstructionsTemplateProvider:
    def test_alias_reuses_sibling_templates(self, prompts_dir):
        provider = InstructionsTemplateProvider(prompts_dir)
        text, path = provider.load_match_template("o4-mini")
        assert text == "Predict the match."
        assert path == prompts_dir / "o3" / "match.md"

    def test_justification_template(self, prompts_dir):
        provider = InstructionsTemplateProvider(prompts_dir)
        text, path = provider.load_match_template("o3", include_justification=True)
        assert text == "Predict the match and justify."
        assert path.name == "match.justification.md"

    def test_justification_falls_back_to_match_template(self, prompts_dir):
        provider = InstructionsTemplateProvider(prompts_dir)
        text, path = provider.load_match_template("gpt-5-nano", include_justification=True)
        assert text == "GPT-5 match template."
        assert path == prompts_dir / "gpt-5" / "match.md"

    def test_bonus_template(self, prompts_dir):
        provider = InstructionsTemplateProvider(prompts_dir)
        text, _ = provider.load_bonus_template("o3")
        assert text == "Answer the bonus question."

    def test_missing_template_raises(self, prompts_dir):
        provider = InstructionsTemplateProvider(prompts_dir)
        with pytest.raises(FileNotFoundError):
            provider.load_match_template("gpt-4.1")
