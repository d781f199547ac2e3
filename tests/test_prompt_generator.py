"""Tests for prompt generation and fallback padding."""

from unittest.mock import AsyncMock

import pytest

from app.prompt_engine.generator import (
    FALLBACK_TEMPLATES,
    PromptGenerator,
    batch_fallback_prompts,
    clean_prompt_candidate,
    fallback_prompts,
    generate_diverse_prompts,
    is_well_formed,
    pad_prompts,
)
from conftest import FakeLlmAdapter


class TestCleanPromptCandidate:
    def test_strips_quotes_and_filler(self):
        assert clean_prompt_candidate('"what is the best CDN please"') == "What is the best CDN?"

    def test_smart_quotes(self):
        assert clean_prompt_candidate("“Tired of slow deploys”") == "Tired of slow deploys"

    def test_keeps_existing_question_mark(self):
        assert clean_prompt_candidate("how do I scale postgres?") == "How do I scale postgres?"

    def test_empty(self):
        assert clean_prompt_candidate("") == ""
        assert clean_prompt_candidate('""') == ""


class TestIsWellFormed:
    def test_word_bounds(self):
        assert not is_well_formed("Too short")
        assert is_well_formed("One two three")
        assert is_well_formed(" ".join(["word"] * 12))
        assert not is_well_formed(" ".join(["word"] * 13))


class TestFallbacks:
    def test_templates_use_topic(self):
        prompts = fallback_prompts("Pricing")
        assert len(prompts) == len(FALLBACK_TEMPLATES) == 20
        assert prompts[0] == "Dealing with pricing complexity"
        assert "Pricing security considerations" in prompts

    def test_pad_to_count_with_numbered_filler(self):
        padded = pad_prompts(["Custom question here"], "Pricing", 25)
        assert len(padded) == 25
        assert padded[0] == "Custom question here"
        assert padded[-1] == "Pricing question 25"

    def test_pad_skips_duplicates(self):
        padded = pad_prompts(["Dealing with pricing complexity"], "Pricing", 2)
        assert padded == ["Dealing with pricing complexity", "Need help optimizing pricing setup"]

    def test_batch_fallbacks_without_competitors(self):
        prompts = batch_fallback_prompts("Hosting", [])
        assert len(prompts) == 5
        assert all("other tools" in p for p in prompts)


class TestPromptGenerator:
    async def test_generates_requested_count(self):
        generator = PromptGenerator(FakeLlmAdapter(), attempt_multiplier=5)
        prompts = await generator.generate("Pricing", "Costs", count=3)
        assert prompts == [
            "How to compare pricing options for ease of use?",
            "How to compare pricing options for performance and speed?",
            "How to compare pricing options for reliability and stability?",
        ]

    async def test_rejected_candidates_padded_with_templates(self):
        adapter = FakeLlmAdapter()
        adapter.generate_prompt_candidate = AsyncMock(return_value="word " * 20)
        prompts = await PromptGenerator(adapter, attempt_multiplier=2).generate("Pricing", count=3)
        assert prompts == fallback_prompts("Pricing")[:3]
        assert adapter.generate_prompt_candidate.await_count == 6

    async def test_adapter_errors_are_skipped(self):
        adapter = FakeLlmAdapter()
        adapter.generate_prompt_candidate = AsyncMock(side_effect=RuntimeError("down"))
        prompts = await PromptGenerator(adapter).generate("Hosting", count=2)
        assert prompts == ["Dealing with hosting complexity", "Need help optimizing hosting setup"]

    @pytest.mark.parametrize("count", [1, 7, 20])
    async def test_always_exact_count(self, count):
        adapter = FakeLlmAdapter()
        adapter.generate_prompt_candidate = AsyncMock(return_value="nope")
        prompts = await PromptGenerator(adapter, attempt_multiplier=1).generate("CDN", count=count)
        assert len(prompts) == count


class TestGenerateDiversePrompts:
    async def test_duplicates_rejected_and_fallbacks_added(self):
        adapter = FakeLlmAdapter()
        adapter.generate_free_prompt = AsyncMock(return_value="Plain text")
        prompts = await generate_diverse_prompts(adapter, "Hosting", ["Vercel"], count=3)
        assert prompts[0] == "Plain text"
        assert 2 <= len(prompts) <= 3
        assert len(set(prompts)) == len(prompts)
        assert adapter.generate_free_prompt.await_count == 9

    async def test_all_failures_use_fallbacks(self):
        adapter = FakeLlmAdapter()
        adapter.generate_free_prompt = AsyncMock(side_effect=RuntimeError("down"))
        prompts = await generate_diverse_prompts(adapter, "Hosting", [], count=2)
        assert prompts
        assert "other tools" in prompts[0]
