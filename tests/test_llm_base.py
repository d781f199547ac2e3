"""Tests for the adapter base: JSON parsing, retries and the derived operations."""

import asyncio

import pytest

from app.collectors.llm_base import (
    MAX_DISCOVERED_COMPETITORS,
    BaseLlmAdapter,
    as_list,
    parse_json_payload,
)
from app.core.exceptions import LlmAdapterError, LlmResponseFormatError


class ScriptedAdapter(BaseLlmAdapter):
    """Replays canned completions; an Exception instance in the script is raised."""

    provider = "scripted"

    def __init__(self, replies, **kwargs):
        self.sleeps: list[float] = []

        async def record_sleep(seconds):
            self.sleeps.append(seconds)

        kwargs.setdefault("sleep", record_sleep)
        super().__init__(api_key="sk-test", **kwargs)
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def complete(self, system, user, *, temperature=0.7, max_tokens=1000, json_mode=False):
        self.calls.append({"system": system, "user": user, "json_mode": json_mode})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class TestParseJsonPayload:
    def test_plain(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert parse_json_payload('```json\n["Vercel", "Netlify"]\n```') == ["Vercel", "Netlify"]

    def test_trailing_comma(self):
        assert parse_json_payload('{"competitors": ["A", "B",],}') == {"competitors": ["A", "B"]}

    def test_embedded_in_prose(self):
        assert parse_json_payload('Sure! Here you go: ["A", "B"] Hope it helps.') == ["A", "B"]

    def test_garbage_raises(self):
        with pytest.raises(LlmResponseFormatError):
            parse_json_payload("no json here")
        with pytest.raises(LlmResponseFormatError):
            parse_json_payload("   ")


class TestAsList:
    def test_list_passthrough(self):
        assert as_list([1, 2]) == [1, 2]

    def test_named_key(self):
        assert as_list({"topics": [1], "other": [2]}, "topics") == [1]

    def test_single_list_value(self):
        assert as_list({"whatever": ["x"]}, "competitors") == ["x"]

    def test_not_a_list(self):
        assert as_list({"a": 1}) == []
        assert as_list("text") == []


class TestCallWithRetry:
    async def test_recovers_after_failures(self):
        adapter = ScriptedAdapter([RuntimeError("503"), RuntimeError("503"), "ok"])
        result = await adapter.call_with_retry("answer", lambda: adapter.complete("s", "u"))
        assert result == "ok"
        assert adapter.sleeps == [2.0, 4.0]

    async def test_raises_after_exhausting_attempts(self):
        adapter = ScriptedAdapter([RuntimeError("503")], retry_attempts=3)
        with pytest.raises(LlmAdapterError) as exc_info:
            await adapter.call_with_retry("answer", lambda: adapter.complete("s", "u"))
        assert exc_info.value.operation == "answer"
        assert exc_info.value.attempts == 3
        assert len(adapter.calls) == 3
        assert adapter.sleeps == [2.0, 4.0]

    async def test_per_attempt_timeout(self):
        adapter = ScriptedAdapter(["unused"], retry_attempts=2)

        async def hang():
            await asyncio.sleep(5)

        with pytest.raises(LlmAdapterError, match="timeout"):
            await adapter.call_with_retry("answer", hang, timeout=0.01)
        assert adapter.sleeps == [2.0]


class TestAnalyzePromptResponse:
    async def test_answer_then_classification(self):
        adapter = ScriptedAdapter(
            [
                "Try Vercel, docs at https://vercel.com/docs",
                '```json\n{"brandMentioned": true, "competitors": ["Vercel", 3], '
                '"sources": ["https://vercel.com/docs"]}\n```',
            ]
        )
        analysis = await adapter.analyze_prompt_response("Where should I host my app?")

        assert analysis.response == "Try Vercel, docs at https://vercel.com/docs"
        assert analysis.brand_mentioned is True
        assert analysis.competitors == ["Vercel"]
        assert analysis.sources == ["https://vercel.com/docs"]
        assert adapter.calls[0]["user"] == "Where should I host my app?"
        assert adapter.calls[1]["json_mode"] is True

    async def test_unparseable_classification_raises(self):
        adapter = ScriptedAdapter(["An answer", "not json at all"])
        with pytest.raises(LlmAdapterError):
            await adapter.analyze_prompt_response("prompt")


class TestExtraction:
    async def test_competitors_deduped(self):
        adapter = ScriptedAdapter(['{"competitors": ["Vercel", "vercel", "Netlify", "Netlify Edge"]}'])
        assert await adapter.extract_competitors_from_text("text", "Acme") == ["Vercel", "Netlify"]

    async def test_competitors_empty_on_bad_json(self):
        adapter = ScriptedAdapter(["nope"])
        assert await adapter.extract_competitors_from_text("text") == []

    async def test_sources_filter_incomplete(self):
        adapter = ScriptedAdapter(
            [
                '{"sources": [{"title": "Docs", "url": "https://a.io/docs", "domain": "a.io"},'
                ' {"title": "", "url": "https://b.io", "domain": "b.io"}, "junk"]}'
            ]
        )
        sources = await adapter.extract_sources_from_text("text")
        assert [s.url for s in sources] == ["https://a.io/docs"]
        assert sources[0].snippet is None

    async def test_sources_empty_on_error(self):
        adapter = ScriptedAdapter([RuntimeError("down")])
        assert await adapter.extract_sources_from_text("text") == []


class TestGeneration:
    async def test_categorize_strips_quotes(self):
        adapter = ScriptedAdapter(['  "Cloud Platform"\n'])
        assert await adapter.categorize_competitor("AWS", "Acme") == "Cloud Platform"

    async def test_dynamic_topics(self):
        adapter = ScriptedAdapter(['{"topics": [{"name": "Pricing", "description": "Costs"}, {"name": "Speed"}]}'])
        topics = await adapter.generate_dynamic_topics("https://acme.io", 2, ["Vercel"])
        assert [(t.name, t.description) for t in topics] == [
            ("Pricing", "Costs"),
            ("Speed", "Analysis of Speed aspects"),
        ]

    async def test_dynamic_topics_on_error(self):
        adapter = ScriptedAdapter([RuntimeError("down")])
        topics = await adapter.generate_dynamic_topics("https://acme.io", 2, [])
        assert [t.name for t in topics] == ["Brand Analysis 1", "Brand Analysis 2"]

    async def test_dynamic_topics_unexpected_format(self):
        adapter = ScriptedAdapter(['{"topics": []}'])
        topics = await adapter.generate_dynamic_topics("https://acme.io", 1, [])
        assert [t.name for t in topics] == ["Analysis Topic 1"]


class TestFindCompetitors:
    async def test_merges_framings_by_name(self):
        reply = (
            '{"competitors": [{"name": "Vercel", "url": "https://vercel.com", "category": "Hosting"},'
            ' {"name": "Netlify", "url": "https://netlify.com", "category": "Hosting"},'
            ' {"name": "Broken"}]}'
        )
        adapter = ScriptedAdapter([reply])
        suggestions = await adapter.find_competitors("Acme deploys websites")
        assert [s.name for s in suggestions] == ["Vercel", "Netlify"]
        assert len(adapter.calls) == 3

    async def test_single_object_and_cap(self):
        many = ", ".join(
            f'{{"name": "Vendor{i}", "url": "https://v{i}.io", "category": "Hosting"}}' for i in range(12)
        )
        adapter = ScriptedAdapter([f'{{"competitors": [{many}]}}'])
        suggestions = await adapter.find_competitors("homepage")
        assert len(suggestions) == MAX_DISCOVERED_COMPETITORS

        adapter = ScriptedAdapter(['{"name": "Render", "url": "https://render.com", "category": "PaaS"}'])
        assert [s.name for s in await adapter.find_competitors("homepage")] == ["Render"]

    async def test_failures_give_empty_list(self):
        adapter = ScriptedAdapter([RuntimeError("down")], retry_attempts=1)
        assert await adapter.find_competitors("homepage") == []
