"""Tests for competitor categorisation and mention counting."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.analysis.competitors import CompetitorRegistry, keyword_category
from app.services.storage import AnalysisStorage
from conftest import FakeLlmAdapter, no_sleep


def _registry(storage, adapter, **kwargs):
    kwargs.setdefault("categorize_delay", 0)
    return CompetitorRegistry(storage, adapter, brand_name="Acme", sleep=no_sleep, **kwargs)


class TestKeywordCategory:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("AWS Lambda", "Cloud Platform"),
            ("Cloudflare", "Cloud Platform"),
            ("Render Hosting", "Platform as a Service"),
            ("MongoDB Atlas", "Database Service"),
            ("Akamai Edge", "CDN/Edge Service"),
            ("Fastly", "Technology"),
        ],
    )
    def test_rules(self, name, expected):
        assert keyword_category(name) == expected


class TestCategorize:
    async def test_uses_adapter(self, db):
        registry = _registry(AnalysisStorage(db), FakeLlmAdapter())
        assert await registry.categorize("Vercel") == "Cloud Platform"

    async def test_adapter_error_falls_back(self, db):
        adapter = FakeLlmAdapter()
        adapter.categorize_competitor = AsyncMock(side_effect=RuntimeError("boom"))
        registry = _registry(AnalysisStorage(db), adapter)
        assert await registry.categorize("Heroku Platform") == "Platform as a Service"

    async def test_timeout_falls_back(self, db):
        adapter = FakeLlmAdapter()

        async def slow(name, brand_name=None):
            await asyncio.sleep(1)
            return "Never"

        adapter.categorize_competitor = slow
        registry = _registry(AnalysisStorage(db), adapter, categorize_timeout=0.01)
        assert await registry.categorize("Supabase DB") == "Database Service"

    async def test_blank_answer_falls_back(self, db):
        adapter = FakeLlmAdapter()
        adapter.categorize_competitor = AsyncMock(return_value="   ")
        registry = _registry(AnalysisStorage(db), adapter)
        assert await registry.categorize("Fastly") == "Technology"


class TestRecordMentions:
    async def test_counts_once_per_distinct_name(self, session_factory):
        async with session_factory() as session:
            registry = _registry(AnalysisStorage(session), FakeLlmAdapter())
            recorded = await registry.record_mentions(["CompetitorX", "CompetitorX", " ", "Netlify"])
            await session.commit()
        assert recorded == ["CompetitorX", "Netlify"]

        async with session_factory() as session:
            competitors = {c.name: c for c in await AnalysisStorage(session).list_competitors()}
        assert competitors["CompetitorX"].mention_count == 1
        assert competitors["CompetitorX"].category == "Cloud Platform"
        assert competitors["CompetitorX"].last_mentioned is not None
        assert competitors["Netlify"].mention_count == 1

    async def test_names_are_case_sensitive(self, session_factory):
        async with session_factory() as session:
            registry = _registry(AnalysisStorage(session), FakeLlmAdapter())
            await registry.record_mentions(["Vercel", "vercel"])
            await session.commit()

        async with session_factory() as session:
            names = sorted(c.name for c in await AnalysisStorage(session).list_competitors())
        assert names == ["Vercel", "vercel"]

    async def test_category_is_sticky(self, session_factory):
        async with session_factory() as session:
            storage = AnalysisStorage(session)
            await storage.create_competitor("Vercel", "Hosting")
            adapter = FakeLlmAdapter()
            adapter.categorize_competitor = AsyncMock(return_value="Other")
            await _registry(storage, adapter).record_mentions(["Vercel"])
            await session.commit()
            adapter.categorize_competitor.assert_not_called()

        async with session_factory() as session:
            vercel = await AnalysisStorage(session).get_competitor_by_name("Vercel")
        assert vercel.category == "Hosting"
        assert vercel.mention_count == 1

    async def test_missing_category_is_filled(self, session_factory):
        async with session_factory() as session:
            storage = AnalysisStorage(session)
            await storage.create_competitor("Render")
            await _registry(storage, FakeLlmAdapter()).record_mentions(["Render"])
            await session.commit()

        async with session_factory() as session:
            render = await AnalysisStorage(session).get_competitor_by_name("Render")
        assert render.category == "Cloud Platform"

    async def test_delay_before_categorizing(self, db):
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        registry = CompetitorRegistry(
            AnalysisStorage(db), FakeLlmAdapter(), categorize_delay=0.5, sleep=record_sleep
        )
        await registry.ensure("Railway")
        assert sleeps == [0.5]
