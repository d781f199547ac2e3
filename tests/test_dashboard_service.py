"""Tests for the dashboard aggregate queries and export."""

import pytest

from app.services import dashboard_service
from app.services.storage import AnalysisStorage


@pytest.fixture
async def seeded(db):
    storage = AnalysisStorage(db)
    pricing = await storage.create_topic("Pricing")
    await storage.create_topic("Security")
    for text, mentioned in (("Cheapest host?", True), ("Free tier?", False), ("Paid plans?", False)):
        prompt = await storage.create_prompt(text, pricing.id)
        await storage.create_response(prompt.id, f"Answer to {text}", mentioned, ["Vercel"], [])
    await storage.create_competitor("Vercel", "Hosting")
    await storage.increment_competitor_mentions("Vercel", by=3)
    await storage.create_competitor("Netlify", "Hosting")
    await storage.increment_competitor_mentions("Netlify")
    await storage.create_source("vercel.com", "https://vercel.com/docs", "vercel Documentation")
    await db.commit()
    db.expire_all()
    return db


class TestOverview:
    async def test_empty_database(self, db):
        metrics = await dashboard_service.get_overview_metrics(db)
        assert metrics.total_prompts == 0
        assert metrics.brand_mention_rate == 0.0
        assert metrics.top_competitor == "N/A"

    async def test_metrics(self, seeded):
        metrics = await dashboard_service.get_overview_metrics(seeded)
        assert metrics.total_prompts == 3
        assert metrics.brand_mention_rate == pytest.approx(100 / 3)
        assert metrics.top_competitor == "Vercel"
        assert (metrics.total_sources, metrics.total_domains) == (1, 1)

    async def test_counts(self, seeded):
        counts = await dashboard_service.get_counts(seeded)
        assert counts.total_responses == 3
        assert counts.total_prompts == 3
        assert counts.total_topics == 2
        assert counts.total_competitors == 2
        assert counts.brand_mentions == 1


class TestBreakdowns:
    async def test_topic_analysis(self, seeded):
        topics = {t.topic_name: t for t in await dashboard_service.get_topic_analysis(seeded)}
        assert topics["Pricing"].total_prompts == 3
        assert topics["Pricing"].brand_mentions == 1
        assert topics["Pricing"].mention_rate == pytest.approx(100 / 3)
        assert topics["Security"].total_prompts == 0
        assert topics["Security"].mention_rate == 0.0

    async def test_competitor_analysis(self, seeded):
        rows = await dashboard_service.get_competitor_analysis(seeded)
        assert [r.name for r in rows] == ["Vercel", "Netlify"]
        assert rows[0].mention_rate == pytest.approx(100.0)
        assert rows[1].mention_rate == pytest.approx(100 / 3)
        assert rows[0].change_rate == 0.0

    async def test_source_analysis(self, seeded):
        rows = await dashboard_service.get_source_analysis(seeded)
        assert rows[0].domain == "vercel.com"
        assert rows[0].urls == ["https://vercel.com/docs"]


class TestExport:
    async def test_export_document(self, seeded):
        document = await dashboard_service.build_export(seeded)
        assert len(document.topics) == 2
        assert len(document.prompts) == 3
        assert [r.text for r in document.responses] == [
            "Answer to Cheapest host?",
            "Answer to Free tier?",
            "Answer to Paid plans?",
        ]
        assert len(document.competitors) == 2
        assert document.analytics is None
        assert document.timestamp is not None
