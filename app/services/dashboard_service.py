"""Dashboard service: aggregate reads over the analysis tables.

Pure query functions over an ``AsyncSession``; no writes.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.competitor import Competitor
from app.models.prompt import Prompt
from app.models.response import Response
from app.models.source import Source
from app.models.topic import Topic
from app.schemas.data import (
    AnalyticsOut,
    CompetitorAnalysis,
    CompetitorOut,
    Counts,
    ExportDocument,
    OverviewMetrics,
    PromptOut,
    ResponseOut,
    SourceAnalysis,
    SourceOut,
    TopicAnalysis,
    TopicOut,
)
from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)


def _rate(part: int, total: int) -> float:
    return part / total * 100 if total else 0.0


async def get_overview_metrics(db: AsyncSession) -> OverviewMetrics:
    storage = AnalysisStorage(db)
    total = await storage.count_responses()
    mentions = await storage.count_brand_mentions()

    top = (
        await db.execute(select(Competitor.name).order_by(Competitor.mention_count.desc(), Competitor.id).limit(1))
    ).scalar_one_or_none()
    source_count, domain_count = (
        await db.execute(select(func.count(Source.id), func.count(func.distinct(Source.domain))))
    ).one()

    return OverviewMetrics(
        brand_mention_rate=_rate(mentions, total),
        total_prompts=total,
        top_competitor=top or "N/A",
        total_sources=source_count,
        total_domains=domain_count,
    )


async def get_counts(db: AsyncSession) -> Counts:
    storage = AnalysisStorage(db)
    total_responses = await storage.count_responses()
    mentions = await storage.count_brand_mentions()

    async def _count(column) -> int:
        return (await db.execute(select(func.count(column)))).scalar_one()

    return Counts(
        total_responses=total_responses,
        total_prompts=await _count(Prompt.id),
        total_topics=await _count(Topic.id),
        total_competitors=await _count(Competitor.id),
        total_sources=await _count(Source.id),
        brand_mentions=mentions,
        brand_mention_rate=_rate(mentions, total_responses),
    )


async def get_topic_analysis(db: AsyncSession) -> list[TopicAnalysis]:
    """Per topic: prompt/response rows and the share that mention the brand."""
    stmt = (
        select(
            Topic.id,
            Topic.name,
            func.count(Prompt.id).label("total_prompts"),
            func.count(case((Response.brand_mentioned == True, 1))).label("brand_mentions"),  # noqa: E712
        )
        .outerjoin(Prompt, Prompt.topic_id == Topic.id)
        .outerjoin(Response, Response.prompt_id == Prompt.id)
        .group_by(Topic.id, Topic.name)
        .order_by(Topic.id)
    )
    rows = (await db.execute(stmt)).all()
    return [
        TopicAnalysis(
            topic_id=row.id,
            topic_name=row.name,
            total_prompts=row.total_prompts,
            brand_mentions=row.brand_mentions,
            mention_rate=_rate(row.brand_mentions, row.total_prompts),
        )
        for row in rows
    ]


async def get_competitor_analysis(db: AsyncSession) -> list[CompetitorAnalysis]:
    storage = AnalysisStorage(db)
    total = await storage.count_responses()
    return [
        CompetitorAnalysis(
            competitor_id=c.id,
            name=c.name,
            category=c.category,
            mention_count=c.mention_count,
            mention_rate=_rate(c.mention_count, total),
            change_rate=0.0,  # needs historical snapshots
        )
        for c in await storage.list_competitors()
    ]


async def get_source_analysis(db: AsyncSession) -> list[SourceAnalysis]:
    return [
        SourceAnalysis(source_id=s.id, domain=s.domain, citation_count=s.citation_count, urls=[s.url])
        for s in await AnalysisStorage(db).list_sources()
    ]


async def build_export(db: AsyncSession) -> ExportDocument:
    """Everything persisted, as one document."""
    storage = AnalysisStorage(db)
    analytics = await storage.get_latest_analytics()
    responses = sorted(await storage.list_responses(), key=lambda r: r.id)

    return ExportDocument(
        timestamp=datetime.now(timezone.utc),
        analytics=AnalyticsOut.model_validate(analytics) if analytics else None,
        topics=[TopicOut.model_validate(t) for t in await storage.list_topics()],
        prompts=[PromptOut.model_validate(p) for p in await storage.list_prompts()],
        responses=[ResponseOut.model_validate(r) for r in responses],
        competitors=[CompetitorOut.model_validate(c) for c in await storage.list_competitors()],
        sources=[SourceOut.model_validate(s) for s in await storage.list_sources()],
    )
