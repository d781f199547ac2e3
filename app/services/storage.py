"""Persistence operations used by the analysis pipeline and the dashboard.

Every write flushes but never commits; the owner of the session decides
transaction boundaries (per request in the API, per prompt in a run).
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.analytics import Analytics
from app.models.competitor import Competitor
from app.models.prompt import Prompt
from app.models.response import Response
from app.models.source import Source
from app.models.topic import Topic

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisStorage:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _add(self, obj):
        self.db.add(obj)
        await self.db.flush()
        return obj

    # --- Topics ---

    async def create_topic(self, name: str, description: str | None = None) -> Topic:
        return await self._add(Topic(name=name, description=description))

    async def get_topic_by_name(self, name: str) -> Topic | None:
        result = await self.db.execute(select(Topic).where(Topic.name == name).order_by(Topic.id).limit(1))
        return result.scalar_one_or_none()

    async def list_topics(self) -> list[Topic]:
        result = await self.db.execute(select(Topic).order_by(Topic.id))
        return list(result.scalars().all())

    # --- Prompts ---

    async def create_prompt(self, text: str, topic_id: int | None = None) -> Prompt:
        return await self._add(Prompt(text=text, topic_id=topic_id))

    async def list_prompts(self) -> list[Prompt]:
        result = await self.db.execute(select(Prompt).options(selectinload(Prompt.topic)).order_by(Prompt.id))
        return list(result.scalars().all())

    # --- Responses ---

    async def create_response(
        self,
        prompt_id: int,
        text: str,
        brand_mentioned: bool,
        competitors_mentioned: list[str],
        sources: list[str],
    ) -> Response:
        return await self._add(
            Response(
                prompt_id=prompt_id,
                text=text,
                brand_mentioned=brand_mentioned,
                competitors_mentioned=competitors_mentioned,
                sources=sources,
            )
        )

    async def get_response(self, response_id: int) -> Response | None:
        result = await self.db.execute(
            select(Response)
            .where(Response.id == response_id)
            .options(selectinload(Response.prompt).selectinload(Prompt.topic))
        )
        return result.scalar_one_or_none()

    async def list_responses(self, limit: int | None = None) -> list[Response]:
        """Responses newest first, with their prompt and topic loaded."""
        stmt = (
            select(Response)
            .options(selectinload(Response.prompt).selectinload(Prompt.topic))
            .order_by(Response.created_at.desc(), Response.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_responses(self) -> int:
        return (await self.db.execute(select(func.count(Response.id)))).scalar_one()

    async def count_brand_mentions(self) -> int:
        stmt = select(func.count(Response.id)).where(Response.brand_mentioned == True)  # noqa: E712
        return (await self.db.execute(stmt)).scalar_one()

    # --- Competitors ---

    async def get_competitor_by_name(self, name: str) -> Competitor | None:
        result = await self.db.execute(select(Competitor).where(Competitor.name == name))
        return result.scalar_one_or_none()

    async def create_competitor(self, name: str, category: str | None = None) -> Competitor:
        return await self._add(Competitor(name=name, category=category, mention_count=0))

    async def set_competitor_category(self, name: str, category: str) -> None:
        await self.db.execute(update(Competitor).where(Competitor.name == name).values(category=category))

    async def increment_competitor_mentions(self, name: str, by: int = 1) -> None:
        await self.db.execute(
            update(Competitor)
            .where(Competitor.name == name)
            .values(mention_count=Competitor.mention_count + by, last_mentioned=_now())
            .execution_options(synchronize_session=False)
        )

    async def list_competitors(self) -> list[Competitor]:
        result = await self.db.execute(select(Competitor).order_by(Competitor.mention_count.desc(), Competitor.id))
        return list(result.scalars().all())

    # --- Sources ---

    async def get_source_by_domain(self, domain: str) -> Source | None:
        result = await self.db.execute(select(Source).where(Source.domain == domain))
        return result.scalar_one_or_none()

    async def create_source(self, domain: str, url: str, title: str | None = None) -> Source:
        return await self._add(Source(domain=domain, url=url, title=title, citation_count=0))

    async def increment_source_citations(self, domain: str, by: int = 1) -> None:
        await self.db.execute(
            update(Source)
            .where(Source.domain == domain)
            .values(citation_count=Source.citation_count + by, last_cited=_now())
            .execution_options(synchronize_session=False)
        )

    async def list_sources(self) -> list[Source]:
        result = await self.db.execute(select(Source).order_by(Source.citation_count.desc(), Source.id))
        return list(result.scalars().all())

    # --- Analytics ---

    async def create_analytics(
        self,
        total_prompts: int,
        brand_mention_rate: float,
        top_competitor: str | None,
        total_sources: int,
        total_domains: int,
    ) -> Analytics:
        return await self._add(
            Analytics(
                total_prompts=total_prompts,
                brand_mention_rate=brand_mention_rate,
                top_competitor=top_competitor,
                total_sources=total_sources,
                total_domains=total_domains,
            )
        )

    async def get_latest_analytics(self) -> Analytics | None:
        result = await self.db.execute(select(Analytics).order_by(Analytics.date.desc(), Analytics.id.desc()).limit(1))
        return result.scalar_one_or_none()

    # --- Clearing ---

    async def clear_all_responses(self) -> None:
        await self.db.execute(delete(Response))

    async def clear_all_prompts(self) -> None:
        """Delete prompts together with their responses."""
        await self.db.execute(delete(Response))
        await self.db.execute(delete(Prompt))

    async def clear_all_competitors(self) -> None:
        await self.db.execute(delete(Competitor))

    async def clear_all(self) -> None:
        """Prompts, responses and competitors. Topics, sources and analytics are kept."""
        await self.clear_all_prompts()
        await self.clear_all_competitors()
        logger.info("All analysis data cleared")
