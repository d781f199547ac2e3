"""Competitor registry: lookup-or-create, categorisation and mention counting."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.collectors.llm_base import BaseLlmAdapter
    from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Technology"

# Substring rules over the lower-cased name, checked in order
_KEYWORD_CATEGORIES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("cloud", "aws", "azure"), "Cloud Platform"),
    (("platform", "service", "deploy", "hosting", "app", "web"), "Platform as a Service"),
    (("database", "db", "sql", "postgres", "mysql", "redis"), "Database Service"),
    (("cdn", "edge", "cloudflare"), "CDN/Edge Service"),
)


def keyword_category(name: str) -> str:
    lowered = name.lower()
    for keywords, category in _KEYWORD_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


class CompetitorRegistry:
    """Single writer of Competitor rows during an analysis run."""

    def __init__(
        self,
        storage: AnalysisStorage,
        adapter: BaseLlmAdapter,
        *,
        brand_name: str = "",
        categorize_timeout: float = 15.0,
        categorize_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.storage = storage
        self.adapter = adapter
        self.brand_name = brand_name
        self.categorize_timeout = categorize_timeout
        self.categorize_delay = categorize_delay
        self._sleep = sleep

    async def categorize(self, name: str) -> str:
        """Ask the LLM for a category, falling back to keyword rules on timeout or error."""
        try:
            category = await asyncio.wait_for(
                self.adapter.categorize_competitor(name, self.brand_name),
                timeout=self.categorize_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Categorization of %s timed out, using keyword rules", name)
            return keyword_category(name)
        except Exception as e:
            logger.warning("Categorization of %s failed (%s), using keyword rules", name, e)
            return keyword_category(name)
        return category.strip() or keyword_category(name)

    async def ensure(self, name: str):
        """Return the Competitor row for *name*, creating it with a category on first sighting."""
        existing = await self.storage.get_competitor_by_name(name)
        if existing is not None and existing.category:
            return existing

        if self.categorize_delay:
            await self._sleep(self.categorize_delay)
        category = await self.categorize(name)

        if existing is not None:
            await self.storage.set_competitor_category(name, category)
            return existing

        logger.info("New competitor %s (%s)", name, category)
        return await self.storage.create_competitor(name=name, category=category)

    async def record_mentions(self, names: Iterable[str]) -> list[str]:
        """Count one mention per distinct name. Names match exactly, case included."""
        recorded: list[str] = []
        for name in dict.fromkeys(n.strip() for n in names):
            if not name:
                continue
            await self.ensure(name)
            await self.storage.increment_competitor_mentions(name)
            recorded.append(name)
        return recorded
