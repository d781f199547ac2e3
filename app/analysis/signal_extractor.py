"""Brand, competitor and source signals extracted from a response text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from app.analysis.url_extractor import extract_urls

if TYPE_CHECKING:
    from app.collectors.llm_base import BaseLlmAdapter, ExtractedSource

logger = logging.getLogger(__name__)


@dataclass
class MentionSignals:
    brand_mentioned: bool = False
    competitors: list[str] = field(default_factory=list)
    sources: list[ExtractedSource] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)


def mentions_brand(text: str, brand_name: str | None) -> bool:
    if not brand_name or not brand_name.strip():
        return False
    pattern = re.compile(rf"(?<!\w){re.escape(brand_name.strip())}(?!\w)", re.IGNORECASE)
    return bool(pattern.search(text))


class TextSignalExtractor:
    """Combines pattern-based URL extraction with LLM classification.

    Adapter failures yield empty signals; the caller decides on a fallback.
    """

    def __init__(self, adapter: BaseLlmAdapter, similarity_threshold: float = 70.0, max_competitors: int = 10):
        self.adapter = adapter
        self.similarity_threshold = similarity_threshold
        self.max_competitors = max_competitors

    @staticmethod
    def extract_urls(text: str) -> list[str]:
        return extract_urls(text)

    async def extract_competitors(self, text: str, brand_name: str | None = None) -> list[str]:
        try:
            return await self.adapter.extract_competitors_from_text(
                text,
                brand_name,
                similarity_threshold=self.similarity_threshold,
                limit=self.max_competitors,
            )
        except Exception as e:
            logger.warning("Competitor extraction failed: %s", e)
            return []

    async def classify_mentions(self, text: str, brand_name: str | None = None) -> MentionSignals:
        signals = MentionSignals(
            brand_mentioned=mentions_brand(text, brand_name),
            urls=extract_urls(text),
        )

        signals.competitors = await self.extract_competitors(text, brand_name)

        try:
            signals.sources = await self.adapter.extract_sources_from_text(text)
        except Exception as e:
            logger.warning("Source extraction failed: %s", e)

        return signals
