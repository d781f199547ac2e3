"""Base LLM adapter.

Every operation the analysis pipeline needs from a text-generation service is
implemented here on top of a single abstract ``complete()`` call, so vendor
subclasses only have to speak their wire protocol.

Failure contract:
  - ``analyze_prompt_response`` retries with exponential backoff and raises
    ``LlmAdapterError`` once attempts are exhausted; callers substitute a
    fallback result.
  - extraction / discovery helpers never raise; they return empty results.
  - ``categorize_competitor`` and ``generate_prompt_candidate`` raise, the
    callers own the fallback.
"""

import asyncio
import json
import logging
import random
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from app.analysis.diversity import dedupe_competitors
from app.core.exceptions import LlmAdapterError, LlmResponseFormatError
from app.core.metrics import LLM_CALL_FAILURES

logger = logging.getLogger(__name__)

T = TypeVar("T")

VARIETY_CONTEXTS = (
    "Focus on enterprise solutions and scalability.",
    "Emphasize user experience and ease of use.",
    "Consider cost-effectiveness and budget-friendly options.",
    "Prioritize security and compliance features.",
    "Highlight community support and documentation quality.",
    "Focus on modern, cutting-edge technologies.",
    "Consider legacy system integration and migration.",
    "Emphasize performance and optimization.",
    "Highlight automation and efficiency capabilities.",
    "Focus on cloud-native and scalable solutions.",
)

_ANSWER_SYSTEM_PROMPT = """You are a helpful AI assistant answering questions about various products and services.
Provide practical, unbiased recommendations focusing on the most popular and widely-used options.
Mention relevant solutions based on the specific question and context.
Be natural and conversational in your responses.

ADDITIONAL CONTEXT: {context}

Always include specific URLs in your answer: official documentation, GitHub repositories,
Stack Overflow threads, tutorials, blog posts, community forums, videos, papers or reports.
Include niche and emerging resources as well as the common ones.
Make sure every URL is complete and valid (include https://)."""

_CLASSIFY_PROMPT = """Analyze the following AI response for mentions of products, services, and any relevant sources or references.

Response to analyze: "{text}"

Return JSON:
{{
  "brandMentioned": boolean (true if the main brand/company is mentioned),
  "competitors": array of competing product/service names mentioned,
  "sources": array of complete URLs (http:// or https://) mentioned in the response
}}

Keep every real, accessible URL regardless of domain familiarity. Remove duplicates.
Only drop malformed URLs, example.com domains and localhost URLs."""

_COMPETITOR_SYSTEM_PROMPT = """You are an expert at identifying ONLY direct competitors to a specific brand.
{brand_context}Be extremely strict - only extract companies that are DIRECT competitors in the EXACT same market space.

Rules:
- Only include companies that directly compete for the same customers
- Do NOT include general technology platforms, tools, or services
- Do NOT include complementary services or partners
- Do NOT include companies mentioned as examples or references
- Do NOT include companies in different market segments
- If unsure, do NOT include the company

Return only the competitor names as a JSON array of strings, or [] when none are found."""

_SOURCES_SYSTEM_PROMPT = """You are an expert at identifying documentation sources, references and URLs in text.
Extract every mentioned URL: official docs, GitHub repositories, Stack Overflow threads,
platform websites, tutorials, forums, videos, papers.
Return a JSON array of objects with title, url, domain and snippet fields."""

_CATEGORY_SYSTEM_PROMPT = """You are an expert at categorizing companies and competitors.
Given a competitor name and the context of the main brand, determine the most appropriate category.
Return only the category name as a single word or short phrase (e.g. "E-commerce", "Finance",
"Healthcare", "Technology", "Cloud Platform", "Database Service").
Do not include explanations or additional text."""

_PROMPT_CANDIDATE_SYSTEM_PROMPT = """You are generating authentic user search queries about {topic} with focus on {aspect}.

Make each prompt sound like a real person with a genuine question or problem.
Starters: "Dealing with...", "Struggling to...", "Need help with...", "Tired of...",
"How to fix...", "Looking for ways to...", "Getting frustrated with...".
Mix in constraints ("for small business", "under $100/month", "for beginners") and context
("startup", "enterprise", "personal use").

Generate ONE authentic user question or problem (max 12 words). Return only plain text without quotes."""

_FREE_PROMPT_SYSTEM_PROMPT = """You are an expert at generating diverse, realistic prompts for brand analysis.
Generate prompts that someone might ask an AI assistant about {topic}.

Requirements:
- Naturally worded, as if a real person is asking
- Vary structure, approach and focus: comparison, recommendation, explanation, troubleshooting
- Mention different contexts: beginner vs advanced, use cases, constraints
- Avoid repetitive templates such as "What is the best way to..." or "Which platform should I use for..."

Competitors to potentially reference: {competitors}

Generate exactly 1 unique prompt."""

_TOPICS_SYSTEM_PROMPT = """You are an expert at analyzing brands and generating relevant analysis topics.
Based on a brand URL and its competitors, generate diverse, business-relevant topics that help
understand the brand's market position, strengths and weaknesses.
Return a JSON array of objects with name and description fields."""

_COMPETITOR_FRAMINGS = (
    "find 2-3 well-known, established competitors",
    "find 2-3 newer or emerging competitors",
    "find 2-3 enterprise-focused or developer-focused competitors",
)

MAX_DISCOVERED_COMPETITORS = 8


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class PromptAnalysis:
    """An LLM answer to one prompt together with its classification."""

    response: str
    brand_mentioned: bool = False
    competitors: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)


@dataclass
class ExtractedSource:
    title: str
    url: str
    domain: str
    snippet: str | None = None


@dataclass
class TopicSeed:
    name: str
    description: str


@dataclass
class CompetitorSuggestion:
    name: str
    url: str
    category: str


# ---------------------------------------------------------------------------
# Structured output parsing
# ---------------------------------------------------------------------------

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*([\]}])")


def parse_json_payload(text: str) -> Any:
    """Parse JSON produced by an LLM.

    Tolerates markdown code fences, trailing commas and prose around the
    payload. Raises ``LlmResponseFormatError`` when nothing parses.
    """
    cleaned = _CODE_FENCE.sub("", (text or "").strip())
    cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)
    if not cleaned:
        raise LlmResponseFormatError("Empty structured response")

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost array or object embedded in prose
    for opener, closer in (("[", "]"), ("{", "}")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise LlmResponseFormatError(f"Could not parse JSON: {cleaned[:200]}")


def as_list(payload: Any, *keys: str) -> list:
    """Unwrap ``{"key": [...]}`` objects that json_mode forces around arrays."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
        lists = [value for value in payload.values() if isinstance(value, list)]
        if len(lists) == 1:
            return lists[0]
    return []


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class BaseLlmAdapter(ABC):
    """Base class for text-generation service adapters."""

    provider: str = "unknown"

    def __init__(
        self,
        api_key: str,
        *,
        retry_attempts: int = 3,
        backoff_base: float = 2.0,
        analysis_timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.api_key = api_key
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_base = backoff_base
        self.analysis_timeout = analysis_timeout
        self._sleep = sleep
        self._rng = rng or random.Random()

    @abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> str:
        """Send one chat exchange and return the assistant text. Implemented by subclasses."""
        ...

    async def validate_api_key(self, api_key: str) -> bool:
        return bool(api_key)

    async def call_with_retry(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run *call* with a per-attempt timeout and exponential backoff (2s, 4s, ...)."""
        timeout = timeout or self.analysis_timeout
        last_error: Exception | None = None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=timeout)
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"{self.provider} timeout on attempt {attempt}")
            except Exception as e:
                last_error = e
            logger.warning(
                "%s %s attempt %d/%d failed: %s",
                self.provider,
                operation,
                attempt,
                self.retry_attempts,
                last_error,
            )
            if attempt < self.retry_attempts:
                delay = self.backoff_base**attempt
                logger.debug("Retrying %s in %.1fs", operation, delay)
                await self._sleep(delay)

        LLM_CALL_FAILURES.labels(operation=operation).inc()
        raise LlmAdapterError(operation, str(last_error), self.retry_attempts) from last_error

    # --- Prompt execution ---

    async def analyze_prompt_response(self, prompt: str) -> PromptAnalysis:
        """Answer *prompt* as a chat assistant would, then classify the answer."""
        context = self._rng.choice(VARIETY_CONTEXTS)

        answer = await self.call_with_retry(
            "answer",
            lambda: self.complete(
                _ANSWER_SYSTEM_PROMPT.format(context=context),
                prompt,
                temperature=0.7,
                max_tokens=600,
            ),
        )

        raw = await self.call_with_retry(
            "classify",
            lambda: self.complete(
                "You are an expert at analyzing text for brand mentions and extracting structured data. "
                "Respond only with valid JSON.",
                _CLASSIFY_PROMPT.format(text=answer),
                temperature=0.1,
                max_tokens=300,
                json_mode=True,
            ),
        )
        try:
            payload = parse_json_payload(raw)
        except LlmResponseFormatError as e:
            raise LlmAdapterError("classify", str(e)) from e
        if not isinstance(payload, dict):
            payload = {}

        return PromptAnalysis(
            response=answer,
            brand_mentioned=bool(payload.get("brandMentioned", False)),
            competitors=[c for c in payload.get("competitors") or [] if isinstance(c, str)],
            sources=[s for s in payload.get("sources") or [] if isinstance(s, str)],
        )

    # --- Extraction ---

    async def extract_competitors_from_text(
        self,
        text: str,
        brand_name: str | None = None,
        *,
        similarity_threshold: float = 70.0,
        limit: int = 10,
    ) -> list[str]:
        """Direct competitors named in *text*, de-duplicated by name similarity. ``[]`` on failure."""
        brand_context = f"Focus on direct competitors to {brand_name}. " if brand_name else ""
        focus = f"\nFocus on companies that DIRECTLY compete with {brand_name} for the same customers." if brand_name else ""
        try:
            raw = await self.complete(
                _COMPETITOR_SYSTEM_PROMPT.format(brand_context=brand_context),
                f'Extract ONLY direct competitors from this text: "{text}"{focus}\n'
                'Return as JSON: {"competitors": ["Competitor1", "Competitor2"]} or {"competitors": []}',
                temperature=0.1,
                max_tokens=200,
                json_mode=True,
            )
            names = [n for n in as_list(parse_json_payload(raw), "competitors") if isinstance(n, str)]
        except Exception as e:
            logger.warning("Competitor extraction failed: %s", e)
            return []
        return dedupe_competitors(names, threshold=similarity_threshold, limit=limit)

    async def extract_sources_from_text(self, text: str) -> list[ExtractedSource]:
        """Sources cited in *text*; entries missing title, url or domain are dropped. ``[]`` on failure."""
        try:
            raw = await self.complete(
                _SOURCES_SYSTEM_PROMPT,
                f'Extract ALL relevant sources and URLs from this text: "{text}"\n'
                'Return as JSON: {"sources": [{"title": "Source Title", "url": "https://...", '
                '"domain": "docs.vendor.io", "snippet": "Description"}]}',
                temperature=0.1,
                max_tokens=500,
                json_mode=True,
            )
            items = as_list(parse_json_payload(raw), "sources")
        except Exception as e:
            logger.warning("Source extraction failed: %s", e)
            return []

        return [
            ExtractedSource(
                title=str(item["title"]),
                url=str(item["url"]),
                domain=str(item["domain"]),
                snippet=item.get("snippet"),
            )
            for item in items
            if isinstance(item, dict) and item.get("title") and item.get("url") and item.get("domain")
        ]

    # --- Categorisation & generation ---

    async def categorize_competitor(self, name: str, brand_name: str | None = None) -> str:
        text = await self.complete(
            _CATEGORY_SYSTEM_PROMPT,
            f"Brand: {brand_name or 'Unknown'}\nCompetitor: {name}\n\nWhat category does this competitor belong to?",
            temperature=0.1,
            max_tokens=20,
        )
        return text.strip().strip('"').strip()

    async def generate_prompt_candidate(self, topic: str, aspect: str) -> str:
        return await self.complete(
            _PROMPT_CANDIDATE_SYSTEM_PROMPT.format(topic=topic, aspect=aspect),
            f"Topic: {topic}, Focus: {aspect}.\n\n"
            "Generate an authentic user question or problem statement (plain text only, no quotes):",
            temperature=0.9,
            max_tokens=40,
        )

    async def generate_free_prompt(self, topic: str, competitors: list[str]) -> str:
        return await self.complete(
            _FREE_PROMPT_SYSTEM_PROMPT.format(topic=topic, competitors=", ".join(competitors) or "none"),
            f"Generate 1 diverse prompt about {topic}.",
            temperature=0.9,
            max_tokens=100,
        )

    async def generate_dynamic_topics(
        self,
        brand_url: str,
        count: int,
        competitors: list[str],
    ) -> list[TopicSeed]:
        """Topics for a brand. Degrades to numbered placeholder topics, never raises."""
        try:
            raw = await self.complete(
                _TOPICS_SYSTEM_PROMPT,
                f"Brand URL: {brand_url}\nCompetitors: {', '.join(competitors)}\n\n"
                f"Generate {count} diverse analysis topics for this brand's market position "
                'and competitive landscape.\nReturn as JSON: {"topics": [{"name": "Topic Name", '
                '"description": "Topic description"}]}',
                temperature=0.7,
                max_tokens=500,
                json_mode=True,
            )
            items = as_list(parse_json_payload(raw), "topics")
        except Exception as e:
            logger.error("Dynamic topic generation failed: %s", e)
            return [
                TopicSeed(
                    name=f"Brand Analysis {i + 1}",
                    description="Comprehensive analysis of brand positioning and market dynamics",
                )
                for i in range(count)
            ]

        topics = [item for item in items if isinstance(item, dict)]
        if not topics:
            return [
                TopicSeed(
                    name=f"Analysis Topic {i + 1}",
                    description="Dynamic analysis topic generated for brand analysis",
                )
                for i in range(count)
            ]

        seeds = []
        for item in topics[:count]:
            name = item.get("name") or "General Analysis"
            seeds.append(
                TopicSeed(
                    name=name,
                    description=item.get("description") or f"Analysis of {item.get('name') or 'general'} aspects",
                )
            )
        return seeds

    async def find_competitors(self, homepage_text: str) -> list[CompetitorSuggestion]:
        """Discover competitors with three framings in parallel, merged by name. At most 8."""

        async def _one(framing: str) -> list[CompetitorSuggestion]:
            system = (
                "You are an expert at identifying direct competitors for technology companies. "
                f"Given the following homepage content, {framing}. ALWAYS return an array, never a single object."
            )
            user = (
                f'Homepage content: """{homepage_text}"""\n\n'
                f"For this company, {framing}. Return as JSON: "
                '{"competitors": [{"name": "Competitor Name", "url": "https://competitor.com", "category": "Category"}]}'
            )
            try:
                raw = await self.call_with_retry(
                    "find_competitors",
                    lambda: self.complete(system, user, temperature=0.4, max_tokens=500, json_mode=True),
                )
                payload = parse_json_payload(raw)
            except (LlmAdapterError, LlmResponseFormatError) as e:
                logger.warning("Competitor discovery (%s) failed: %s", framing, e)
                return []

            if isinstance(payload, dict) and payload.get("name"):
                payload = [payload]
            return [
                CompetitorSuggestion(name=str(item["name"]), url=str(item["url"]), category=str(item["category"]))
                for item in as_list(payload, "competitors")
                if isinstance(item, dict) and item.get("name") and item.get("url") and item.get("category")
            ]

        results = await asyncio.gather(*(_one(framing) for framing in _COMPETITOR_FRAMINGS))

        merged: list[CompetitorSuggestion] = []
        seen: set[str] = set()
        for batch in results:
            for suggestion in batch:
                key = suggestion.name.lower().strip()
                if key not in seen:
                    seen.add(key)
                    merged.append(suggestion)
        logger.info("Competitor discovery found %d unique competitors", len(merged))
        return merged[:MAX_DISCOVERED_COMPETITORS]
