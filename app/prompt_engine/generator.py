"""LLM-based prompt generation with deterministic fallbacks.

Two generators share the adapter:
  - ``PromptGenerator.generate``: one short, problem-style prompt per call,
    rotating through a fixed aspect list. Well-formed candidates are accepted
    as-is. Used by the analysis run.
  - ``generate_diverse_prompts``: free-form prompts filtered by word-overlap
    diversity. Used by the prompt builder endpoints.

``generate`` always returns exactly ``count`` prompts, padding with templates;
the diverse variant may return fewer when templates are too similar.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from app.analysis.diversity import is_diverse

if TYPE_CHECKING:
    from app.collectors.llm_base import BaseLlmAdapter

logger = logging.getLogger(__name__)

ASPECTS = (
    "cost and pricing",
    "ease of use",
    "performance and speed",
    "reliability and stability",
    "features and capabilities",
    "user experience",
    "scaling and growth",
    "support and documentation",
    "security and privacy",
    "maintenance and updates",
    "team collaboration",
    "integration options",
    "backup and recovery",
    "compliance and regulations",
    "cost optimization",
    "migration and switching",
    "customization options",
    "troubleshooting and help",
    "performance comparison",
    "automation capabilities",
)

FALLBACK_TEMPLATES = (
    "Dealing with {t} complexity",
    "Need help optimizing {t} setup",
    "Struggling with {t} performance issues",
    "How to improve {t} reliability?",
    "Tired of {t} maintenance overhead",
    "Best practices for {t} implementation",
    "Looking to simplify {t} workflow",
    "Ways to reduce {t} costs",
    "Automating {t} processes better",
    "{T} security considerations",
    "Monitoring and tracking for {t}",
    "Scaling {t} for growth",
    "Migration strategies for {t}",
    "Backup solutions for {t}",
    "Team collaboration with {t}",
    "Testing strategies for {t}",
    "Documentation needs for {t}",
    "Compliance requirements with {t}",
    "Integration challenges with {t}",
    "Performance comparison for {t}",
)

BATCH_CONTEXTS = (
    "startup with limited budget",
    "enterprise application",
    "personal project",
    "high-traffic application",
    "development team",
    "solo developer",
)

BATCH_QUESTION_TYPES = (
    "I'm struggling with",
    "What are the pros and cons of",
    "Can you compare",
    "I need help choosing between",
    "What would you recommend for",
    "How do I troubleshoot",
    "What's the difference between",
    "Is there a better alternative to",
)

_QUOTES = "\"'`\u201c\u201d\u2018\u2019\u201e\u201a\u201b\u00ab\u00bb"
_EDGE_QUOTES = re.compile(rf"^[{_QUOTES}]+|[{_QUOTES}]+$")
_ESCAPED_QUOTES = re.compile(r"\\[\"']")
_TRAILING_FILLER = re.compile(r"\s+(please|exactly|specifically)$", re.IGNORECASE)
_QUESTION_START = re.compile(r"^(how|what|when|where|why|which|can|should|do|does|is|are|will)\b", re.IGNORECASE)


def clean_prompt_candidate(raw: str) -> str:
    """Strip quotes and filler, capitalise, and add ``?`` to obvious questions."""
    text = (raw or "").strip()
    text = _EDGE_QUOTES.sub("", text)
    text = _ESCAPED_QUOTES.sub("", text)
    text = _TRAILING_FILLER.sub("", text).strip()

    while text and (text[0] in _QUOTES or text[-1] in _QUOTES):
        text = _EDGE_QUOTES.sub("", text).strip()

    if not text:
        return ""

    text = text[0].upper() + text[1:]
    if _QUESTION_START.match(text) and not text.endswith("?"):
        text += "?"
    return text


def is_well_formed(prompt: str) -> bool:
    words = prompt.split(" ")
    return 3 <= len(words) <= 12 and " " in prompt


def fallback_prompts(topic_name: str) -> list[str]:
    lowered = topic_name.lower()
    return [template.format(t=lowered, T=topic_name) for template in FALLBACK_TEMPLATES]


def pad_prompts(prompts: list[str], topic_name: str, count: int) -> list[str]:
    """Top *prompts* up to *count* with templates, then numbered filler."""
    padded = list(prompts)
    for template in fallback_prompts(topic_name):
        if len(padded) >= count:
            break
        if template not in padded:
            padded.append(template)

    for i in range(len(padded), count):
        padded.append(f"{topic_name} question {i + 1}")
    return padded[:count]


class PromptGenerator:
    """Produces ``count`` prompts per topic via the LLM adapter."""

    def __init__(self, adapter: BaseLlmAdapter, attempt_multiplier: int = 5):
        self.adapter = adapter
        self.attempt_multiplier = attempt_multiplier

    async def generate(
        self,
        topic_name: str,
        topic_description: str = "",
        count: int = 20,
        competitors: list[str] | None = None,
    ) -> list[str]:
        prompts: list[str] = []
        max_attempts = count * self.attempt_multiplier
        attempts = 0

        while len(prompts) < count and attempts < max_attempts:
            attempts += 1
            aspect = ASPECTS[attempts % len(ASPECTS)]
            try:
                raw = await self.adapter.generate_prompt_candidate(topic_name, aspect)
            except Exception as e:
                logger.warning("Prompt generation for %s (%s) failed: %s", topic_name, aspect, e)
                continue

            candidate = clean_prompt_candidate(raw)
            if candidate and is_well_formed(candidate):
                prompts.append(candidate)

        if len(prompts) < count:
            logger.info(
                "Generated %d/%d prompts for %s after %d attempts, padding with templates",
                len(prompts),
                count,
                topic_name,
                attempts,
            )
        return pad_prompts(prompts, topic_name, count)


def batch_fallback_prompts(topic_name: str, competitors: list[str]) -> list[str]:
    fallbacks = []
    for i in range(5):
        context = BATCH_CONTEXTS[i % len(BATCH_CONTEXTS)]
        question_type = BATCH_QUESTION_TYPES[i % len(BATCH_QUESTION_TYPES)]
        competitor = competitors[i % len(competitors)] if competitors else "other tools"
        fallbacks.append(
            f"{question_type} {topic_name} solutions for a {context}? "
            f"I've heard about {competitor} but want to explore options."
        )
    return fallbacks


async def generate_diverse_prompts(
    adapter: BaseLlmAdapter,
    topic_name: str,
    competitors: list[str],
    count: int,
    diversity_threshold: float = 50.0,
    attempt_multiplier: int = 3,
) -> list[str]:
    """Free-form prompts kept only when lexically distinct from those already accepted."""
    prompts: list[str] = []
    attempts = 0
    max_attempts = count * attempt_multiplier

    while len(prompts) < count and attempts < max_attempts:
        attempts += 1
        try:
            candidate = (await adapter.generate_free_prompt(topic_name, competitors)).strip()
        except Exception as e:
            logger.warning("Free prompt generation for %s failed: %s", topic_name, e)
            continue
        if candidate and is_diverse(candidate, prompts, diversity_threshold):
            prompts.append(candidate)

    for fallback in batch_fallback_prompts(topic_name, competitors):
        if len(prompts) >= count:
            break
        if is_diverse(fallback, prompts, diversity_threshold):
            prompts.append(fallback)

    if not prompts:
        prompts.append(f"Tell me about {topic_name} options available today.")
    return prompts[:count]
