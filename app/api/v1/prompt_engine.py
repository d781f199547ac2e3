"""Prompt builder endpoints.

Provides:
  - POST /brand/analyze: discover competitors from the brand homepage
  - POST /prompts/generate: topics x prompts for a brand (preview, no save)
  - POST /prompts/generate-topic: prompts for one custom topic
  - POST /prompts/save-and-analyze: persist curated topics and start a run with their prompts
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.analysis import busy_response
from app.collectors.llm_base import BaseLlmAdapter, TopicSeed
from app.collectors.website import fetch_website_text
from app.core.config import settings
from app.core.dependencies import get_adapter, get_orchestrator
from app.core.exceptions import BadRequestError
from app.core.rate_limit import limiter
from app.db.session import get_db
from app.prompt_engine.generator import PromptGenerator, generate_diverse_prompts
from app.schemas.analysis import PromptInput, StartAnalysisResponse
from app.schemas.prompt_engine import (
    AnalyzeBrandRequest,
    AnalyzeBrandResponse,
    CompetitorRef,
    GeneratePromptsRequest,
    GeneratePromptsResponse,
    GenerateTopicPromptsRequest,
    GenerateTopicPromptsResponse,
    SaveAndAnalyzeRequest,
    TopicPrompts,
)
from app.services.analyzer import AnalysisOrchestrator
from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["prompts"])


@router.post("/brand/analyze", response_model=AnalyzeBrandResponse)
@limiter.limit("5/minute")
async def analyze_brand(
    request: Request,
    body: AnalyzeBrandRequest,
    adapter: BaseLlmAdapter = Depends(get_adapter),
):
    homepage_text = await fetch_website_text(
        body.url,
        timeout=settings.website_fetch_timeout_seconds,
        limit=settings.website_text_limit,
    )
    if not homepage_text:
        logger.warning("No homepage text found for %s", body.url)

    suggestions = await adapter.find_competitors(homepage_text)
    logger.info("Found %d competitors for %s", len(suggestions), body.url)
    return AnalyzeBrandResponse(
        competitors=[CompetitorRef(name=s.name, url=s.url, category=s.category) for s in suggestions]
    )


@router.post("/prompts/generate", response_model=GeneratePromptsResponse)
@limiter.limit("5/minute")
async def generate_prompts(
    request: Request,
    body: GeneratePromptsRequest,
    adapter: BaseLlmAdapter = Depends(get_adapter),
    db: AsyncSession = Depends(get_db),
):
    """Reuse stored topics first, then ask the LLM for the missing ones."""
    wanted = body.settings.number_of_topics
    competitor_names = [c.name for c in body.competitors]

    existing = await AnalysisStorage(db).list_topics()
    topics = [
        TopicSeed(name=t.name, description=t.description or f"Questions about {t.name.lower()}")
        for t in existing[:wanted]
    ]
    if len(topics) < wanted:
        topics += await adapter.generate_dynamic_topics(body.brand_url, wanted - len(topics), competitor_names)

    generator = PromptGenerator(adapter, attempt_multiplier=settings.prompt_attempt_multiplier)
    result: list[TopicPrompts] = []
    for i, topic in enumerate(topics, start=1):
        logger.info("Generating prompts for topic %d/%d: %s", i, len(topics), topic.name)
        if body.diversity_threshold is not None:
            prompts = await generate_diverse_prompts(
                adapter,
                topic.name,
                competitor_names,
                body.settings.prompts_per_topic,
                diversity_threshold=body.diversity_threshold,
                attempt_multiplier=settings.batch_prompt_attempt_multiplier,
            )
        else:
            prompts = await generator.generate(
                topic.name, topic.description, body.settings.prompts_per_topic, competitor_names
            )
        result.append(TopicPrompts(name=topic.name, description=topic.description, prompts=prompts))

    return GeneratePromptsResponse(topics=result)


@router.post("/prompts/generate-topic", response_model=GenerateTopicPromptsResponse)
@limiter.limit("10/minute")
async def generate_topic_prompts(
    request: Request,
    body: GenerateTopicPromptsRequest,
    adapter: BaseLlmAdapter = Depends(get_adapter),
):
    generator = PromptGenerator(adapter, attempt_multiplier=settings.prompt_attempt_multiplier)
    prompts = await generator.generate(
        body.topic_name,
        body.topic_description,
        body.prompt_count,
        [c.name for c in body.competitors],
    )
    return GenerateTopicPromptsResponse(prompts=prompts)


@router.post("/prompts/save-and-analyze", response_model=StartAnalysisResponse, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("10/minute")
async def save_and_analyze(
    request: Request,
    body: SaveAndAnalyzeRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    """Store the curated topics and start a run over their prompts. 409 while a run is active."""
    if orchestrator.is_running:
        return busy_response(orchestrator)

    storage = AnalysisStorage(db)
    saved: list[PromptInput] = []
    for topic in body.topics:
        record = await storage.get_topic_by_name(topic.name)
        if record is None:
            record = await storage.create_topic(topic.name, topic.description)
        saved.extend(PromptInput(text=text, topic_id=record.id) for text in topic.prompts if text.strip())
    if not saved:
        raise BadRequestError("No prompts to analyze")
    await db.commit()

    orchestrator.set_brand(brand_name=body.brand_name, brand_url=body.brand_url)
    result = orchestrator.start(saved_prompts=saved)
    if not result.started:
        return busy_response(orchestrator)

    logger.info("Saved %d prompts, analysis %s started", len(saved), result.run_id)
    return StartAnalysisResponse(
        started=True,
        run_id=result.run_id,
        message=f"Prompts saved and analysis started ({len(saved)} prompts)",
        progress=orchestrator.get_current_progress(),
    )

