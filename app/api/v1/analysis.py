"""Analysis control endpoints: start, cancel, poll, one-off tests."""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.analysis.signal_extractor import TextSignalExtractor
from app.collectors.llm_base import BaseLlmAdapter
from app.core.config import settings
from app.core.dependencies import get_adapter, get_analysis_defaults, get_orchestrator
from app.core.exceptions import BadGatewayError, LlmAdapterError
from app.core.rate_limit import limiter
from app.schemas.analysis import (
    AnalysisProgress,
    AnalysisSettings,
    ClassifyRequest,
    ExtractedSourceOut,
    MentionSignalsOut,
    PromptAnalysisOut,
    StartAnalysisRequest,
    StartAnalysisResponse,
    TestPromptRequest,
)
from app.schemas.common import MessageResponse
from app.services.analyzer import AnalysisOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def busy_response(orchestrator: AnalysisOrchestrator) -> JSONResponse:
    body = StartAnalysisResponse(
        started=False,
        reason="busy",
        message="An analysis is already running",
        progress=orchestrator.get_current_progress(),
    )
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump(mode="json"))


@router.post("/start", response_model=StartAnalysisResponse, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit("10/minute")
async def start_analysis(
    request: Request,
    data: StartAnalysisRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    defaults: AnalysisSettings = Depends(get_analysis_defaults),
):
    """Start a run in the background. 409 while another run is active."""
    if not orchestrator.is_running:
        orchestrator.set_brand(
            brand_name=data.brand_name.strip() if data.brand_name else None,
            brand_url=data.brand_url.strip() if data.brand_url else None,
        )

    result = orchestrator.start(
        use_existing_prompts=data.use_existing_prompts,
        saved_prompts=data.saved_prompts,
        settings=data.settings or defaults,
    )
    if not result.started:
        return busy_response(orchestrator)

    logger.info("Analysis %s started", result.run_id)
    return StartAnalysisResponse(
        started=True,
        run_id=result.run_id,
        message="Analysis started successfully",
        progress=orchestrator.get_current_progress(),
    )


@router.post("/cancel", response_model=MessageResponse)
async def cancel_analysis(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)):
    if orchestrator.cancel():
        return MessageResponse(message="Analysis cancelled successfully")
    return MessageResponse(success=False, message="No analysis is running")


@router.get("/progress", response_model=AnalysisProgress)
async def get_progress(orchestrator: AnalysisOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_current_progress()


@router.post("/test", response_model=PromptAnalysisOut)
@limiter.limit("20/minute")
async def test_prompt(
    request: Request,
    data: TestPromptRequest,
    adapter: BaseLlmAdapter = Depends(get_adapter),
):
    """Run one prompt through the LLM without persisting anything."""
    try:
        analysis = await adapter.analyze_prompt_response(data.prompt)
    except LlmAdapterError as e:
        logger.error("Test prompt failed: %s", e)
        raise BadGatewayError(str(e))
    return PromptAnalysisOut(
        response=analysis.response,
        brand_mentioned=analysis.brand_mentioned,
        competitors=analysis.competitors,
        sources=analysis.sources,
    )


@router.post("/classify", response_model=MentionSignalsOut)
async def classify_text(
    data: ClassifyRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Brand, competitor and source signals for arbitrary text."""
    extractor = TextSignalExtractor(
        orchestrator.adapter,
        similarity_threshold=settings.competitor_similarity_threshold,
        max_competitors=settings.max_competitors_per_text,
    )
    signals = await extractor.classify_mentions(data.text, data.brand_name or orchestrator.config.brand_name)
    return MentionSignalsOut(
        brand_mentioned=signals.brand_mentioned,
        competitors=signals.competitors,
        sources=[
            ExtractedSourceOut(title=s.title, url=s.url, domain=s.domain, snippet=s.snippet) for s in signals.sources
        ],
        urls=signals.urls,
    )
