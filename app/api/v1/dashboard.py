"""Dashboard API: read access to collected analysis data, plus clearing."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_orchestrator
from app.core.exceptions import ConflictError, NotFoundError
from app.db.session import get_db
from app.schemas.common import MessageResponse
from app.schemas.data import (
    ClearDataRequest,
    CompetitorAnalysis,
    CompetitorOut,
    Counts,
    OverviewMetrics,
    PromptWithTopicOut,
    ResponseWithPromptOut,
    SourceAnalysis,
    SourceOut,
    TopicAnalysis,
    TopicOut,
)
from app.services import dashboard_service
from app.services.analyzer import AnalysisOrchestrator
from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/metrics", response_model=OverviewMetrics)
async def overview_metrics(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_overview_metrics(db)


@router.get("/counts", response_model=Counts)
async def counts(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_counts(db)


# --- Topics ---


@router.get("/topics", response_model=list[TopicOut])
async def list_topics(db: AsyncSession = Depends(get_db)):
    return await AnalysisStorage(db).list_topics()


@router.get("/topics/analysis", response_model=list[TopicAnalysis])
async def topic_analysis(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_topic_analysis(db)


# --- Prompts & responses ---


@router.get("/prompts", response_model=list[PromptWithTopicOut])
async def list_prompts(db: AsyncSession = Depends(get_db)):
    return await AnalysisStorage(db).list_prompts()


@router.get("/responses", response_model=list[ResponseWithPromptOut])
async def list_responses(
    limit: int = Query(10, ge=1, le=1000),
    full: bool = Query(False, description="Return every response and ignore limit"),
    db: AsyncSession = Depends(get_db),
):
    """Latest responses first, with the prompt and topic they answer."""
    return await AnalysisStorage(db).list_responses(limit=None if full else limit)


@router.get("/responses/{response_id}", response_model=ResponseWithPromptOut)
async def get_response(response_id: int, db: AsyncSession = Depends(get_db)):
    response = await AnalysisStorage(db).get_response(response_id)
    if response is None:
        raise NotFoundError("Response not found")
    return response


# --- Competitors & sources ---


@router.get("/competitors", response_model=list[CompetitorOut])
async def list_competitors(db: AsyncSession = Depends(get_db)):
    return await AnalysisStorage(db).list_competitors()


@router.get("/competitors/analysis", response_model=list[CompetitorAnalysis])
async def competitor_analysis(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_competitor_analysis(db)


@router.get("/sources", response_model=list[SourceOut])
async def list_sources(db: AsyncSession = Depends(get_db)):
    return await AnalysisStorage(db).list_sources()


@router.get("/sources/analysis", response_model=list[SourceAnalysis])
async def source_analysis(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_source_analysis(db)


# --- Clearing ---


@router.post("/data/clear", response_model=MessageResponse)
async def clear_data(
    data: ClearDataRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    if orchestrator.is_running:
        raise ConflictError("Cannot clear data while an analysis is running")

    storage = AnalysisStorage(db)
    if data.type == "all":
        await storage.clear_all()
    elif data.type == "prompts":
        await storage.clear_all_prompts()
    else:
        await storage.clear_all_responses()
    await db.commit()

    logger.info("Cleared %s data", data.type)
    return MessageResponse(message=f"Cleared {data.type} data")

