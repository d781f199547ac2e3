"""Settings API: brand, run defaults and the OpenAI key of the running process."""

import logging

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_analysis_defaults, get_orchestrator
from app.core.exceptions import BadRequestError, ConflictError
from app.core.rate_limit import limiter
from app.schemas.analysis import AnalysisSettings
from app.schemas.common import MessageResponse
from app.schemas.settings import AnalysisConfigOut, AnalysisConfigUpdate, OpenAiKeyRequest
from app.services.analyzer import AnalysisOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def _config_out(orchestrator: AnalysisOrchestrator, defaults: AnalysisSettings) -> AnalysisConfigOut:
    return AnalysisConfigOut(
        brand_name=orchestrator.config.brand_name,
        brand_url=orchestrator.config.brand_url,
        prompts_per_topic=defaults.prompts_per_topic,
        number_of_topics=defaults.number_of_topics,
        has_openai_key=bool(orchestrator.adapter.api_key),
    )


@router.get("/analysis", response_model=AnalysisConfigOut)
async def get_analysis_settings(
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    defaults: AnalysisSettings = Depends(get_analysis_defaults),
):
    return _config_out(orchestrator, defaults)


@router.put("/analysis", response_model=AnalysisConfigOut)
async def update_analysis_settings(
    request: Request,
    data: AnalysisConfigUpdate,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    defaults: AnalysisSettings = Depends(get_analysis_defaults),
):
    """Partial update; applies to the next run."""
    if orchestrator.is_running and (data.brand_name is not None or data.brand_url is not None):
        raise ConflictError("Cannot change the brand while an analysis is running")

    orchestrator.set_brand(brand_name=data.brand_name, brand_url=data.brand_url)

    changes = data.model_dump(include={"prompts_per_topic", "number_of_topics"}, exclude_none=True)
    if changes:
        defaults = defaults.model_copy(update=changes)
        request.app.state.analysis_defaults = defaults

    logger.info("Analysis settings updated: %s", sorted(data.model_dump(exclude_none=True)))
    return _config_out(orchestrator, defaults)


@router.post("/openai-key", response_model=MessageResponse)
@limiter.limit("5/minute")
async def set_openai_key(
    request: Request,
    data: OpenAiKeyRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Validate the key against the provider before switching to it."""
    api_key = data.api_key.strip()
    if not await orchestrator.adapter.validate_api_key(api_key):
        raise BadRequestError("Invalid OpenAI API key")

    orchestrator.adapter.api_key = api_key
    logger.info("OpenAI API key updated")
    return MessageResponse(message="API key saved")
