"""Data export: the whole analysis dataset as a downloadable JSON document."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rate_limit import limiter
from app.db.session import get_db
from app.services.dashboard_service import build_export

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


@router.get("")
@limiter.limit("10/minute")
async def export_data(request: Request, db: AsyncSession = Depends(get_db)):
    """Topics, prompts, responses, competitors, sources and the latest analytics."""
    document = await build_export(db)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    logger.info(
        "Exporting %d responses, %d competitors, %d sources",
        len(document.responses),
        len(document.competitors),
        len(document.sources),
    )
    return JSONResponse(
        content=document.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="brand-analysis-{stamp}.json"'},
    )
