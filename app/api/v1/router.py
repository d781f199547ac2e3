from fastapi import APIRouter

from app.api.v1.analysis import router as analysis_router
from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.export import router as export_router
from app.api.v1.prompt_engine import router as prompt_engine_router
from app.api.v1.settings import router as settings_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(analysis_router)
api_v1_router.include_router(prompt_engine_router)
api_v1_router.include_router(dashboard_router)
api_v1_router.include_router(export_router)
api_v1_router.include_router(settings_router)
