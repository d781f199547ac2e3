import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_v1_router
from app.collectors.llm_openai import OpenAiAdapter
from app.core.config import settings, validate_settings_for_production
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMiddleware, metrics_response
from app.core.rate_limit import limiter
from app.core.sentry import init_sentry
from app.db.session import async_session_factory, engine, init_db
from app.schemas.analysis import AnalysisSettings
from app.services.analyzer import AnalysisConfig, AnalysisOrchestrator

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


def build_orchestrator() -> AnalysisOrchestrator:
    adapter = OpenAiAdapter(
        settings.openai_api_key,
        model=settings.openai_model,
        api_url=settings.openai_api_url,
        retry_attempts=settings.llm_retry_attempts,
        backoff_base=settings.llm_backoff_base_seconds,
        analysis_timeout=settings.analysis_timeout_seconds,
    )
    return AnalysisOrchestrator(async_session_factory, adapter, AnalysisConfig.from_settings(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    logger.info("Starting Brand Monitor...")

    if settings.db_auto_create:
        await init_db()
        logger.info("Database schema ready")

    app.state.orchestrator = build_orchestrator()
    app.state.analysis_defaults = AnalysisSettings(prompts_per_topic=settings.default_prompts_per_topic)
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set, analysis runs will use fallback results")

    yield

    # Shutdown
    orchestrator: AnalysisOrchestrator = app.state.orchestrator
    if orchestrator.is_running:
        orchestrator.cancel()
    await engine.dispose()
    logger.info("Brand Monitor shut down")


app = FastAPI(
    title="Brand Monitor",
    description="Brand visibility analysis across LLM answers",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


# Log unhandled exceptions with their traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": f"{type(exc).__name__}: {exc}"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request metrics
app.add_middleware(PrometheusMiddleware)

# CORS: parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


@app.get("/api/v1/health")
async def health():
    orchestrator: AnalysisOrchestrator = app.state.orchestrator
    return {
        "status": "ok",
        "analysis_running": orchestrator.is_running,
        "llm_configured": bool(orchestrator.adapter.api_key),
    }
