import asyncio
import os
from collections.abc import AsyncGenerator

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.collectors.llm_base import BaseLlmAdapter, PromptAnalysis  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.schemas.analysis import AnalysisSettings  # noqa: E402
from app.services.analyzer import AnalysisConfig, AnalysisOrchestrator  # noqa: E402

settings.app_env = "development"
limiter.enabled = False

STUB_RESPONSE = "Try CompetitorX, see https://docs.competitorx.com/guide"


async def no_sleep(_seconds: float) -> None:
    return None


class FakeLlmAdapter(BaseLlmAdapter):
    """Deterministic adapter: every prompt gets the same answer naming CompetitorX."""

    provider = "fake"

    def __init__(self, response: str = STUB_RESPONSE, competitors: list[str] | None = None, **kwargs):
        kwargs.setdefault("sleep", no_sleep)
        super().__init__(api_key="sk-test-fake-key", **kwargs)
        self.response = response
        self.competitors = ["CompetitorX"] if competitors is None else competitors
        self.analyze_calls: list[str] = []
        self.completions: list[tuple[str, str]] = []

    async def complete(self, system, user, *, temperature=0.7, max_tokens=1000, json_mode=False) -> str:
        self.completions.append((system, user))
        if json_mode:
            return '{"competitors": []}'
        return "Plain text"

    async def analyze_prompt_response(self, prompt: str) -> PromptAnalysis:
        self.analyze_calls.append(prompt)
        return PromptAnalysis(
            response=self.response,
            brand_mentioned=False,
            competitors=list(self.competitors),
            sources=["https://docs.competitorx.com/guide"],
        )

    async def categorize_competitor(self, name: str, brand_name: str | None = None) -> str:
        return "Cloud Platform"

    async def generate_prompt_candidate(self, topic: str, aspect: str) -> str:
        return f"how to compare {topic.lower()} options for {aspect}"


def make_config(**overrides) -> AnalysisConfig:
    values = dict(
        brand_name="Acme",
        brand_url="",
        inter_call_delay=0,
        reset_delay=0,
        categorize_delay=0,
        categorize_timeout=1,
        website_fetch_timeout=1,
    )
    values.update(overrides)
    return AnalysisConfig(**values)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_adapter() -> FakeLlmAdapter:
    return FakeLlmAdapter()


@pytest.fixture
def orchestrator(session_factory, fake_adapter) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(session_factory, fake_adapter, make_config(), sleep=no_sleep)


@pytest.fixture
async def client(session_factory, orchestrator) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.orchestrator = orchestrator
    app.state.analysis_defaults = AnalysisSettings(prompts_per_topic=3, number_of_topics=1)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def wait_idle(orchestrator: AnalysisOrchestrator, timeout: float = 5.0) -> None:
    """Wait for a background run started through ``start()`` to finish."""
    async with asyncio.timeout(timeout):
        while orchestrator.is_running:
            await asyncio.sleep(0.01)
