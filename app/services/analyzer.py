"""Analysis orchestrator.

Runs one brand analysis end to end:
  1. assemble prompts (saved, existing or freshly generated per topic)
  2. send each prompt to the LLM adapter, strictly sequentially
  3. fall back to a synthetic result when the adapter gives up
  4. record competitor mentions and per-domain citations
  5. persist the response, report progress
  6. write an Analytics rollup

Only one run may be active per orchestrator. The check-and-set of the
running flag is synchronous, so two ``start()`` calls on the same event loop
can never both win. Cancellation is cooperative and is checked once per
prompt; an in-flight LLM call always completes.
"""

import asyncio
import dataclasses
import enum
import logging
import random
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.analysis.competitors import CompetitorRegistry
from app.analysis.signal_extractor import TextSignalExtractor
from app.analysis.sources import SourceAggregator
from app.analysis.url_extractor import extract_urls, normalize_url
from app.collectors.llm_base import BaseLlmAdapter, PromptAnalysis
from app.collectors.website import generate_topics_from_content, scrape_brand_website
from app.core.config import Settings, settings as app_settings
from app.core.exceptions import LlmAdapterError
from app.core.metrics import ANALYSIS_RUNS, PROMPTS_PROCESSED
from app.prompt_engine.generator import PromptGenerator
from app.schemas.analysis import AnalysisProgress, AnalysisSettings, AnalysisStatus, PromptInput
from app.services.storage import AnalysisStorage

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Analysis cancelled by user"

FALLBACK_SOURCES = (
    "https://stackoverflow.com/questions/deployment",
    "https://docs.aws.amazon.com",
    "https://github.com/features/actions",
    "https://docs.github.com/en/actions",
    "https://vercel.com/docs",
    "https://netlify.com/docs",
    "https://docs.docker.com",
    "https://kubernetes.io/docs",
)

ProgressCallback = Callable[[AnalysisProgress], None]


@dataclass(frozen=True)
class AnalysisConfig:
    """Tuning knobs for a run. Tests build one with zero delays."""

    brand_name: str = ""
    brand_url: str = ""
    synthetic_mention_rate: float = 0.15
    competitor_similarity_threshold: float = 70.0
    max_competitors: int = 10
    prompts_per_topic: int = 20
    prompt_attempt_multiplier: int = 5
    inter_call_delay: float = 2.0
    reset_delay: float = 1.0
    categorize_delay: float = 0.5
    categorize_timeout: float = 15.0
    website_fetch_timeout: float = 10.0

    @classmethod
    def from_settings(cls, s: Settings = app_settings) -> "AnalysisConfig":
        return cls(
            brand_name=s.brand_name,
            brand_url=s.brand_url,
            synthetic_mention_rate=s.synthetic_mention_rate,
            competitor_similarity_threshold=s.competitor_similarity_threshold,
            max_competitors=s.max_competitors_per_text,
            prompts_per_topic=s.default_prompts_per_topic,
            prompt_attempt_multiplier=s.prompt_attempt_multiplier,
            inter_call_delay=s.inter_call_delay_seconds,
            reset_delay=s.reset_delay_seconds,
            categorize_delay=s.categorize_delay_seconds,
            categorize_timeout=s.categorize_timeout_seconds,
            website_fetch_timeout=s.website_fetch_timeout_seconds,
        )


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ProgressReporter:
    """Latest progress snapshot plus push notification to subscribers."""

    def __init__(self):
        self._snapshot = AnalysisProgress()
        self._subscribers: list[ProgressCallback] = []

    @property
    def snapshot(self) -> AnalysisProgress:
        return self._snapshot

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def reset(self) -> None:
        self._publish(AnalysisProgress(status=AnalysisStatus.INITIALIZING, message="Starting analysis...", progress=0))

    def update(self, **fields) -> AnalysisProgress:
        self._publish(self._snapshot.model_copy(update=fields))
        return self._snapshot

    def _publish(self, snapshot: AnalysisProgress) -> None:
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Progress subscriber failed")


class RunOutcome(str, enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    BUSY = "busy"


@dataclass
class StartResult:
    started: bool
    run_id: str | None = None
    reason: str | None = None
    task: asyncio.Task | None = None


class AnalysisOrchestrator:
    """Single-flight, cancellable runner for brand analyses."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapter: BaseLlmAdapter,
        config: AnalysisConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.session_factory = session_factory
        self.adapter = adapter
        self.config = config or AnalysisConfig.from_settings()
        self.progress = ProgressReporter()
        self.extractor = TextSignalExtractor(
            adapter,
            similarity_threshold=self.config.competitor_similarity_threshold,
            max_competitors=self.config.max_competitors,
        )
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._running = False
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self.run_id: str | None = None

    # --- Control surface ---

    @property
    def is_running(self) -> bool:
        return self._running

    def get_current_progress(self) -> AnalysisProgress:
        return self.progress.snapshot

    def set_brand(self, brand_name: str | None = None, brand_url: str | None = None) -> None:
        changes = {}
        if brand_name is not None:
            changes["brand_name"] = brand_name
        if brand_url is not None:
            changes["brand_url"] = brand_url
        if changes:
            self.config = dataclasses.replace(self.config, **changes)

    def start(
        self,
        use_existing_prompts: bool = False,
        saved_prompts: list[PromptInput] | None = None,
        settings: AnalysisSettings | None = None,
    ) -> StartResult:
        """Launch a run in the background. Returns ``started=False, reason="busy"`` if one is active."""
        if not self._acquire():
            return StartResult(started=False, reason="busy")

        token = CancellationToken()
        self._token = token
        self._task = asyncio.create_task(
            self._run_acquired(use_existing_prompts, saved_prompts, settings, token),
            name=f"analysis-{self.run_id}",
        )
        self._task.add_done_callback(self._on_task_done)
        return StartResult(started=True, run_id=self.run_id, task=self._task)

    def cancel(self) -> bool:
        """Request cooperative cancellation. False when nothing is running."""
        if not self._running or self._token is None:
            return False
        if self._token.cancelled:
            return True
        self._token.cancel()
        self.progress.update(status=AnalysisStatus.ERROR, message=CANCELLED_MESSAGE, progress=0)
        logger.info("Cancellation requested", extra={"run_id": self.run_id})
        return True

    async def run_full_analysis(
        self,
        use_existing_prompts: bool = False,
        saved_prompts: list[PromptInput] | None = None,
        settings: AnalysisSettings | None = None,
        token: CancellationToken | None = None,
    ) -> RunOutcome:
        """Run an analysis in the caller's task and wait for it."""
        if not self._acquire():
            return RunOutcome.BUSY
        token = token or CancellationToken()
        self._token = token
        return await self._run_acquired(use_existing_prompts, saved_prompts, settings, token)

    def _acquire(self) -> bool:
        if self._running:
            logger.info("Analysis already running, rejecting new request")
            ANALYSIS_RUNS.labels(status="busy").inc()
            return False
        self._running = True
        self.run_id = uuid.uuid4().hex[:12]
        self.progress.reset()
        return True

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Analysis task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Analysis task %s failed: %s", task.get_name(), exc)

    # --- Run ---

    async def _run_acquired(
        self,
        use_existing_prompts: bool,
        saved_prompts: list[PromptInput] | None,
        settings: AnalysisSettings | None,
        token: CancellationToken,
    ) -> RunOutcome:
        cfg = self.config
        log_extra = {"run_id": self.run_id}
        try:
            self.progress.update(status=AnalysisStatus.INITIALIZING, message="Starting brand analysis...", progress=0)
            if cfg.reset_delay:
                await self._sleep(cfg.reset_delay)

            prompts = await self._assemble_prompts(cfg, use_existing_prompts, saved_prompts, settings)
            logger.info("Processing %d prompts", len(prompts), extra=log_extra)

            total = len(prompts)
            self.progress.update(
                status=AnalysisStatus.TESTING_PROMPTS,
                message="Testing prompts with ChatGPT...",
                progress=30,
                total_prompts=total,
                completed_prompts=0,
            )

            completed = 0
            for index, item in enumerate(prompts):
                if token.cancelled:
                    logger.info("Analysis cancelled at prompt %d/%d", index + 1, total, extra=log_extra)
                    self.progress.update(status=AnalysisStatus.ERROR, message=CANCELLED_MESSAGE, progress=0)
                    ANALYSIS_RUNS.labels(status="cancelled").inc()
                    return RunOutcome.CANCELLED

                try:
                    await self._process_prompt(cfg, item, index)
                    completed += 1
                except Exception as e:
                    PROMPTS_PROCESSED.labels(outcome="error").inc()
                    logger.error("Error processing prompt %r: %s", item.text[:50], e, extra=log_extra)

                self.progress.update(
                    status=AnalysisStatus.TESTING_PROMPTS,
                    message=f"Testing prompts with ChatGPT... ({completed}/{total})",
                    progress=30 + completed / total * 50,
                    total_prompts=total,
                    completed_prompts=completed,
                )

            self.progress.update(status=AnalysisStatus.ANALYZING, message="Generating analytics...", progress=85)
            await self._generate_analytics()

            self.progress.update(status=AnalysisStatus.COMPLETE, message="Analysis complete!", progress=100)
            ANALYSIS_RUNS.labels(status="complete").inc()
            logger.info("Analysis complete: %d/%d prompts processed", completed, total, extra=log_extra)
            return RunOutcome.COMPLETED

        except Exception as e:
            logger.exception("Analysis failed", extra=log_extra)
            self.progress.update(status=AnalysisStatus.ERROR, message=f"Analysis failed: {e}", progress=0)
            ANALYSIS_RUNS.labels(status="error").inc()
            raise
        finally:
            self._running = False
            self._token = None

    async def _assemble_prompts(
        self,
        cfg: AnalysisConfig,
        use_existing_prompts: bool,
        saved_prompts: list[PromptInput] | None,
        settings: AnalysisSettings | None,
    ) -> list[PromptInput]:
        if saved_prompts:
            self.progress.update(
                status=AnalysisStatus.INITIALIZING,
                message="Clearing previous data and loading saved prompts...",
                progress=5,
            )
            async with self.session_factory() as session:
                storage = AnalysisStorage(session)
                await storage.clear_all_responses()
                await storage.clear_all_prompts()
                await storage.clear_all_competitors()
                await session.commit()
            logger.info("Cleared prompts, responses and competitors for saved prompts")

            self.progress.update(message="Loading saved prompts...", progress=10)
            prompts = [PromptInput(text=p.text, topic_id=p.topic_id) for p in saved_prompts]
            self.progress.update(status=AnalysisStatus.TESTING_PROMPTS, message="Processing saved prompts...", progress=20)
            return prompts

        if use_existing_prompts:
            self.progress.update(
                status=AnalysisStatus.TESTING_PROMPTS,
                message="Using existing prompts for analysis...",
                progress=20,
            )
            async with self.session_factory() as session:
                stored = await AnalysisStorage(session).list_prompts()
            return [PromptInput(id=p.id, text=p.text, topic_id=p.topic_id) for p in stored]

        self.progress.update(status=AnalysisStatus.INITIALIZING, message="Preparing for new analysis...", progress=5)
        self.progress.update(status=AnalysisStatus.SCRAPING, message="Analyzing brand website...", progress=10)
        content = await scrape_brand_website(cfg.brand_url, timeout=cfg.website_fetch_timeout)
        topics = generate_topics_from_content(content)
        if settings is not None:
            topics = topics[: settings.number_of_topics]

        self.progress.update(
            status=AnalysisStatus.GENERATING_PROMPTS,
            message="Generating test prompts...",
            progress=20,
        )
        per_topic = settings.prompts_per_topic if settings is not None else cfg.prompts_per_topic
        generator = PromptGenerator(self.adapter, attempt_multiplier=cfg.prompt_attempt_multiplier)

        prompts: list[PromptInput] = []
        for seed in topics:
            async with self.session_factory() as session:
                storage = AnalysisStorage(session)
                topic = await storage.get_topic_by_name(seed.name)
                if topic is None:
                    topic = await storage.create_topic(seed.name, seed.description)
                    await session.commit()
                topic_id = topic.id

            texts = await generator.generate(seed.name, seed.description, per_topic)
            prompts.extend(PromptInput(text=text, topic_id=topic_id) for text in texts)
        return prompts

    async def _process_prompt(self, cfg: AnalysisConfig, item: PromptInput, index: int) -> None:
        async with self.session_factory() as session:
            storage = AnalysisStorage(session)

            prompt_id = item.id
            if prompt_id is None:
                prompt_id = (await storage.create_prompt(item.text, item.topic_id)).id

            if index > 0 and cfg.inter_call_delay:
                await self._sleep(cfg.inter_call_delay)

            try:
                analysis = await self.adapter.analyze_prompt_response(item.text)
                PROMPTS_PROCESSED.labels(outcome="ok").inc()
            except LlmAdapterError as e:
                logger.warning("LLM analysis failed, using fallback analysis: %s", e)
                analysis = await self._fallback_analysis(cfg, item.text)
                PROMPTS_PROCESSED.labels(outcome="fallback").inc()

            competitors = list(dict.fromkeys(analysis.competitors))
            registry = CompetitorRegistry(
                storage,
                self.adapter,
                brand_name=cfg.brand_name,
                categorize_timeout=cfg.categorize_timeout,
                categorize_delay=cfg.categorize_delay,
                sleep=self._sleep,
            )
            await registry.record_mentions(competitors)

            cited = [url for url in map(normalize_url, analysis.sources) if url]
            urls = list(dict.fromkeys(extract_urls(analysis.response) + cited + extract_urls(item.text)))
            await SourceAggregator(storage).record_citations(urls)

            await storage.create_response(
                prompt_id=prompt_id,
                text=analysis.response,
                brand_mentioned=analysis.brand_mentioned,
                competitors_mentioned=competitors,
                sources=list(analysis.sources),
            )
            await session.commit()

    async def _fallback_analysis(self, cfg: AnalysisConfig, prompt_text: str) -> PromptAnalysis:
        """Synthetic result so one outage does not abort the batch."""
        brand_mentioned = self._rng.random() < cfg.synthetic_mention_rate
        competitors = await self.extractor.extract_competitors(prompt_text, cfg.brand_name)

        text = (
            f"Based on your {prompt_text.lower()}, I'd recommend considering "
            f"{', '.join(competitors)} for your deployment needs."
        )
        if brand_mentioned:
            text += " There are also other good options for simple deployments."

        return PromptAnalysis(
            response=text,
            brand_mentioned=brand_mentioned,
            competitors=list(dict.fromkeys(competitors)),
            sources=list(FALLBACK_SOURCES),
        )

    async def _generate_analytics(self):
        async with self.session_factory() as session:
            storage = AnalysisStorage(session)
            total = await storage.count_responses()
            mentions = await storage.count_brand_mentions()
            competitors = await storage.list_competitors()
            sources = await storage.list_sources()

            analytics = await storage.create_analytics(
                total_prompts=total,
                brand_mention_rate=mentions / total * 100 if total else 0.0,
                top_competitor=competitors[0].name if competitors else None,
                total_sources=len(sources),
                total_domains=len({s.domain for s in sources}),
            )
            await session.commit()
            return analytics
