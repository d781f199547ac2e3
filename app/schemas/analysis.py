from enum import Enum

from pydantic import BaseModel, Field


class AnalysisStatus(str, Enum):
    """Stages of an analysis run. ``error`` is reachable from any stage."""

    INITIALIZING = "initializing"
    SCRAPING = "scraping"
    GENERATING_PROMPTS = "generating_prompts"
    TESTING_PROMPTS = "testing_prompts"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class AnalysisProgress(BaseModel):
    """Snapshot of the current run, overwritten on every update."""

    status: AnalysisStatus = AnalysisStatus.INITIALIZING
    message: str = "Ready to start analysis..."
    progress: float = Field(default=0.0, ge=0, le=100)
    total_prompts: int | None = 0
    completed_prompts: int | None = 0


class AnalysisSettings(BaseModel):
    prompts_per_topic: int = Field(default=20, ge=1, le=200)
    number_of_topics: int = Field(default=5, ge=1, le=50)


class PromptInput(BaseModel):
    """A prompt handed to the orchestrator. ``id`` is set when it is already persisted."""

    text: str = Field(min_length=1, max_length=2000)
    topic_id: int | None = None
    id: int | None = None


class StartAnalysisRequest(BaseModel):
    brand_name: str | None = Field(default=None, max_length=255)
    brand_url: str | None = Field(default=None, max_length=2000)
    use_existing_prompts: bool = False
    saved_prompts: list[PromptInput] | None = None
    settings: AnalysisSettings | None = None


class StartAnalysisResponse(BaseModel):
    started: bool
    run_id: str | None = None
    reason: str | None = None  # "busy" when another run is active
    message: str
    progress: AnalysisProgress


class TestPromptRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=2000)


class ClassifyRequest(BaseModel):
    text: str = Field(min_length=1, max_length=20000)
    brand_name: str | None = None


class ExtractedSourceOut(BaseModel):
    title: str
    url: str
    domain: str
    snippet: str | None = None


class MentionSignalsOut(BaseModel):
    brand_mentioned: bool
    competitors: list[str]
    sources: list[ExtractedSourceOut]
    urls: list[str] = Field(default_factory=list)


class PromptAnalysisOut(BaseModel):
    response: str
    brand_mentioned: bool
    competitors: list[str]
    sources: list[str]
