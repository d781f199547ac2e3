from datetime import datetime

from pydantic import BaseModel, Field


class TopicOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PromptOut(BaseModel):
    id: int
    text: str
    topic_id: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PromptWithTopicOut(PromptOut):
    topic: TopicOut | None = None


class ResponseOut(BaseModel):
    id: int
    prompt_id: int
    text: str
    brand_mentioned: bool
    competitors_mentioned: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ResponseWithPromptOut(ResponseOut):
    prompt: PromptWithTopicOut | None = None


class CompetitorOut(BaseModel):
    id: int
    name: str
    category: str | None = None
    mention_count: int
    last_mentioned: datetime | None = None

    model_config = {"from_attributes": True}


class SourceOut(BaseModel):
    id: int
    domain: str
    url: str
    title: str | None = None
    citation_count: int
    last_cited: datetime | None = None

    model_config = {"from_attributes": True}


class AnalyticsOut(BaseModel):
    id: int
    date: datetime
    total_prompts: int
    brand_mention_rate: float
    top_competitor: str | None = None
    total_sources: int
    total_domains: int

    model_config = {"from_attributes": True}


class OverviewMetrics(BaseModel):
    brand_mention_rate: float
    total_prompts: int
    top_competitor: str
    total_sources: int
    total_domains: int


class Counts(BaseModel):
    total_responses: int
    total_prompts: int
    total_topics: int
    total_competitors: int
    total_sources: int
    brand_mentions: int
    brand_mention_rate: float


class TopicAnalysis(BaseModel):
    topic_id: int
    topic_name: str
    mention_rate: float
    total_prompts: int
    brand_mentions: int


class CompetitorAnalysis(BaseModel):
    competitor_id: int
    name: str
    category: str | None = None
    mention_count: int
    mention_rate: float
    change_rate: float = 0.0


class SourceAnalysis(BaseModel):
    source_id: int
    domain: str
    citation_count: int
    urls: list[str]


class ClearDataRequest(BaseModel):
    type: str = Field(pattern=r"^(all|prompts|responses)$")


class ExportDocument(BaseModel):
    timestamp: datetime
    analytics: AnalyticsOut | None = None
    topics: list[TopicOut]
    prompts: list[PromptOut]
    responses: list[ResponseOut]
    competitors: list[CompetitorOut]
    sources: list[SourceOut]
