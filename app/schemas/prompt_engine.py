from pydantic import BaseModel, Field

from app.schemas.analysis import AnalysisSettings


class CompetitorRef(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: str | None = None
    category: str | None = None


class GeneratePromptsRequest(BaseModel):
    brand_url: str = Field(min_length=1, max_length=2000)
    competitors: list[CompetitorRef] = Field(default_factory=list)
    settings: AnalysisSettings
    diversity_threshold: float | None = Field(default=None, ge=0, le=100)  # enables the batch diversity generator


class TopicPrompts(BaseModel):
    name: str
    description: str | None = None
    prompts: list[str]


class GeneratePromptsResponse(BaseModel):
    topics: list[TopicPrompts]


class GenerateTopicPromptsRequest(BaseModel):
    topic_name: str = Field(min_length=1, max_length=255)
    topic_description: str = Field(min_length=1, max_length=2000)
    competitors: list[CompetitorRef] = Field(default_factory=list)
    prompt_count: int = Field(default=5, ge=1, le=100)


class GenerateTopicPromptsResponse(BaseModel):
    prompts: list[str]


class SaveAndAnalyzeRequest(BaseModel):
    topics: list[TopicPrompts] = Field(min_length=1)
    brand_name: str | None = None
    brand_url: str | None = None


class AnalyzeBrandRequest(BaseModel):
    url: str = Field(min_length=1, max_length=2000)


class AnalyzeBrandResponse(BaseModel):
    competitors: list[CompetitorRef]
