from pydantic import BaseModel, Field


class AnalysisConfigOut(BaseModel):
    brand_name: str
    brand_url: str
    prompts_per_topic: int
    number_of_topics: int
    has_openai_key: bool


class AnalysisConfigUpdate(BaseModel):
    brand_name: str | None = Field(default=None, max_length=255)
    brand_url: str | None = Field(default=None, max_length=2000)
    prompts_per_topic: int | None = Field(default=None, ge=1, le=200)
    number_of_topics: int | None = Field(default=None, ge=1, le=50)


class OpenAiKeyRequest(BaseModel):
    api_key: str = Field(min_length=10, max_length=500)
