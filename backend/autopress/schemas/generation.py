"""Generation trigger schemas."""

from typing import Any

from pydantic import BaseModel, Field


class MasterGenerationRequest(BaseModel):
    """Manual single-article generation."""

    category_slug: str | None = Field(
        default=None,
        max_length=100,
        description="Category to write for; defaults to the first category",
    )
    prefer_web_search: bool = Field(
        default=False,
        description="Let the provider ground the article with web search",
    )


class TranslationRequest(BaseModel):
    """Translate an existing master article into one language."""

    slug: str = Field(..., min_length=1, max_length=255)
    language: str = Field(..., min_length=2, max_length=10)
    max_chunks: int | None = Field(
        default=None,
        ge=0,
        le=10,
        strict=True,
        description="0 sizes chunks automatically; omitted uses the configured default",
    )


class GeneratedArticle(BaseModel):
    slug: str
    title: str
    language_code: str
    canonical_url: str
    total_tokens: int

    class Config:
        from_attributes = True


class MasterGenerationResponse(BaseModel):
    status: str  # created | duplicate
    category: str
    article: GeneratedArticle | None
    provider: str
    model: str
    attempts: int


class TranslationResponse(BaseModel):
    status: str
    language: str
    article: GeneratedArticle | None
    chunk_count: int
    chunks_sent: int
    attempts: int


class RunResponse(BaseModel):
    status: str
    reason: str | None = None
    details: dict[str, Any]
