"""Article schemas for API request/response validation."""

from datetime import datetime

from pydantic import BaseModel


class ArticleSummary(BaseModel):
    """Schema for article list entries."""

    id: int
    slug: str
    title: str
    summary: str | None = None
    language_code: str
    category_id: int
    master_slug: str | None = None
    meta_description: str | None = None
    canonical_url: str
    reading_time_minutes: int
    published_at: datetime

    class Config:
        from_attributes = True


class ArticleDetail(ArticleSummary):
    """Schema for a single article, including rendered content."""

    content: str
    meta_title: str
    content_hash: str
    ai_model: str | None = None
    tokens_in: int
    tokens_out: int
    total_tokens: int
    source_url: str | None = None


class ArticleListResponse(BaseModel):
    """Schema for paginated article list response."""

    articles: list[ArticleSummary]
    total: int
    limit: int
    offset: int
    language: str


class CategoryResponse(BaseModel):
    id: int
    slug: str
    display_name: str

    class Config:
        from_attributes = True
