"""Models package - SQLModel database models."""

from autopress.models.article import (
    Article,
    ArticleAR,
    ArticleBase,
    ArticleDE,
    ArticleES,
    ArticleFR,
    ArticleHI,
    ArticlePT,
    SHARDS,
    shard_for,
    shard_table_name,
)
from autopress.models.category import Category
from autopress.models.job import GenerationJob, JobStatus, TokenUsage

__all__ = [
    "Article",
    "ArticleAR",
    "ArticleBase",
    "ArticleDE",
    "ArticleES",
    "ArticleFR",
    "ArticleHI",
    "ArticlePT",
    "Category",
    "GenerationJob",
    "JobStatus",
    "SHARDS",
    "TokenUsage",
    "shard_for",
    "shard_table_name",
]
