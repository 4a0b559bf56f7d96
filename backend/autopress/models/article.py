"""Article models, one table per language shard."""

from datetime import datetime, UTC

from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel


class ArticleBase(SQLModel):
    """
    Columns shared by every article shard.

    Masters live in the base shard with `master_slug` unset. Translations
    carry the slug of the master they were derived from.
    """

    slug: str = Field(max_length=255, unique=True, index=True)
    title: str = Field(max_length=500)
    content: str = Field(sa_type=Text)  # rendered HTML
    markdown: str = Field(sa_type=Text)  # canonical document text, source for later translation
    summary: str | None = Field(default=None, sa_type=Text)
    language_code: str = Field(max_length=10, index=True)
    category_id: int = Field(foreign_key="categories.id", index=True)
    master_slug: str | None = Field(default=None, max_length=255, index=True)

    # SEO
    content_hash: str = Field(max_length=64, index=True)
    meta_title: str = Field(max_length=120)
    meta_description: str | None = Field(default=None, max_length=500)
    canonical_url: str = Field(max_length=2048)
    reading_time_minutes: int = Field(default=1)

    # Generation accounting
    ai_model: str | None = Field(default=None, max_length=100)
    ai_prompt: str | None = Field(default=None, sa_type=Text)
    tokens_in: int = Field(default=0)
    tokens_out: int = Field(default=0)
    total_tokens: int = Field(default=0)
    source_url: str | None = Field(default=None, max_length=2048)

    published_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
        index=True,
    )


class Article(ArticleBase, table=True):
    """Base shard: source language plus any language without its own table."""

    __tablename__ = "articles"

    id: int | None = Field(default=None, primary_key=True)


class ArticleDE(ArticleBase, table=True):
    __tablename__ = "articles_de"

    id: int | None = Field(default=None, primary_key=True)


class ArticleFR(ArticleBase, table=True):
    __tablename__ = "articles_fr"

    id: int | None = Field(default=None, primary_key=True)


class ArticleES(ArticleBase, table=True):
    __tablename__ = "articles_es"

    id: int | None = Field(default=None, primary_key=True)


class ArticlePT(ArticleBase, table=True):
    __tablename__ = "articles_pt"

    id: int | None = Field(default=None, primary_key=True)


class ArticleAR(ArticleBase, table=True):
    __tablename__ = "articles_ar"

    id: int | None = Field(default=None, primary_key=True)


class ArticleHI(ArticleBase, table=True):
    __tablename__ = "articles_hi"

    id: int | None = Field(default=None, primary_key=True)


SHARDS: dict[str, type[ArticleBase]] = {
    "de": ArticleDE,
    "fr": ArticleFR,
    "es": ArticleES,
    "pt": ArticlePT,
    "ar": ArticleAR,
    "hi": ArticleHI,
}


def shard_for(language_code: str | None) -> type[ArticleBase]:
    """Return the table model for a language. Unknown languages use the base shard."""
    code = (language_code or "").strip().lower()
    return SHARDS.get(code, Article)


def shard_table_name(language_code: str | None) -> str:
    return shard_for(language_code).__tablename__
