"""Articles API endpoints, read across language shards."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autopress.db.postgres import get_session as get_db
from autopress.schemas.article import ArticleDetail, ArticleListResponse, ArticleSummary
from autopress.services.article_service import ArticleService

router = APIRouter()


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    language: str = Query(default="en", min_length=2, max_length=10),
    category: str | None = None,
    search: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> ArticleListResponse:
    """
    List published articles in one language, newest first.

    - language: picks the shard to read from
    - category: filter by category slug
    - search: case-insensitive match on title and summary
    """
    service = ArticleService(db)
    articles, total = await service.list_articles(
        language=language,
        category_slug=category,
        search=search,
        limit=limit,
        offset=offset,
    )
    return ArticleListResponse(
        articles=[ArticleSummary.model_validate(a) for a in articles],
        total=total,
        limit=limit,
        offset=offset,
        language=language.lower(),
    )


@router.get("/{slug}", response_model=ArticleDetail)
async def get_article(
    slug: str,
    language: str = Query(default="en", min_length=2, max_length=10),
    db: AsyncSession = Depends(get_db),
) -> ArticleDetail:
    """Get a specific article by slug."""
    article = await ArticleService(db).get_by_slug(slug, language)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return ArticleDetail.model_validate(article)
