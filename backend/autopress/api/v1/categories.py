"""Category endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autopress.db.postgres import get_session as get_db
from autopress.schemas.article import CategoryResponse
from autopress.services.article_service import ArticleService

router = APIRouter()


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> list[CategoryResponse]:
    """All categories, ordered by id."""
    categories = await ArticleService(db).list_categories()
    return [CategoryResponse.model_validate(c) for c in categories]
