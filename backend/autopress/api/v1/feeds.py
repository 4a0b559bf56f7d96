"""RSS feeds and sitemap endpoints."""

from datetime import datetime, UTC

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autopress.config import Settings, get_settings
from autopress.db.postgres import get_session as get_db
from autopress.models import Category
from autopress.services.feed_service import FeedService

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"
XML_MEDIA_TYPE = "application/xml; charset=utf-8"
CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}

router = APIRouter()


def _checked_language(lang: str, settings: Settings) -> str:
    language = lang.lower()
    if language not in settings.language_codes:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {lang}")
    return language


@router.get("/feeds/all.rss")
async def all_articles_feed(
    lang: str = Query(default="en", min_length=2, max_length=10),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Latest articles across every category."""
    language = _checked_language(lang, settings)
    body = await FeedService(db, settings).rss(language, now=datetime.now(UTC))
    return Response(content=body, media_type=RSS_MEDIA_TYPE, headers=CACHE_HEADERS)


@router.get("/feeds/{category_slug}.rss")
async def category_feed(
    category_slug: str,
    lang: str = Query(default="en", min_length=2, max_length=10),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Latest articles in one category."""
    language = _checked_language(lang, settings)
    result = await db.execute(select(Category).where(Category.slug == category_slug.lower()))
    category = result.scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")

    body = await FeedService(db, settings).rss(language, category, now=datetime.now(UTC))
    return Response(content=body, media_type=RSS_MEDIA_TYPE, headers=CACHE_HEADERS)


@router.get("/sitemap.xml")
async def sitemap(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Canonical URLs of every published article."""
    body = await FeedService(db, settings).sitemap()
    return Response(content=body, media_type=XML_MEDIA_TYPE, headers=CACHE_HEADERS)
