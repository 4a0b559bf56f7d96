"""Article service - read access across language shards."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from autopress.models import ArticleBase, Category, shard_for


class ArticleService:
    """Service for browsing published articles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_articles(
        self,
        language: str = "en",
        category_slug: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ArticleBase], int]:
        """Newest first. Returns (page, total matching)."""
        shard = shard_for(language)
        conditions = [shard.language_code == language.lower()]

        if category_slug:
            category_ids = select(Category.id).where(Category.slug == category_slug)
            conditions.append(shard.category_id.in_(category_ids))

        if search:
            pattern = f"%{search}%"
            conditions.append(or_(shard.title.ilike(pattern), shard.summary.ilike(pattern)))

        total = await self.session.execute(select(func.count()).select_from(shard).where(*conditions))
        result = await self.session.execute(
            select(shard)
            .where(*conditions)
            .order_by(shard.published_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total.scalar_one())

    async def get_by_slug(self, slug: str, language: str = "en") -> ArticleBase | None:
        shard = shard_for(language)
        result = await self.session.execute(select(shard).where(shard.slug == slug))
        return result.scalar_one_or_none()

    async def list_categories(self) -> list[Category]:
        result = await self.session.execute(select(Category).order_by(Category.id))
        return list(result.scalars().all())
