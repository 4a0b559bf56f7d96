"""Persistence and daily ledger.

Every article write is its own transaction: the idempotency check, the
article insert, the additive token upsert and (for masters) the job counter
increment either all commit or none do.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, UTC
from enum import Enum
import logging
from typing import Any

from sqlalchemy import func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autopress.config import Settings
from autopress.exceptions import PersistenceError, StoreUnavailable
from autopress.models import (
    Article,
    ArticleBase,
    Category,
    GenerationJob,
    JobStatus,
    TokenUsage,
    shard_for,
)
from autopress.services.document import (
    MasterArticleDocument,
    content_hash,
    estimate_reading_time,
    meta_title,
    render_html,
    serialize,
    to_slug,
    translation_slug,
)
from autopress.services.timing import as_utc, day_bounds

logger = logging.getLogger(__name__)


class PersistOutcome(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    QUOTA_MET = "quota_met"


@dataclass
class PersistResult:
    article: ArticleBase | None
    outcome: PersistOutcome

    @property
    def created(self) -> bool:
        return self.outcome is PersistOutcome.CREATED


@dataclass(frozen=True)
class TokenCounts:
    tokens_in: int = 0
    tokens_out: int = 0

    @property
    def total(self) -> int:
        return self.tokens_in + self.tokens_out


class ArticleLedger:
    """Owns every read and write the generation core makes against the store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(UTC))

    @property
    def source_language(self) -> str:
        return self.settings.source_language.lower()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as e:
            raise StoreUnavailable(f"content store unreachable: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"database write failed: {e}") from e

    def _insert(self, session: AsyncSession, model: type) -> Any:
        """ON CONFLICT-capable insert for the bound dialect."""
        insert = sqlite_insert if session.bind.dialect.name == "sqlite" else pg_insert
        return insert(model.__table__)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def persist_master(
        self,
        doc: MasterArticleDocument,
        category: Category,
        tokens: TokenCounts,
        *,
        now: datetime,
        daily_target: int | None = None,
        model: str | None = None,
        prompt: str | None = None,
        source_url: str | None = None,
    ) -> PersistResult:
        """
        Insert a master article and account for it.

        An existing slug short-circuits as DUPLICATE with no ledger change.
        With `daily_target`, the category's count is re-read inside the
        transaction and QUOTA_MET is returned once it is reached.
        """
        now = as_utc(now)
        day = now.date()
        slug = to_slug(doc.title, self.settings.max_slug_length)
        record = self._build_record(
            Article,
            doc,
            slug=slug,
            language=self.source_language,
            category_id=category.id,
            master_slug=None,
            tokens=tokens,
            now=now,
            model=model,
            prompt=prompt,
            source_url=source_url,
        )

        async with self._session() as session:
            try:
                async with session.begin():
                    existing = await self._find(session, Article, slug)
                    if existing is not None:
                        logger.info("Master %s already exists, skipping write", slug)
                        return PersistResult(existing, PersistOutcome.DUPLICATE)

                    if daily_target is not None:
                        count = await self._count_masters(session, category.id, day)
                        if count >= daily_target:
                            logger.info(
                                "Category %s reached %s/%s while generating, dropping %s",
                                category.slug,
                                count,
                                daily_target,
                                slug,
                            )
                            return PersistResult(None, PersistOutcome.QUOTA_MET)

                    session.add(record)
                    await session.flush()
                    await self._add_tokens(session, day, tokens)
                    await self._increment_job(session, day, now)
            except IntegrityError:
                # Another run committed the same slug between our check and insert.
                existing = await self._find(session, Article, slug)
                if existing is None:
                    raise
                return PersistResult(existing, PersistOutcome.DUPLICATE)

        logger.info("Persisted master %s (%s tokens)", slug, tokens.total)
        return PersistResult(record, PersistOutcome.CREATED)

    async def persist_translation(
        self,
        doc: MasterArticleDocument,
        master: ArticleBase,
        language: str,
        tokens: TokenCounts,
        *,
        now: datetime,
        model: str | None = None,
        prompt: str | None = None,
    ) -> PersistResult:
        """Insert a translation into its language shard. Never touches the job counter."""
        now = as_utc(now)
        language = language.lower()
        shard = shard_for(language)
        slug = translation_slug(master.slug, language)
        record = self._build_record(
            shard,
            doc,
            slug=slug,
            language=language,
            category_id=master.category_id,
            master_slug=master.slug,
            tokens=tokens,
            now=now,
            model=model,
            prompt=prompt,
            source_url=master.source_url,
        )

        async with self._session() as session:
            try:
                async with session.begin():
                    existing = await self._find(session, shard, slug)
                    if existing is not None:
                        return PersistResult(existing, PersistOutcome.DUPLICATE)
                    session.add(record)
                    await session.flush()
                    await self._add_tokens(session, now.date(), tokens)
            except IntegrityError:
                existing = await self._find(session, shard, slug)
                if existing is None:
                    raise
                return PersistResult(existing, PersistOutcome.DUPLICATE)

        logger.info("Persisted %s translation %s in %s", language, slug, shard.__tablename__)
        return PersistResult(record, PersistOutcome.CREATED)

    def _build_record(
        self,
        shard: type[ArticleBase],
        doc: MasterArticleDocument,
        *,
        slug: str,
        language: str,
        category_id: int,
        master_slug: str | None,
        tokens: TokenCounts,
        now: datetime,
        model: str | None,
        prompt: str | None,
        source_url: str | None,
    ) -> ArticleBase:
        content = render_html(doc)
        base_url = self.settings.canonical_base_url.rstrip("/")
        canonical = f"{base_url}/{slug}" if master_slug is None else f"{base_url}/{language}/{slug}"
        return shard(
            slug=slug,
            title=doc.title,
            content=content,
            markdown=serialize(doc),
            summary=doc.summary or doc.meta_description or None,
            language_code=language,
            category_id=category_id,
            master_slug=master_slug,
            content_hash=content_hash(doc.title, content, language),
            meta_title=meta_title(doc.title),
            meta_description=doc.meta_description or None,
            canonical_url=canonical,
            reading_time_minutes=estimate_reading_time(content),
            ai_model=model,
            ai_prompt=prompt,
            tokens_in=tokens.tokens_in,
            tokens_out=tokens.tokens_out,
            total_tokens=tokens.total,
            source_url=source_url,
            published_at=now,
        )

    async def _find(self, session: AsyncSession, shard: type[ArticleBase], slug: str) -> ArticleBase | None:
        result = await session.execute(select(shard).where(shard.slug == slug))
        return result.scalar_one_or_none()

    async def _count_masters(self, session: AsyncSession, category_id: int, day: date) -> int:
        start, end = day_bounds(day)
        result = await session.execute(
            select(func.count())
            .select_from(Article)
            .where(
                Article.category_id == category_id,
                Article.master_slug.is_(None),
                Article.published_at >= start,
                Article.published_at < end,
            )
        )
        return int(result.scalar_one())

    async def _add_tokens(self, session: AsyncSession, day: date, tokens: TokenCounts) -> None:
        table = TokenUsage.__table__
        stmt = self._insert(session, TokenUsage).values(
            day=day, tokens_in=tokens.tokens_in, tokens_out=tokens.tokens_out
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.day],
            set_={
                "tokens_in": table.c.tokens_in + stmt.excluded.tokens_in,
                "tokens_out": table.c.tokens_out + stmt.excluded.tokens_out,
            },
        )
        await session.execute(stmt)

    async def _daily_target(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(Category))
        return int(result.scalar_one()) * self.settings.articles_per_category_per_day

    async def _increment_job(self, session: AsyncSession, day: date, now: datetime) -> None:
        table = GenerationJob.__table__
        stmt = self._insert(session, GenerationJob).values(
            job_date=day,
            target_count=await self._daily_target(session),
            generated_count=1,
            status=JobStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.job_date],
            set_={
                "generated_count": table.c.generated_count + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await session.execute(stmt)

    async def ensure_job(self, day: date) -> GenerationJob:
        """Create today's job row if it does not exist yet."""
        now = self.clock()
        async with self._session() as session:
            async with session.begin():
                stmt = self._insert(session, GenerationJob).values(
                    job_date=day,
                    target_count=await self._daily_target(session),
                    generated_count=0,
                    status=JobStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                )
                await session.execute(stmt.on_conflict_do_nothing(index_elements=["job_date"]))
            result = await session.execute(select(GenerationJob).where(GenerationJob.job_date == day))
            return result.scalar_one()

    async def finalize_job(
        self,
        day: date,
        status: str,
        *,
        summary: dict[str, Any] | None = None,
        error_summary: str | None = None,
        execution_ms: int | None = None,
    ) -> None:
        """Write the terminal status of a run onto the day's job row."""
        now = self.clock()
        async with self._session() as session:
            async with session.begin():
                table = GenerationJob.__table__
                stmt = self._insert(session, GenerationJob).values(
                    job_date=day,
                    target_count=await self._daily_target(session),
                    generated_count=0,
                    status=status,
                    error_summary=error_summary,
                    summary=summary,
                    execution_ms=execution_ms,
                    created_at=now,
                    updated_at=now,
                    finalized_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.job_date],
                    set_={
                        "status": stmt.excluded.status,
                        "error_summary": stmt.excluded.error_summary,
                        "summary": stmt.excluded.summary,
                        "execution_ms": stmt.excluded.execution_ms,
                        "updated_at": stmt.excluded.updated_at,
                        "finalized_at": stmt.excluded.finalized_at,
                    },
                )
                await session.execute(stmt)

    async def seed_categories(self, slugs: list[str]) -> int:
        """Insert missing categories, named from their slugs. Returns how many were new."""
        existing = {category.slug for category in await self.list_categories()}
        new = [slug for slug in dict.fromkeys(slugs) if slug not in existing]
        if not new:
            return 0
        async with self._session() as session:
            async with session.begin():
                for slug in new:
                    name = " ".join(word.capitalize() for word in slug.split("-"))
                    session.add(Category(slug=slug, display_name=name))
        logger.info("Seeded %s categories: %s", len(new), ", ".join(new))
        return len(new)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        async with self._session() as session:
            result = await session.execute(select(Category).order_by(Category.id))
            return list(result.scalars().all())

    async def get_category(self, slug: str | None = None) -> Category | None:
        """Category by slug, or the first category by id when no slug is given."""
        async with self._session() as session:
            query = select(Category).order_by(Category.id).limit(1)
            if slug is not None:
                query = select(Category).where(Category.slug == slug)
            result = await session.execute(query)
            return result.scalars().first()

    async def count_masters(self, category_id: int, day: date) -> int:
        async with self._session() as session:
            return await self._count_masters(session, category_id, day)

    async def masters_by_category(self, day: date) -> dict[int, int]:
        start, end = day_bounds(day)
        async with self._session() as session:
            result = await session.execute(
                select(Article.category_id, func.count())
                .where(
                    Article.master_slug.is_(None),
                    Article.published_at >= start,
                    Article.published_at < end,
                )
                .group_by(Article.category_id)
            )
            return {category_id: int(count) for category_id, count in result.all()}

    async def translations_by_language(self, day: date, languages: list[str]) -> dict[str, int]:
        start, end = day_bounds(day)
        counts = {}
        async with self._session() as session:
            for language in languages:
                shard = shard_for(language)
                result = await session.execute(
                    select(func.count())
                    .select_from(shard)
                    .where(
                        shard.master_slug.is_not(None),
                        shard.language_code == language,
                        shard.published_at >= start,
                        shard.published_at < end,
                    )
                )
                counts[language] = int(result.scalar_one())
        return counts

    async def get_master(self, slug: str) -> Article | None:
        async with self._session() as session:
            result = await session.execute(
                select(Article).where(Article.slug == slug, Article.master_slug.is_(None))
            )
            return result.scalar_one_or_none()

    async def translation_exists(self, master_slug: str, language: str) -> bool:
        shard = shard_for(language)
        async with self._session() as session:
            result = await session.execute(
                select(shard.id).where(shard.slug == translation_slug(master_slug, language))
            )
            return result.first() is not None

    async def get_job(self, day: date) -> GenerationJob | None:
        async with self._session() as session:
            result = await session.execute(select(GenerationJob).where(GenerationJob.job_date == day))
            return result.scalar_one_or_none()

    async def last_success_at(self) -> datetime | None:
        """When a run last finalized with at least one committed article."""
        async with self._session() as session:
            result = await session.execute(
                select(func.max(GenerationJob.finalized_at)).where(
                    GenerationJob.status.in_([JobStatus.COMPLETE, JobStatus.PARTIAL])
                )
            )
            latest = result.scalar_one_or_none()
        return as_utc(latest) if latest is not None else None

    async def get_token_usage(self, day: date) -> TokenUsage | None:
        async with self._session() as session:
            return await session.get(TokenUsage, day)

    async def ping(self) -> bool:
        try:
            async with self._session() as session:
                await session.execute(text("SELECT 1"))
        except PersistenceError as e:
            logger.warning("Store ping failed: %s", e)
            return False
        return True
