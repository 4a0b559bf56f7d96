"""Tests for article persistence and the daily ledger against SQLite."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conftest import TUESDAY_9AM, make_settings, sample_document

from autopress.exceptions import StoreUnavailable
from autopress.models import Article, ArticleDE, JobStatus
from autopress.services.ledger import ArticleLedger, PersistOutcome, TokenCounts

DAY = TUESDAY_9AM.date()


async def _category(ledger: ArticleLedger, slug: str = "technology"):
    return await ledger.get_category(slug)


class TestPersistMaster:
    async def test_creates_article_and_accounts_for_it(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        result = await ledger.persist_master(
            sample_document(), category, TokenCounts(100, 250), now=TUESDAY_9AM, model="fake-model"
        )

        assert result.outcome is PersistOutcome.CREATED
        article = result.article
        assert article.slug == "a-practical-guide-to-sourdough"
        assert article.canonical_url == "https://example.test/a-practical-guide-to-sourdough"
        assert article.language_code == "en"
        assert article.master_slug is None
        assert article.total_tokens == 350
        assert article.markdown.startswith("# A Practical Guide to Sourdough")
        assert "<h2>Feeding the Starter</h2>" in article.content

        job = await ledger.get_job(DAY)
        assert job.generated_count == 1
        assert job.target_count == 4  # two categories, two articles each

        usage = await ledger.get_token_usage(DAY)
        assert (usage.tokens_in, usage.tokens_out, usage.total) == (100, 250, 350)

    async def test_same_title_twice_is_a_duplicate(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        first = await ledger.persist_master(sample_document(), category, TokenCounts(10, 10), now=TUESDAY_9AM)
        second = await ledger.persist_master(sample_document(), category, TokenCounts(10, 10), now=TUESDAY_9AM)

        assert first.created
        assert second.outcome is PersistOutcome.DUPLICATE
        assert second.article.id == first.article.id
        assert (await ledger.get_job(DAY)).generated_count == 1
        assert (await ledger.get_token_usage(DAY)).total == 20
        assert await ledger.count_masters(category.id, DAY) == 1

    async def test_tokens_are_additive(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        await ledger.persist_master(sample_document("First"), category, TokenCounts(10, 20), now=TUESDAY_9AM)
        await ledger.persist_master(sample_document("Second"), category, TokenCounts(5, 5), now=TUESDAY_9AM)

        usage = await ledger.get_token_usage(DAY)
        assert (usage.tokens_in, usage.tokens_out) == (15, 25)

    async def test_quota_rechecked_inside_transaction(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        await ledger.persist_master(
            sample_document("First"), category, TokenCounts(), now=TUESDAY_9AM, daily_target=1
        )
        result = await ledger.persist_master(
            sample_document("Second"), category, TokenCounts(), now=TUESDAY_9AM, daily_target=1
        )

        assert result.outcome is PersistOutcome.QUOTA_MET
        assert result.article is None
        assert await ledger.count_masters(category.id, DAY) == 1
        assert (await ledger.get_job(DAY)).generated_count == 1

    async def test_counts_are_per_day(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        yesterday = TUESDAY_9AM - timedelta(days=1)
        await ledger.persist_master(sample_document("Old"), category, TokenCounts(), now=yesterday)
        await ledger.persist_master(sample_document("New"), category, TokenCounts(), now=TUESDAY_9AM)

        assert await ledger.masters_by_category(DAY) == {category.id: 1}
        assert (await ledger.get_job(yesterday.date())).generated_count == 1


class TestPersistTranslation:
    async def test_lands_in_language_shard(self, ledger: ArticleLedger, session_factory) -> None:
        category = await _category(ledger)
        master = (
            await ledger.persist_master(sample_document(), category, TokenCounts(1, 1), now=TUESDAY_9AM)
        ).article

        result = await ledger.persist_translation(
            sample_document("Ein Leitfaden"), master, "DE", TokenCounts(7, 8), now=TUESDAY_9AM
        )

        assert result.created
        assert isinstance(result.article, ArticleDE)
        assert result.article.slug == "a-practical-guide-to-sourdough-de"
        assert result.article.master_slug == master.slug
        assert result.article.canonical_url == "https://example.test/de/a-practical-guide-to-sourdough-de"
        assert await ledger.translation_exists(master.slug, "de")
        assert not await ledger.translation_exists(master.slug, "fr")

        # Translations never count toward the master quota.
        assert (await ledger.get_job(DAY)).generated_count == 1
        assert (await ledger.get_token_usage(DAY)).tokens_in == 8
        assert await ledger.translations_by_language(DAY, ["de", "fr"]) == {"de": 1, "fr": 0}

        async with session_factory() as session:
            masters = (await session.execute(select(Article))).scalars().all()
        assert [article.slug for article in masters] == [master.slug]

    async def test_second_translation_is_duplicate(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        master = (await ledger.persist_master(sample_document(), category, TokenCounts(), now=TUESDAY_9AM)).article

        await ledger.persist_translation(sample_document(), master, "fr", TokenCounts(1, 1), now=TUESDAY_9AM)
        again = await ledger.persist_translation(sample_document(), master, "fr", TokenCounts(1, 1), now=TUESDAY_9AM)

        assert again.outcome is PersistOutcome.DUPLICATE
        assert (await ledger.get_token_usage(DAY)).tokens_in == 1


class TestJobRows:
    async def test_ensure_job_is_idempotent(self, ledger: ArticleLedger) -> None:
        first = await ledger.ensure_job(DAY)
        second = await ledger.ensure_job(DAY)

        assert first.id == second.id
        assert second.status == JobStatus.PENDING
        assert second.generated_count == 0

    async def test_finalize_keeps_generated_count(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        await ledger.persist_master(sample_document(), category, TokenCounts(), now=TUESDAY_9AM)

        await ledger.finalize_job(
            DAY, JobStatus.PARTIAL, summary={"total_articles_generated": 1}, error_summary="x", execution_ms=12
        )

        job = await ledger.get_job(DAY)
        assert job.status == JobStatus.PARTIAL
        assert job.generated_count == 1
        assert job.summary == {"total_articles_generated": 1}
        assert job.error_summary == "x"
        assert await ledger.last_success_at() is not None

    async def test_errored_runs_are_not_successes(self, ledger: ArticleLedger) -> None:
        await ledger.finalize_job(DAY, JobStatus.ERROR, error_summary="all providers failed")
        assert await ledger.last_success_at() is None

    async def test_article_commits_do_not_move_last_success(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        await ledger.finalize_job(DAY, JobStatus.COMPLETE)

        later = TUESDAY_9AM + timedelta(hours=3)
        await ledger.persist_master(sample_document(), category, TokenCounts(), now=later)

        job = await ledger.get_job(DAY)
        assert job.generated_count == 1
        assert await ledger.last_success_at() == TUESDAY_9AM

    async def test_pending_job_is_not_a_success(self, ledger: ArticleLedger) -> None:
        category = await _category(ledger)
        await ledger.persist_master(sample_document(), category, TokenCounts(), now=TUESDAY_9AM)
        assert await ledger.last_success_at() is None


class TestCategories:
    async def test_seed_is_idempotent(self, ledger: ArticleLedger) -> None:
        assert await ledger.seed_categories(["technology", "travel-destinations"]) == 1
        assert await ledger.seed_categories(["technology"]) == 0

        categories = await ledger.list_categories()
        assert [c.slug for c in categories] == ["technology", "food-recipes", "travel-destinations"]
        assert categories[2].display_name == "Travel Destinations"

    async def test_default_category_is_first_by_id(self, ledger: ArticleLedger) -> None:
        assert (await ledger.get_category()).slug == "technology"
        assert await ledger.get_category("missing") is None


class TestUnreachableStore:
    @pytest.fixture
    async def broken_ledger(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'store.db'}")
        yield ArticleLedger(async_sessionmaker(engine, class_=AsyncSession), make_settings())
        await engine.dispose()

    async def test_reads_raise_store_unavailable(self, broken_ledger: ArticleLedger) -> None:
        with pytest.raises(StoreUnavailable):
            await broken_ledger.list_categories()

    async def test_ping_reports_failure(self, broken_ledger: ArticleLedger) -> None:
        assert await broken_ledger.ping() is False
