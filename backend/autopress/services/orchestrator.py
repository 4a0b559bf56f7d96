"""Daily generation runner.

A run moves through gate -> planning -> generating -> finalizing and ends in
one of four terminal states. Each article is its own transaction, so a
failure in one category never rolls back another category's articles.
Overlapping runs are not locked out: the ledger re-checks the quota inside
every master insert, so overshoot is bounded by the units already in flight.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
import logging
import time
from typing import Any

from autopress.agents.gateway import MasterResult, ProviderGateway, TranslationResult
from autopress.config import Settings
from autopress.exceptions import (
    ArticleNotFound,
    AutopressError,
    CategoryNotFound,
    PersistenceError,
    ProviderError,
    StoreUnavailable,
    TranslationConflict,
    ValidationError,
)
from autopress.models import ArticleBase, Category
from autopress.services.document import MasterArticleDocument, parse
from autopress.services.ledger import ArticleLedger, PersistOutcome, PersistResult, TokenCounts
from autopress.services.planner import PlannedUnit, QuotaPlanner, total_deficit
from autopress.services.publication import PublicationNotifier
from autopress.services.timing import TimingGate, as_utc
from autopress.services.translation import validate_chunk_count

logger = logging.getLogger(__name__)


class RunTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    STARTUP = "startup"


class RunStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class CategoryReport:
    category: str
    name: str
    deficit: int
    articles_generated: int = 0
    duplicates: int = 0
    translations_completed: int = 0
    # language -> {"created" | "exists" | "failed": count} across every master
    languages: dict[str, dict[str, int]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def mark(self, language: str, state: str) -> None:
        states = self.languages.setdefault(language, {})
        states[state] = states.get(state, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "name": self.name,
            "deficit": self.deficit,
            "articles_generated": self.articles_generated,
            "duplicates": self.duplicates,
            "translations_completed": self.translations_completed,
            "languages": {language: dict(states) for language, states in self.languages.items()},
            "errors": list(self.errors),
        }


@dataclass
class RunReport:
    trigger: RunTrigger
    started_at: datetime
    status: RunStatus | None = None
    reason: str | None = None
    execution_ms: int = 0
    categories: list[CategoryReport] = field(default_factory=list)
    not_attempted: list[str] = field(default_factory=list)
    fatal_error: str | None = None

    @property
    def total_articles_generated(self) -> int:
        return sum(category.articles_generated for category in self.categories)

    @property
    def total_translations_completed(self) -> int:
        return sum(category.translations_completed for category in self.categories)

    @property
    def has_failures(self) -> bool:
        return bool(
            self.fatal_error
            or self.not_attempted
            or any(category.failed for category in self.categories)
        )

    def error_summary(self) -> str | None:
        errors = [f"{c.category}: {error}" for c in self.categories for error in c.errors]
        if self.not_attempted:
            errors.append(f"not attempted: {', '.join(self.not_attempted)}")
        if self.fatal_error:
            errors.append(self.fatal_error)
        return "; ".join(errors)[:2000] or None

    def per_language(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for category in self.categories:
            for language, states in category.languages.items():
                if states.get("created"):
                    totals[language] = totals.get(language, 0) + states["created"]
        return totals

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger.value,
            "status": self.status.value if self.status else None,
            "reason": self.reason,
            "started_at": self.started_at.isoformat(),
            "execution_ms": self.execution_ms,
            "categories_processed": [category.to_dict() for category in self.categories],
            "not_attempted": list(self.not_attempted),
            "total_articles_generated": self.total_articles_generated,
            "total_translations_completed": self.total_translations_completed,
            "translations_per_language": self.per_language(),
        }


@dataclass
class SingleGenerationResult:
    category: Category
    persisted: PersistResult
    master: MasterResult


@dataclass
class TranslationOutcome:
    persisted: PersistResult
    translation: TranslationResult


class GenerationOrchestrator:
    """Composes planner, gateway, ledger and gate into full runs."""

    def __init__(
        self,
        ledger: ArticleLedger,
        gateway: ProviderGateway,
        gate: TimingGate,
        settings: Settings,
        planner: QuotaPlanner | None = None,
        notifier: PublicationNotifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.ledger = ledger
        self.gateway = gateway
        self.gate = gate
        self.settings = settings
        self.planner = planner or QuotaPlanner(ledger)
        self.notifier = notifier
        self.clock = clock or (lambda: datetime.now(UTC))
        self._active_runs = 0
        self.last_report: RunReport | None = None

    @property
    def in_flight(self) -> bool:
        return self._active_runs > 0

    # ------------------------------------------------------------------
    # Full runs
    # ------------------------------------------------------------------

    async def run(self, trigger: RunTrigger, *, now: datetime | None = None) -> RunReport:
        """Execute one run. Never raises for per-unit failures."""
        now = as_utc(now or self.clock())
        report = RunReport(trigger=trigger, started_at=now)
        started = time.monotonic()
        self._active_runs += 1
        try:
            await self._run(report, now, started)
        finally:
            self._active_runs -= 1
            report.execution_ms = int((time.monotonic() - started) * 1000)

        self.last_report = report
        logger.info(
            "%s run finished: %s%s (%s masters, %s translations, %sms)",
            trigger.value,
            report.status.value,
            f" ({report.reason})" if report.reason else "",
            report.total_articles_generated,
            report.total_translations_completed,
            report.execution_ms,
        )
        return report

    async def _run(self, report: RunReport, now: datetime, started: float) -> None:
        day = now.date()

        # Gate
        try:
            skip_reason = await self._gate(report.trigger, now)
        except PersistenceError as e:
            self._end(report, RunStatus.ERROR, f"store unavailable: {e}")
            return
        if skip_reason:
            self._end(report, RunStatus.SKIPPED, skip_reason)
            return

        # Planning
        try:
            units = await self.planner.plan(day, self.settings.articles_per_category_per_day)
        except PersistenceError as e:
            logger.error("Planning failed: %s", e)
            self._end(report, RunStatus.ERROR, f"planning failed: {e}")
            return

        deficit = total_deficit(units)
        if report.trigger is RunTrigger.STARTUP and deficit < max(1, self.settings.startup_min_deficit):
            self._end(report, RunStatus.SKIPPED, "quota_met")
            return
        if not units:
            self._end(report, RunStatus.SKIPPED, "quota_met")
            return

        logger.info(
            "Planned %s unit(s), total deficit %s: %s",
            len(units),
            deficit,
            ", ".join(f"{unit.category.slug}={unit.deficit}" for unit in units),
        )

        # Generating
        try:
            await self.ledger.ensure_job(day)
        except PersistenceError as e:
            self._end(report, RunStatus.ERROR, f"could not open job row: {e}")
            return

        for index, unit in enumerate(units):
            if self._budget_spent(started):
                report.not_attempted.extend(remaining.category.slug for remaining in units[index:])
                logger.warning("Run budget spent, %s unit(s) not attempted", len(units) - index)
                break
            if index and self.settings.category_pause_seconds > 0:
                await asyncio.sleep(self.settings.category_pause_seconds)
            try:
                await self._generate_unit(unit, report, now)
            except StoreUnavailable as e:
                logger.error("Store became unreachable during %s: %s", unit.category.slug, e)
                report.fatal_error = f"store unavailable: {e}"
                break
            except Exception as e:
                logger.exception("Unit %s failed unexpectedly", unit.category.slug)
                report.categories[-1].errors.append(f"{type(e).__name__}: {e}")

        # Finalizing
        status = self._terminal_status(report)
        self._end(report, status)
        report.execution_ms = int((time.monotonic() - started) * 1000)
        try:
            await self.ledger.finalize_job(
                day,
                status.value,
                summary=report.to_dict(),
                error_summary=report.error_summary(),
                execution_ms=report.execution_ms,
            )
        except PersistenceError as e:
            logger.error("Could not finalize job for %s: %s", day, e)
            self._end(report, RunStatus.ERROR, f"finalization failed: {e}")

    async def _gate(self, trigger: RunTrigger, now: datetime) -> str | None:
        if trigger is RunTrigger.SCHEDULED and not self.settings.force_generation:
            last_success = await self.ledger.last_success_at()
            if not self.gate.is_within_window(now, last_success):
                return "outside_window"
        if trigger is RunTrigger.STARTUP:
            last_success = await self.ledger.last_success_at()
            if self.gate.too_soon(now, last_success):
                return "recent_run"
        return None

    def _budget_spent(self, started: float) -> bool:
        budget = self.settings.run_budget_seconds
        return budget > 0 and time.monotonic() - started >= budget

    @staticmethod
    def _end(report: RunReport, status: RunStatus, reason: str | None = None) -> None:
        report.status = status
        report.reason = reason

    @staticmethod
    def _terminal_status(report: RunReport) -> RunStatus:
        if report.fatal_error:
            return RunStatus.ERROR
        if not report.has_failures:
            return RunStatus.COMPLETE
        # A run cut short by its budget is partial even if nothing was committed yet.
        if report.total_articles_generated or report.total_translations_completed or report.not_attempted:
            return RunStatus.PARTIAL
        return RunStatus.ERROR

    async def _generate_unit(self, unit: PlannedUnit, report: RunReport, now: datetime) -> None:
        category = unit.category
        summary = CategoryReport(category=category.slug, name=category.display_name, deficit=unit.deficit)
        report.categories.append(summary)
        target = self.settings.articles_per_category_per_day

        for _ in range(unit.deficit):
            # Another trigger may have filled the quota since planning.
            try:
                generated = await self.ledger.count_masters(category.id, now.date())
            except StoreUnavailable:
                raise
            except PersistenceError as e:
                summary.errors.append(f"recount: {e}")
                return
            if generated >= target:
                break

            try:
                master = await self.gateway.generate_master(
                    category, prefer_web_search=self.settings.enable_web_search
                )
            except ProviderError as e:
                logger.error("Master generation failed for %s: %s", category.slug, e)
                summary.errors.append(f"master: {e}")
                return
            except Exception as e:
                logger.exception("Unexpected error generating master for %s", category.slug)
                summary.errors.append(f"master: {type(e).__name__}: {e}")
                return

            try:
                persisted = await self.ledger.persist_master(
                    master.doc,
                    category,
                    TokenCounts(master.tokens_in, master.tokens_out),
                    now=now,
                    daily_target=target,
                    model=master.model,
                    prompt=master.prompt,
                )
            except StoreUnavailable:
                raise
            except PersistenceError as e:
                logger.error("Could not persist master for %s: %s", category.slug, e)
                summary.errors.append(f"persist master: {e}")
                return

            if persisted.outcome is PersistOutcome.QUOTA_MET:
                break
            if persisted.outcome is PersistOutcome.DUPLICATE:
                summary.duplicates += 1
                continue

            summary.articles_generated += 1
            self._announce(persisted.article)
            await self._translate_all(persisted.article, master.doc, summary, now)

    async def _translate_all(
        self,
        master: ArticleBase,
        doc: MasterArticleDocument,
        summary: CategoryReport,
        now: datetime,
    ) -> None:
        """Translate into every target language concurrently; failures stay per language."""
        languages = self.settings.target_languages
        semaphore = asyncio.Semaphore(max(1, self.settings.translation_concurrency))

        async def translate(language: str) -> PersistResult:
            async with semaphore:
                return await self._translate_and_persist(
                    master, doc, language, self.settings.default_translation_chunks, now
                )

        results = await asyncio.gather(*(translate(language) for language in languages), return_exceptions=True)

        store_error = None
        for language, result in zip(languages, results):
            if isinstance(result, StoreUnavailable):
                store_error = result
                summary.mark(language, "failed")
            elif isinstance(result, AutopressError):
                logger.error("%s translation of %s failed: %s", language, master.slug, result)
                summary.mark(language, "failed")
                summary.errors.append(f"{language}: {result}")
            elif isinstance(result, Exception):
                logger.error(
                    "%s translation of %s failed unexpectedly", language, master.slug, exc_info=result
                )
                summary.mark(language, "failed")
                summary.errors.append(f"{language}: {type(result).__name__}: {result}")
            elif isinstance(result, BaseException):
                raise result
            elif result.created:
                summary.translations_completed += 1
                summary.mark(language, "created")
                self._announce(result.article)
            else:
                summary.mark(language, "exists")

        if store_error is not None:
            raise store_error

    async def _translate_and_persist(
        self,
        master: ArticleBase,
        doc: MasterArticleDocument,
        language: str,
        chunk_count: int,
        now: datetime,
    ) -> PersistResult:
        if await self.ledger.translation_exists(master.slug, language):
            return PersistResult(None, PersistOutcome.DUPLICATE)
        translation = await self.gateway.generate_translation(language, doc, chunk_count)
        return await self.ledger.persist_translation(
            translation.doc,
            master,
            language,
            TokenCounts(translation.tokens_in, translation.tokens_out),
            now=now,
            model=translation.model,
            prompt=f"translate {master.slug} -> {language} ({translation.chunks_sent} chunk(s))",
        )

    def _announce(self, article: ArticleBase | None) -> None:
        if self.notifier is not None and article is not None:
            self.notifier.notify(article)

    # ------------------------------------------------------------------
    # Manual, single-unit operations
    # ------------------------------------------------------------------

    async def generate_single(
        self,
        category_slug: str | None = None,
        *,
        prefer_web_search: bool = False,
        now: datetime | None = None,
    ) -> SingleGenerationResult:
        """One master article outside the window and quota. Still idempotent on slug."""
        now = as_utc(now or self.clock())
        category = await self.ledger.get_category(category_slug)
        if category is None:
            raise CategoryNotFound(category_slug)

        master = await self.gateway.generate_master(category, prefer_web_search=prefer_web_search)
        persisted = await self.ledger.persist_master(
            master.doc,
            category,
            TokenCounts(master.tokens_in, master.tokens_out),
            now=now,
            model=master.model,
            prompt=master.prompt,
        )
        if persisted.created:
            self._announce(persisted.article)
        return SingleGenerationResult(category=category, persisted=persisted, master=master)

    async def translate_existing(
        self,
        slug: str,
        language: str,
        max_chunks: int | None = None,
        *,
        now: datetime | None = None,
    ) -> TranslationOutcome:
        """Translate a stored master into one language on request."""
        chunk_count = validate_chunk_count(
            self.settings.default_translation_chunks if max_chunks is None else max_chunks
        )
        language = language.lower()
        if language not in self.settings.target_languages:
            raise ValidationError(f"unsupported target language {language!r}", language=language)

        master = await self.ledger.get_master(slug)
        if master is None:
            raise ArticleNotFound(slug)
        if await self.ledger.translation_exists(slug, language):
            raise TranslationConflict(slug, language)

        try:
            translation = await self.gateway.generate_translation(
                language, parse(master.markdown), chunk_count
            )
        except ProviderError as e:
            e.context.update(slug=slug, language=language, chunk_count=chunk_count)
            raise

        persisted = await self.ledger.persist_translation(
            translation.doc,
            master,
            language,
            TokenCounts(translation.tokens_in, translation.tokens_out),
            now=as_utc(now or self.clock()),
            model=translation.model,
            prompt=f"translate {slug} -> {language} ({translation.chunks_sent} chunk(s))",
        )
        if persisted.outcome is PersistOutcome.DUPLICATE:
            raise TranslationConflict(slug, language)
        self._announce(persisted.article)
        return TranslationOutcome(persisted=persisted, translation=translation)
