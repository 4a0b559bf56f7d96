"""Read-only health and progress summaries."""

from datetime import date, datetime
from typing import Any

from autopress.config import Settings
from autopress.models import GenerationJob, shard_table_name
from autopress.services.ledger import ArticleLedger
from autopress.services.orchestrator import GenerationOrchestrator
from autopress.services.timing import TimingGate


def _job_dict(job: GenerationJob | None) -> dict[str, Any] | None:
    if job is None:
        return None
    return {
        "job_date": job.job_date.isoformat(),
        "status": job.status,
        "target_count": job.target_count,
        "generated_count": job.generated_count,
        "error_summary": job.error_summary,
        "execution_ms": job.execution_ms,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
        "finalized_at": job.finalized_at.isoformat() if job.finalized_at else None,
    }


class StatusReporter:
    """Reflects committed state only: job rows and visible articles."""

    def __init__(
        self,
        ledger: ArticleLedger,
        gate: TimingGate,
        orchestrator: GenerationOrchestrator,
        settings: Settings,
    ) -> None:
        self.ledger = ledger
        self.gate = gate
        self.orchestrator = orchestrator
        self.settings = settings

    async def health(self, now: datetime) -> dict[str, Any]:
        database = await self.ledger.ping()
        job = await self.ledger.get_job(now.date()) if database else None
        return {
            "status": "healthy" if database else "degraded",
            "database": database,
            "job_in_flight": self.orchestrator.in_flight,
            "within_window": self.gate.in_hours(now) and self.gate.on_allowed_day(now),
            "force_generation": self.settings.force_generation,
            "window": self.gate.describe(now),
            "job": _job_dict(job),
        }

    async def progress(self, day: date) -> dict[str, Any]:
        """Per-category completed vs remaining against today's target."""
        target = self.settings.articles_per_category_per_day
        categories = await self.ledger.list_categories()
        counts = await self.ledger.masters_by_category(day)

        rows = []
        for category in categories:
            completed = counts.get(category.id, 0)
            rows.append(
                {
                    "category": category.slug,
                    "name": category.display_name,
                    "completed": completed,
                    "remaining": max(0, target - completed),
                    "target": target,
                }
            )

        return {
            "date": day.isoformat(),
            "target_per_category": target,
            "categories": rows,
            "total_completed": sum(row["completed"] for row in rows),
            "total_remaining": sum(row["remaining"] for row in rows),
            "job": _job_dict(await self.ledger.get_job(day)),
        }

    async def today(self, day: date) -> dict[str, Any]:
        """Job row plus master, translation and token totals for a day."""
        job = await self.ledger.get_job(day)
        counts = await self.ledger.masters_by_category(day)
        languages = self.settings.target_languages
        translations = await self.ledger.translations_by_language(day, languages)
        usage = await self.ledger.get_token_usage(day)
        return {
            "date": day.isoformat(),
            "job": _job_dict(job),
            "totals": {
                "masters": sum(counts.values()),
                "translations": sum(translations.values()),
                "translations_per_language": {
                    language: {"count": count, "table": shard_table_name(language)}
                    for language, count in translations.items()
                },
                "tokens_in": usage.tokens_in if usage else 0,
                "tokens_out": usage.tokens_out if usage else 0,
                "tokens_total": usage.total if usage else 0,
            },
        }
