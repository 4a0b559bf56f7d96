"""Quota planner: which categories still need master articles today."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from autopress.models import Category


class QuotaSource(Protocol):
    async def list_categories(self) -> list[Category]: ...

    async def masters_by_category(self, day: date) -> dict[int, int]: ...


@dataclass(frozen=True)
class PlannedUnit:
    category: Category
    deficit: int
    priority: int
    generated_today: int


class QuotaPlanner:
    """Read-only. Store errors propagate to the caller untouched."""

    def __init__(self, store: QuotaSource) -> None:
        self.store = store

    async def plan(self, day: date, daily_target_per_category: int) -> list[PlannedUnit]:
        """
        Categories below target, highest deficit first, ties by category id.

        Categories that already met the target are left out.
        """
        categories = await self.store.list_categories()
        counts = await self.store.masters_by_category(day)

        pending = []
        for category in categories:
            generated = counts.get(category.id, 0)
            deficit = max(0, daily_target_per_category - generated)
            if deficit:
                pending.append((category, deficit, generated))

        pending.sort(key=lambda item: (-item[1], item[0].id))
        return [
            PlannedUnit(category=category, deficit=deficit, priority=rank, generated_today=generated)
            for rank, (category, deficit, generated) in enumerate(pending, start=1)
        ]


def total_deficit(units: list[PlannedUnit]) -> int:
    return sum(unit.deficit for unit in units)
