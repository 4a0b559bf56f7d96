"""Daily job ledger endpoints."""

from datetime import date, datetime, UTC
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from autopress.dependencies import get_status_reporter
from autopress.exceptions import PersistenceError
from autopress.services.status_service import StatusReporter

router = APIRouter()


@router.get("/today")
async def get_today_job(
    reporter: StatusReporter = Depends(get_status_reporter),
) -> dict[str, Any]:
    """Today's job row with master, translation and token totals."""
    return await _job_summary(reporter, datetime.now(UTC).date())


@router.get("/{job_date}")
async def get_job(
    job_date: date,
    reporter: StatusReporter = Depends(get_status_reporter),
) -> dict[str, Any]:
    """Job row and totals for a past day."""
    summary = await _job_summary(reporter, job_date)
    if summary["job"] is None:
        raise HTTPException(status_code=404, detail=f"No generation job for {job_date.isoformat()}")
    return summary


async def _job_summary(reporter: StatusReporter, day: date) -> dict[str, Any]:
    try:
        return await reporter.today(day)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.to_detail()) from e
