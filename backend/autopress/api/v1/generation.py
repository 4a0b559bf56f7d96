"""Generation trigger and status endpoints."""

from datetime import datetime, UTC
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from autopress.dependencies import get_orchestrator, get_status_reporter
from autopress.exceptions import (
    ArticleNotFound,
    AutopressError,
    CategoryNotFound,
    InvalidChunkCount,
    ProviderError,
    StoreUnavailable,
    TranslationConflict,
    ValidationError,
)
from autopress.schemas.generation import (
    GeneratedArticle,
    MasterGenerationRequest,
    MasterGenerationResponse,
    RunResponse,
    TranslationRequest,
    TranslationResponse,
)
from autopress.services.orchestrator import GenerationOrchestrator, RunTrigger
from autopress.services.status_service import StatusReporter

router = APIRouter()


def _http_error(error: AutopressError) -> HTTPException:
    """Map the error taxonomy onto status codes, keeping the error context."""
    if isinstance(error, InvalidChunkCount):
        status_code = 422
    elif isinstance(error, ValidationError):
        status_code = 400
    elif isinstance(error, (ArticleNotFound, CategoryNotFound)):
        status_code = 404
    elif isinstance(error, TranslationConflict):
        status_code = 409
    elif isinstance(error, ProviderError):
        status_code = 502
    elif isinstance(error, StoreUnavailable):
        status_code = 503
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=error.to_detail())


@router.post("/run", response_model=RunResponse)
async def run_generation(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    """
    Run a full generation cycle now.

    Bypasses the generation window; quota and idempotency still apply.
    """
    report = await orchestrator.run(RunTrigger.MANUAL)
    return RunResponse(status=report.status.value, reason=report.reason, details=report.to_dict())


@router.post("/master", response_model=MasterGenerationResponse)
async def generate_master(
    request: MasterGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> MasterGenerationResponse:
    """Generate and persist one master article for a category."""
    try:
        result = await orchestrator.generate_single(
            request.category_slug,
            prefer_web_search=request.prefer_web_search,
        )
    except AutopressError as e:
        raise _http_error(e) from e

    article = result.persisted.article
    return MasterGenerationResponse(
        status=result.persisted.outcome.value,
        category=result.category.slug,
        article=GeneratedArticle.model_validate(article) if article is not None else None,
        provider=result.master.provider_used,
        model=result.master.model,
        attempts=len(result.master.attempts),
    )


@router.post("/translate", response_model=TranslationResponse)
async def translate_article(
    request: TranslationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> TranslationResponse:
    """
    Translate an existing master article.

    - 422: max_chunks outside [0, 10]
    - 404: no master article with that slug
    - 409: a translation for that language already exists
    - 502: every provider attempt failed
    """
    try:
        outcome = await orchestrator.translate_existing(
            request.slug,
            request.language,
            request.max_chunks,
        )
    except AutopressError as e:
        raise _http_error(e) from e

    article = outcome.persisted.article
    return TranslationResponse(
        status=outcome.persisted.outcome.value,
        language=request.language.lower(),
        article=GeneratedArticle.model_validate(article) if article is not None else None,
        chunk_count=outcome.translation.chunk_count_used,
        chunks_sent=outcome.translation.chunks_sent,
        attempts=len(outcome.translation.attempts),
    )


@router.get("/status")
async def generation_status(
    reporter: StatusReporter = Depends(get_status_reporter),
) -> dict[str, Any]:
    """Today's per-category progress against the daily target."""
    now = datetime.now(UTC)
    try:
        progress = await reporter.progress(now.date())
    except AutopressError as e:
        raise _http_error(e) from e

    last_report = reporter.orchestrator.last_report
    return {
        **progress,
        "is_optimal_time": reporter.gate.is_within_window(now),
        "job_in_flight": reporter.orchestrator.in_flight,
        "last_run": last_report.to_dict() if last_report else None,
    }


@router.get("/health")
async def generation_health(
    reporter: StatusReporter = Depends(get_status_reporter),
) -> dict[str, Any]:
    """Store reachability, in-flight job and generation window."""
    return await reporter.health(datetime.now(UTC))
