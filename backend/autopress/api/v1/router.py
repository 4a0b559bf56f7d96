"""API v1 main router - aggregates all endpoint routers."""

from fastapi import APIRouter

from autopress.api.v1 import articles, categories, feeds, generation, jobs

api_router = APIRouter()

# Read endpoints
api_router.include_router(articles.router, prefix="/articles", tags=["articles"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])

# Publication collateral
api_router.include_router(feeds.router, tags=["feeds"])

# Generation engine
api_router.include_router(generation.router, prefix="/generation", tags=["generation"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
