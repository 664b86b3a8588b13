from fastapi import APIRouter

from app.api.v1.endpoints import admin, patterns, reports, search, similar

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(search.router, prefix="/search", tags=["Search"])
api_router.include_router(similar.router, prefix="/similar", tags=["Similarity"])
api_router.include_router(patterns.router, prefix="/patterns", tags=["Patterns"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["api_router"]
