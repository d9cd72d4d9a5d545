from fastapi import APIRouter

from sugarop.api.v1.endpoints import receipts

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(receipts.router, prefix="/receipts", tags=["Receipts"])

__all__ = ["api_router"]
