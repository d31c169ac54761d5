"""API routers for the contentgraph server."""

from fastapi import APIRouter

from contentgraph.backend.api.graph import router as graph_router

# Main API router that aggregates all sub-routers
router = APIRouter()

router.include_router(graph_router, prefix="/graph", tags=["graph"])

__all__ = ["router"]
