"""Graph mirror API endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from contentgraph.analytics import AnalyticsSettings, analyze_graph_async
from contentgraph.backend.services import GraphService, SyncInProgressError, get_graph_service
from contentgraph.errors import GraphStoreError
from contentgraph.log_config import get_logger
from contentgraph.models import SyncStatus

router = APIRouter()
log = get_logger("backend.api.graph")

GRAPH_UNAVAILABLE = "Graph store not configured or unavailable"


class FullSyncRequest(BaseModel):
    """Request model for a full resync."""

    user_id: str = Field(..., min_length=1, description="Owner whose graph is rebuilt")


class FullSyncResponse(BaseModel):
    success: bool
    nodes_created: int
    edges_created: int


def _require_graph(service: GraphService) -> None:
    if not service.graph_enabled:
        raise HTTPException(status_code=503, detail=GRAPH_UNAVAILABLE)


def _run_content_sync(service: GraphService, content_id: str) -> None:
    """Background task body: upsert the node then refresh its similarity edges."""
    try:
        results = service.incremental.sync_content(content_id)
    except Exception as e:
        log.error(f"Background sync for {content_id} failed: {e}")
        return
    for result in results:
        if not result.ok:
            log.warning(f"{result.operation}({content_id}) ended with {result.status.value}")


def _run_content_delete(service: GraphService, content_id: str) -> None:
    result = service.incremental.delete_content(content_id)
    if not result.ok:
        log.warning(f"delete_content({content_id}) ended with {result.status.value}")


@router.post("/sync", response_model=FullSyncResponse)
def full_sync(request: FullSyncRequest, service: GraphService = Depends(get_graph_service)) -> dict:
    """Clear and rebuild a user's graph from the store of record.

    Only one full resync per user may run at a time; a concurrent request
    receives 409.
    """
    _require_graph(service)

    try:
        result = service.full_sync(request.user_id)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GraphStoreError as e:
        log.error(f"Full sync for {request.user_id} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Full sync failed: {e}")

    if result.status == SyncStatus.UNAVAILABLE:
        raise HTTPException(status_code=503, detail=GRAPH_UNAVAILABLE)

    return {
        "success": True,
        "nodes_created": result.nodes_created,
        "edges_created": result.edges_created,
    }


@router.post("/content/{content_id}", status_code=202)
def sync_content(
    content_id: str,
    background_tasks: BackgroundTasks,
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Schedule an upsert plus similarity sync for one content item."""
    background_tasks.add_task(_run_content_sync, service, content_id)
    return {"scheduled": True, "content_id": content_id, "graph_enabled": service.graph_enabled}


@router.delete("/content/{content_id}", status_code=202)
def delete_content(
    content_id: str,
    background_tasks: BackgroundTasks,
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Schedule removal of a content node and all its edges."""
    background_tasks.add_task(_run_content_delete, service, content_id)
    return {"scheduled": True, "content_id": content_id, "graph_enabled": service.graph_enabled}


@router.get("")
def get_graph(
    user_id: str = Query(..., min_length=1),
    min_similarity: float | None = Query(default=None, ge=0.0, le=1.0),
    limit: int | None = Query(default=None, ge=1, le=1000),
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Get the user's similarity graph.

    Served from the graph mirror, or computed from the vector store when the
    mirror is unavailable.
    """
    data, origin = service.get_graph(user_id, min_similarity=min_similarity, limit=limit)
    return {**data.to_dict(), "origin": origin}


@router.get("/nodes/{node_id}/neighborhood")
def get_neighborhood(
    node_id: str,
    user_id: str = Query(..., min_length=1),
    hops: int = Query(default=2),
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Get every similarity edge within `hops` of a node (hops clamped to 1..max)."""
    data = service.queries.get_node_neighborhood(node_id, user_id, hops=hops)
    if data is None:
        raise HTTPException(status_code=503, detail=GRAPH_UNAVAILABLE)
    return data.to_dict()


@router.get("/path")
def get_path(
    source: str = Query(..., min_length=1),
    target: str = Query(..., min_length=1),
    user_id: str = Query(..., min_length=1),
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Find the shortest similarity path between two content items."""
    data = service.queries.get_shortest_path(source, target, user_id)
    if data is None:
        raise HTTPException(status_code=503, detail=GRAPH_UNAVAILABLE)
    return {**data.to_dict(), "found": bool(data.edges)}


@router.get("/tags")
def get_tags(
    user_id: str = Query(..., min_length=1),
    min_count: int = Query(default=2, ge=1),
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Get tags shared by at least `min_count` of the user's content items."""
    clusters = service.queries.get_tag_clusters(user_id, min_count=min_count)
    if clusters is None:
        raise HTTPException(status_code=503, detail=GRAPH_UNAVAILABLE)
    return {"clusters": [cluster.to_dict() for cluster in clusters]}


@router.get("/layout")
async def get_layout(
    user_id: str = Query(..., min_length=1),
    min_similarity: float | None = Query(default=None, ge=0.0, le=1.0),
    limit: int | None = Query(default=None, ge=1, le=1000),
    seed: int | None = Query(default=None),
    service: GraphService = Depends(get_graph_service),
) -> dict:
    """Get the user's graph with communities, centrality and positions."""
    data, origin = service.get_graph(user_id, min_similarity=min_similarity, limit=limit)
    analyzed = await analyze_graph_async(data, AnalyticsSettings(seed=seed))
    return {**analyzed.to_dict(), "origin": origin}
