"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Liveness plus cache occupancy."""
    service = request.app.state.rainarea_service
    return {
        "status": "ok",
        "snapshots_cached": len(service.cache),
        "images_cached": len(service.fetcher.byte_cache),
        "inflight": service.inflight,
    }
