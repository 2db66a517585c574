"""Rain-area radar endpoint."""

import logging

from fastapi import APIRouter, Query, Request, Response

from rainarea.schemas.rainarea import ErrorResponse, RainAreaResponse
from rainarea.services.snapshots import RainAreaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["rainarea"])

# Explicit slots never change once published
EXPLICIT_CACHE_CONTROL = "public, max-age=31536000, immutable"
CURRENT_CACHE_CONTROL = "public, max-age=30, must-revalidate"


def get_service(request: Request) -> RainAreaService:
    return request.app.state.rainarea_service


@router.get(
    "/rainarea",
    response_model=RainAreaResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def get_rainarea(
    request: Request,
    response: Response,
    dt: str | None = Query(default=None, description="Slot key YYYYMMDDHHmm (UTC+8, 5-minute aligned)"),
) -> RainAreaResponse:
    """Radar snapshot for an explicit slot, or the newest available one."""
    service = get_service(request)

    if dt:
        slot = service.resolver.parse_slot(dt)
        resolution = await service.get_slot(slot)
        response.headers["Cache-Control"] = EXPLICIT_CACHE_CONTROL
    else:
        resolution = await service.get_current()
        response.headers["Cache-Control"] = CURRENT_CACHE_CONTROL

    snapshot = resolution.snapshot
    response.headers["ETag"] = f'"{snapshot.slot}"'
    response.headers["X-Snapshot-State"] = resolution.state.value
    return RainAreaResponse.from_snapshot(snapshot)
