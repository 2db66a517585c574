"""API routers."""

from rainarea.routers.health import router as health_router
from rainarea.routers.metrics import router as metrics_router
from rainarea.routers.rainarea import router as rainarea_router

__all__ = [
    "health_router",
    "metrics_router",
    "rainarea_router",
]
