"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rainarea import __version__
from rainarea.collectors.mirrors import ByteCache, MirrorFetcher
from rainarea.config import Settings, get_settings
from rainarea.errors import RainAreaError
from rainarea.routers import health_router, metrics_router, rainarea_router
from rainarea.services.coverage import CoverageMask
from rainarea.services.snapshots import RainAreaService, SnapshotCache

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

INVALID_PARAMETER_CACHE_CONTROL = "public, max-age=86400"


def load_coverage_mask(settings: Settings) -> CoverageMask:
    """Load the region mask, or an empty one when none is configured."""
    if not settings.coverage_mask_path:
        logger.warning("No COVERAGE_MASK_PATH configured; region coverage will be reported as 0")
        return CoverageMask.empty()
    return CoverageMask.from_file(settings.coverage_mask_path)


def build_service(settings: Settings, client: httpx.AsyncClient) -> RainAreaService:
    """Wire the fetcher, caches and mask into a RainAreaService."""
    fetcher = MirrorFetcher(
        client,
        settings.mirror_urls,
        attempt_timeout=settings.attempt_timeout,
        retry_delay=settings.retry_delay,
        retry_status_codes=settings.retry_status_codes,
        byte_cache=ByteCache(settings.byte_cache_size),
        user_agent=settings.user_agent,
    )
    return RainAreaService(
        fetcher,
        mask=load_coverage_mask(settings),
        cache=SnapshotCache(settings.snapshot_cache_size),
        explicit_retries=settings.explicit_retries,
        current_slot_timeout=settings.current_slot_timeout,
        request_timeout=settings.request_timeout,
        fallback_steps=settings.fallback_steps,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting rainarea...")

    async with httpx.AsyncClient(follow_redirects=False) as client:
        app.state.rainarea_service = build_service(settings, client)
        logger.info(f"Serving radar from {len(settings.mirror_urls)} mirrors")

        yield

        # Shutdown
        logger.info("Shutting down rainarea...")

    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="rainarea",
    description="Rain-area radar snapshots decoded into compact intensity grids",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(rainarea_router)


@app.exception_handler(RainAreaError)
async def rainarea_error_handler(request: Request, exc: RainAreaError) -> JSONResponse:
    """Map any RainAreaError to a JSON error body without stack details."""
    if exc.cacheable:
        cache_control = INVALID_PARAMETER_CACHE_CONTROL
    else:
        cache_control = "no-cache"
    logger.warning(f"{request.url.path} failed: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc)},
        headers={"Cache-Control": cache_control},
    )


@app.get("/")
async def root():
    """Project info and available endpoints."""
    return {
        "name": "rainarea",
        "version": __version__,
        "endpoints": [
            "/v1/rainarea",
            "/health",
            "/metrics",
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
