"""FastAPI backend for ProductKit: generation jobs and live product status."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from productkit import __version__
from productkit.config import get_settings
from productkit.jobs import InMemoryJobStore
from productkit.services import build_services

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

settings = get_settings()


async def _prune_jobs(store: InMemoryJobStore, retention_seconds: int) -> None:
    """Evict finished jobs older than the retention window, forever."""
    max_age = timedelta(seconds=retention_seconds)
    while True:
        await asyncio.sleep(min(retention_seconds, 60))
        store.prune(max_age)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own services before startup
    services = getattr(app.state, "services", None) or build_services(settings)
    app.state.services = services

    pruner = None
    if settings.pk_job_retention_seconds:
        logger.info("Pruning finished jobs after %ss", settings.pk_job_retention_seconds)
        pruner = asyncio.create_task(_prune_jobs(services.jobs, settings.pk_job_retention_seconds))

    yield

    if pruner is not None:
        pruner.cancel()
    await services.aclose()


app = FastAPI(
    title="ProductKit API",
    description="Marketing asset generation for products: images, 3D models, copy and storefront sync.",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
cors_origins = settings.cors_origin_list
cors_origin_regex = settings.cors_origin_regex
logger.info("CORS configured for origins: %s", cors_origins)
if cors_origin_regex:
    logger.info("CORS origin regex: %s", cors_origin_regex)

if settings.storage_configured:
    logger.info("Asset store: S3-compatible bucket %s", settings.do_spaces_bucket)
else:
    logger.info("Asset store: local directory %s served at /assets", settings.assets_dir)

cors_kw: dict = {
    "allow_origins": cors_origins,
    "allow_credentials": True,
    "allow_methods": ["*"],
    "allow_headers": ["*"],
}
if cors_origin_regex:
    cors_kw["allow_origin_regex"] = cors_origin_regex
app.add_middleware(CORSMiddleware, **cors_kw)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
    data_dir: str
    active_jobs: int = 0


@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    services = getattr(app.state, "services", None)
    return HealthResponse(
        status="ok",
        data_dir=str(settings.data_dir),
        active_jobs=services.manager.active_jobs if services else 0,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
from backend.routes import generation, status  # noqa: E402

app.include_router(generation.router, prefix="/api", tags=["generation"])
app.include_router(status.router, tags=["status"])

if not settings.storage_configured:
    app.mount("/assets", StaticFiles(directory=str(settings.assets_dir)), name="assets")
