"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from field_hierarchy.config import settings
from field_hierarchy.middleware.error_handler import ErrorHandlerMiddleware
from field_hierarchy.api.dependencies import close_gateway
from field_hierarchy.api.v1.routers import blocks, hierarchy, phases, tasks

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup and close the store gateway on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Store backend: {settings.store_backend} "
                f"(tables: {settings.phase_table}, {settings.block_table}, {settings.task_table})")
    logger.info(f"Natural key renames allowed: {settings.allow_natural_key_rename}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    await close_gateway()
    logger.info("Store gateway closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Planning Hierarchy API for orchard Phase / Block / Task records

    Every mutation keeps the derived aggregates of the tree consistent:
    a Block's Area, Trees, Density and TaskCount always equal the reduction
    of its Tasks, and a Phase's always equal the reduction of its Blocks.

    ## Features

    - **Recompute from children**: parents are rewritten from their current
      children after every mutation, never adjusted incrementally
    - **Cascade delete**: deleting a Block or Phase removes its descendants
      first, then recomputes the parent
    - **Safe renames**: renaming a Phase or Block repoints its children
    - **Repair**: `/api/v1/hierarchy/recompute` rebuilds every aggregate
    - **Robust store access**: automatic retries with exponential backoff for
      Supabase calls
    - **Rate limiting**: per-client request budget, `RATE_LIMIT_REQUESTS` per minute

    ## Failure model

    Operations are sequences of store calls without a transaction. A failed
    step leaves earlier steps applied and returns an error; the next mutation
    of the same subtree, or a repair pass, restores the aggregates.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorHandlerMiddleware)

for module in (phases, blocks, tasks, hierarchy):
    app.include_router(module.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """Service name and version."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness check reporting which store backend is active."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "store_backend": settings.store_backend,
    }
