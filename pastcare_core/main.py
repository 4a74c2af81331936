"""PastCare Core API - Main Application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pastcare_core import __version__
from pastcare_core.api.routes import metrics as metrics_routes
from pastcare_core.api.routes import saved_searches as saved_searches_routes
from pastcare_core.api.routes import search as search_routes
from pastcare_core.config import get_settings
from pastcare_core.observability.logging import configure_logging, get_logger


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    app.state.settings = settings
    logger.info("PastCare Core started", version=__version__)
    yield
    # Shutdown


app = FastAPI(
    title="PastCare Core API",
    description="Church membership management with advanced member search",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(metrics_routes.router)
app.include_router(saved_searches_routes.router)
app.include_router(search_routes.router)


@app.get("/healthz")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True, "service": "pastcare-core"}


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "name": "PastCare Core API",
        "version": __version__,
        "status": "running",
    }
