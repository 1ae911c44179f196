"""Clip generation service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipgen.config import settings
from clipgen.api.v1.router import v1_router
from clipgen.api.v1.health import router as health_root_router
from clipgen.jobs.errors import ClipJobError
from clipgen.logging_config import setup_logging
from clipgen.services import build_services, set_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_logging(settings.log_level)

    logger.info("Starting clip generation service on port %s", settings.compute_port)
    logger.info("Environment: %s", settings.environment)
    logger.info("Storage backend: %s, job store: %s", settings.storage_backend, settings.job_store_backend)
    logger.info("Default video model: %s, daily limit: %d", settings.default_video_model, settings.daily_video_limit)

    services = build_services(settings)
    set_services(services)

    yield

    logger.info("Shutting down clip generation service")
    set_services(None)
    await services.aclose()


app = FastAPI(
    title="Clip Generation Service",
    description="Image-to-video clip generation jobs backed by hosted video models",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClipJobError)
async def clip_job_error_handler(request: Request, exc: ClipJobError):
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
