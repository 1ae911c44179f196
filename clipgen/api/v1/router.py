"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from clipgen.api.v1.health import router as health_router
from clipgen.api.v1.models_api import router as models_router
from clipgen.api.v1.clip_jobs import router as clip_jobs_router
from clipgen.api.v1.jobs import router as jobs_router
from clipgen.api.v1.spending import router as spending_router
from clipgen.api.v1.operations import router as operations_router
from clipgen.api.v1.cron import router as cron_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(models_router, tags=["models"])
v1_router.include_router(clip_jobs_router, tags=["clip-generation"])
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(spending_router, tags=["spending"])
v1_router.include_router(operations_router, tags=["operations"])
v1_router.include_router(cron_router, tags=["cron"])
