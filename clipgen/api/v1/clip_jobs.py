"""Clip generation API: start jobs, poll them, advance them on demand."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from clipgen.api.v1.deps import require_services
from clipgen.jobs.executor import run_blocking
from clipgen.services import Services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/jobs/clip-generation")
async def start_clip_generation(
    payload: Dict[str, Any] = Body(...),
    services: Services = Depends(require_services),
):
    """Start a clip generation job. Poll GET /api/v1/jobs?id=JOB_ID for status."""
    result = await services.dispatcher.start(payload)
    if not result.success:
        return JSONResponse(status_code=500, content=result.to_response())
    return result.to_response()


@router.get("/jobs/clip-generation")
async def poll_clip_generation(
    job_id: Optional[str] = Query(None, alias="jobId"),
    process: bool = False,
    process_all: bool = Query(False, alias="processAll"),
    services: Services = Depends(require_services),
):
    """Read one job (advancing it once with process=true) or advance all."""
    if job_id:
        job = await run_blocking(services.store.get, job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        if process:
            if not job.is_terminal:
                services.processor.check_configured(job)
            job = await services.processor.advance(job)
        return {"success": True, "job": job.to_json_dict()}

    if process_all:
        services.processor.check_configured()
        jobs = await services.processor.advance_all()
        return {
            "success": True,
            "processed": len(jobs),
            "jobs": [job.to_json_dict() for job in jobs],
        }

    raise HTTPException(status_code=400, detail="jobId or processAll=true is required")
