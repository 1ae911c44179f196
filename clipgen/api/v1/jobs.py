"""Job management API: look up, list and delete jobs."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from clipgen.api.v1.deps import require_services
from clipgen.jobs.models import JobStatus
from clipgen.services import Services

router = APIRouter()


@router.get("/jobs")
def get_jobs(
    id: Optional[str] = None,
    status: Optional[JobStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    services: Services = Depends(require_services),
):
    """Get one job by id, or a newest-first page of jobs."""
    if id:
        job = services.store.get(id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return {"success": True, "job": job.to_json_dict()}

    jobs, total = services.store.list_jobs(page=page, limit=limit, status=status)
    return {
        "success": True,
        "jobs": [job.to_json_dict() for job in jobs],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.delete("/jobs")
def delete_job(
    id: Optional[str] = None,
    services: Services = Depends(require_services),
):
    if not id:
        raise HTTPException(status_code=400, detail="Job ID is required")
    if not services.store.delete(id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True}
