"""Scheduled batch processing: advance all jobs, then clean up old ones."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from clipgen.api.v1.deps import require_services
from clipgen.jobs.errors import ConfigurationError
from clipgen.jobs.executor import run_blocking
from clipgen.jobs.models import utcnow
from clipgen.services import Services

logger = logging.getLogger(__name__)

router = APIRouter()


def check_cron_auth(authorization: Optional[str], services: Services) -> None:
    """Production requires the bearer secret; other environments allow anyone."""
    secret = services.settings.cron_secret
    if authorization == f"Bearer {secret}":
        return
    if services.settings.environment == "production" and secret:
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/cron")
async def run_cron(
    authorization: Optional[str] = Header(None),
    services: Services = Depends(require_services),
):
    check_cron_auth(authorization, services)
    logger.info("Cron: starting job processing")

    results: Dict[str, Any] = {}
    try:
        services.processor.check_configured()
    except ConfigurationError as e:
        logger.warning("Cron: skipping clip processing: %s", e)
        results["clipGeneration"] = {"processed": 0, "jobs": []}
    else:
        jobs = await services.processor.advance_all()
        results["clipGeneration"] = {
            "processed": len(jobs),
            "jobs": [{"id": job.id, "status": job.status.value} for job in jobs],
        }
        logger.info("Cron: processed %d clip generation jobs", len(jobs))

    try:
        deleted = await run_blocking(
            services.store.cleanup_old_jobs, services.settings.job_retention_hours
        )
        results["cleanup"] = {"deleted": deleted}
    except Exception as e:
        logger.exception("Cron: cleanup failed")
        results["cleanup"] = {"error": str(e)}

    return {"success": True, "timestamp": utcnow().isoformat(), "results": results}
