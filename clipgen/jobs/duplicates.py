"""Duplicate guard for in-flight clip jobs.

A snapshot read of the processing set: two near-simultaneous starts for the
same entity/action can both pass it.
"""

from typing import Optional

from clipgen.jobs.errors import DuplicateRequest
from clipgen.jobs.models import ClipAction, ClipJob, JobStatus
from clipgen.jobs.store import JobStore


def find_duplicate(store: JobStore, entity_id: str, action: ClipAction) -> Optional[ClipJob]:
    for job in store.list_by_status(JobStatus.PROCESSING):
        if job.input.entity_id == entity_id and job.input.action == action:
            return job
    return None


def reject_duplicate(store: JobStore, entity_id: str, action: ClipAction) -> None:
    """Raise DuplicateRequest if a job for this entity/action is processing."""
    job = find_duplicate(store, entity_id, action)
    if job is not None:
        raise DuplicateRequest(job.id)
