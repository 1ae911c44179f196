"""Job store interface with blob-document and Supabase table backends.

The store is the only shared mutable resource. Every method is a single
read/update round trip; callers never hold a lock across two calls.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from clipgen.jobs.models import ClipJob, JobStatus, TERMINAL_STATUSES, utcnow
from clipgen.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

JOBS_DOCUMENT = "state/jobs.json"


def apply_update(job: ClipJob, fields: Dict[str, Any], now: Optional[datetime] = None) -> ClipJob:
    """Merge partial fields into a job, stamping updated_at/completed_at."""
    now = now or utcnow()
    merged = {**job.model_dump(), **fields, "updated_at": now}
    updated = ClipJob.model_validate(merged)
    if updated.status in TERMINAL_STATUSES and updated.completed_at is None:
        updated.completed_at = now
    return updated


class JobStore(ABC):
    """Durable job records."""

    @abstractmethod
    def create(self, job: ClipJob) -> ClipJob:
        ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[ClipJob]:
        ...

    @abstractmethod
    def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[JobStatus] = None,
    ) -> Optional[ClipJob]:
        """Apply partial fields. Returns None if the job is missing, or if
        ``expected_status`` is given and the stored status differs."""
        ...

    @abstractmethod
    def list_all(self) -> List[ClipJob]:
        ...

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        ...

    def list_by_status(self, status: JobStatus) -> List[ClipJob]:
        return [job for job in self.list_all() if job.status == status]

    def list_jobs(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[JobStatus] = None,
    ) -> Tuple[List[ClipJob], int]:
        """Newest-first page of jobs and the total matching count."""
        jobs = self.list_by_status(status) if status else self.list_all()
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        start = max(page - 1, 0) * limit
        return jobs[start:start + limit], len(jobs)

    def cleanup_old_jobs(self, max_age_hours: int = 24, now: Optional[datetime] = None) -> int:
        """Delete terminal jobs completed before the cutoff."""
        cutoff = (now or utcnow()) - timedelta(hours=max_age_hours)
        deleted = 0
        for job in self.list_all():
            if job.is_terminal and job.completed_at and job.completed_at < cutoff:
                if self.delete(job.id):
                    deleted += 1
        if deleted:
            logger.info("Cleaned up %d old jobs", deleted)
        return deleted


class BlobJobStore(JobStore):
    """All jobs in one JSON document, rewritten on every change."""

    def __init__(self, storage: BlobStorage, document_path: str = JOBS_DOCUMENT):
        self._storage = storage
        self._path = document_path

    def _load(self) -> Dict[str, ClipJob]:
        raw = self._storage.get_json(self._path, default={}) or {}
        return {job_id: ClipJob.model_validate(data) for job_id, data in raw.items()}

    def _save(self, jobs: Dict[str, ClipJob]) -> None:
        self._storage.put_json(
            self._path, {job_id: job.to_json_dict() for job_id, job in jobs.items()}
        )

    def create(self, job: ClipJob) -> ClipJob:
        jobs = self._load()
        jobs[job.id] = job
        self._save(jobs)
        logger.info("Created job %s (status=%s)", job.id, job.status.value)
        return job

    def get(self, job_id: str) -> Optional[ClipJob]:
        return self._load().get(job_id)

    def update(self, job_id, fields, expected_status=None):
        jobs = self._load()
        job = jobs.get(job_id)
        if job is None:
            logger.error("Job %s not found for update", job_id)
            return None
        if expected_status is not None and job.status != expected_status:
            logger.info(
                "Skipped update of job %s: status is %s, expected %s",
                job_id, job.status.value, expected_status.value,
            )
            return None
        updated = apply_update(job, fields)
        jobs[job_id] = updated
        self._save(jobs)
        logger.info("Updated job %s: status=%s", job_id, updated.status.value)
        return updated

    def list_all(self) -> List[ClipJob]:
        return list(self._load().values())

    def delete(self, job_id: str) -> bool:
        jobs = self._load()
        if jobs.pop(job_id, None) is None:
            return False
        self._save(jobs)
        logger.info("Deleted job %s", job_id)
        return True


_transient_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_incrementing(start=0.5, increment=0.5),
    retry=retry_if_exception_type(httpx.TransportError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class SupabaseJobStore(JobStore):
    """One row per job; nested fields are jsonb columns."""

    def __init__(self, client, table: str = "clip_jobs"):
        self._client = client
        self._table = table

    def _query(self):
        return self._client.table(self._table)

    @_transient_retry
    def _execute(self, query):
        return query.execute()

    def create(self, job: ClipJob) -> ClipJob:
        self._execute(self._query().insert(job.model_dump(mode="json")))
        logger.info("Created job %s (status=%s)", job.id, job.status.value)
        return job

    def get(self, job_id: str) -> Optional[ClipJob]:
        response = self._execute(self._query().select("*").eq("id", job_id).limit(1))
        if not response.data:
            return None
        return ClipJob.model_validate(response.data[0])

    def update(self, job_id, fields, expected_status=None):
        job = self.get(job_id)
        if job is None:
            logger.error("Job %s not found for update", job_id)
            return None
        if expected_status is not None and job.status != expected_status:
            logger.info(
                "Skipped update of job %s: status is %s, expected %s",
                job_id, job.status.value, expected_status.value,
            )
            return None

        updated = apply_update(job, fields)
        columns = set(fields) | {"updated_at", "completed_at"}
        query = self._query().update(updated.model_dump(mode="json", include=columns)).eq("id", job_id)
        if expected_status is not None:
            # Conditional write: another instance may have finished the job
            query = query.eq("status", expected_status.value)
        response = self._execute(query)
        if not response.data:
            logger.info("Update of job %s lost a status race", job_id)
            return None
        logger.info("Updated job %s: status=%s", job_id, updated.status.value)
        return ClipJob.model_validate(response.data[0])

    def list_all(self) -> List[ClipJob]:
        response = self._execute(self._query().select("*").order("created_at", desc=True))
        return [ClipJob.model_validate(row) for row in response.data or []]

    def list_by_status(self, status: JobStatus) -> List[ClipJob]:
        response = self._execute(self._query().select("*").eq("status", status.value))
        return [ClipJob.model_validate(row) for row in response.data or []]

    def delete(self, job_id: str) -> bool:
        response = self._execute(self._query().delete().eq("id", job_id))
        deleted = bool(response.data)
        if deleted:
            logger.info("Deleted job %s", job_id)
        return deleted
