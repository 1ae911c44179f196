"""Advances processing clip jobs by polling their provider operations.

Each call to ``advance`` is one bounded step of the job state machine:

    processing --(poll, not done)--> processing (progress estimate)
    processing --(done, artifact stored)--> completed
    processing --(provider error / no artifact / download failure)--> failed
    processing --(poll failures past the timeout)--> failed

Every write is conditional on the job still being ``processing``, so a
terminal job is never re-entered even when two pollers race.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from clipgen.jobs.artifacts import build_result, store_clip
from clipgen.jobs.errors import (
    ArtifactDownloadError,
    ArtifactLocationMissing,
    ConfigurationError,
    PollTimeout,
    PollTransportError,
    ProviderTerminalError,
)
from clipgen.jobs.executor import run_blocking
from clipgen.jobs.locks import KeyedGuard
from clipgen.jobs.models import ClipJob, JobStatus, utcnow
from clipgen.jobs.store import JobStore
from clipgen.providers.base import AsyncProviderAdapter
from clipgen.providers.catalog import PROVIDER_DEFAULT_MODEL, ModelCatalog, catalog as default_catalog
from clipgen.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

DEFAULT_ASYNC_PROVIDER = "google"
START_PROGRESS = 10
MAX_POLLING_PROGRESS = 55
DOWNLOADING_PROGRESS = 60


class ClipJobProcessor:
    """Polls provider operations and records outcomes on the job."""

    def __init__(
        self,
        store: JobStore,
        storage: BlobStorage,
        adapters: Dict[str, AsyncProviderAdapter],
        guard: Optional[KeyedGuard] = None,
        catalog: ModelCatalog = default_catalog,
        timeout_minutes: float = 15.0,
        expected_generation_seconds: float = 120.0,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.storage = storage
        self.adapters = adapters
        self.guard = guard or KeyedGuard()
        self.catalog = catalog
        self.timeout_minutes = timeout_minutes
        self.expected_generation_seconds = expected_generation_seconds
        self.now = now

    def _adapter_for(self, job: ClipJob) -> AsyncProviderAdapter:
        provider = job.metadata.provider if job.metadata else DEFAULT_ASYNC_PROVIDER
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ConfigurationError(f"No polling adapter for provider {provider}")
        return adapter

    def check_configured(self, job: Optional[ClipJob] = None) -> None:
        """Raise ConfigurationError if the job's provider cannot be polled."""
        provider = job.metadata.provider if job and job.metadata else DEFAULT_ASYNC_PROVIDER
        adapter = self.adapters.get(provider)
        if adapter is None or not adapter.is_configured():
            env = adapter.credentials_env if adapter else provider
            raise ConfigurationError(f"{env} not configured")

    def _elapsed_seconds(self, job: ClipJob) -> float:
        return (self.now() - job.created_at).total_seconds()

    async def _update(self, job: ClipJob, fields: Dict[str, Any]) -> ClipJob:
        updated = await run_blocking(self.store.update, job.id, fields, expected_status=JobStatus.PROCESSING)
        if updated is None:
            # Another poller finished it first; report what is stored now
            return await run_blocking(self.store.get, job.id) or job
        return updated

    async def _fail(self, job: ClipJob, error: str) -> ClipJob:
        logger.warning("Job %s failed: %s", job.id, error)
        return await self._update(job, {"status": JobStatus.FAILED, "error": error})

    def _estimate_progress(self, job: ClipJob, elapsed: float) -> int:
        estimate = START_PROGRESS + (elapsed / self.expected_generation_seconds) * 50
        return max(job.progress, round(min(estimate, MAX_POLLING_PROGRESS)))

    async def advance(self, job: ClipJob) -> ClipJob:
        """Run one processing step for a job and return its latest state."""
        if job.is_terminal:
            return job

        with self.guard.hold(job.id) as acquired:
            if not acquired:
                logger.info("Job %s is already being processed, skipping", job.id)
                return job
            try:
                return await self._advance(job)
            except (ProviderTerminalError, ArtifactLocationMissing, PollTimeout) as e:
                return await self._fail(job, e.message)
            except Exception as e:
                logger.exception("Process error for %s", job.id)
                if self._elapsed_seconds(job) / 60 > self.timeout_minutes:
                    return await self._fail(job, str(e) or "Unknown error during processing")
                return job

    async def _advance(self, job: ClipJob) -> ClipJob:
        if not job.operation_id:
            return await self._fail(job, "No operation ID - job may not have started correctly")

        adapter = self._adapter_for(job)
        try:
            status = await adapter.get_operation(job.operation_id)
        except PollTransportError as e:
            logger.error("Poll error for %s (HTTP %s): %s", job.id, e.http_status, e)
            self._check_timeout(job)
            return job

        logger.info("Operation status for %s: done=%s", job.id, status.done)

        if not status.done:
            elapsed = self._elapsed_seconds(job)
            return await self._update(job, {
                "progress": self._estimate_progress(job, elapsed),
                "progress_message": f"Generating video... ({round(elapsed)}s)",
            })

        if status.error_message:
            raise ProviderTerminalError(status.error_message)

        video_uri = adapter.locate_artifact(status.payload)
        if not video_uri:
            raise ArtifactLocationMissing("Video generation completed but no video URI returned")

        job = await self._update(job, {
            "progress": max(job.progress, DOWNLOADING_PROGRESS),
            "progress_message": "Video generated, downloading...",
        })
        if job.is_terminal:
            return job

        try:
            data = await adapter.download_artifact(video_uri)
            stored = await run_blocking(store_clip, self.storage, job.input, data)
        except ArtifactDownloadError as e:
            return await self._fail(job, f"Failed to download video: {e.message}")
        except Exception as e:
            logger.exception("Saving video failed for %s", job.id)
            return await self._fail(job, f"Failed to download video: {e}")

        logger.info("Video saved for %s: %s", job.id, stored.url)
        duration_seconds, frame_rate = self._clip_timing(job)
        return await self._update(job, {
            "status": JobStatus.COMPLETED,
            "progress": 100,
            "progress_message": "Clip generation complete!",
            "result": build_result(stored, duration_seconds, frame_rate),
        })

    def _check_timeout(self, job: ClipJob) -> None:
        elapsed_minutes = self._elapsed_seconds(job) / 60
        if elapsed_minutes > self.timeout_minutes:
            raise PollTimeout(f"Generation timed out after {round(elapsed_minutes)} minutes")

    def _clip_timing(self, job: ClipJob):
        if job.metadata:
            spec = self.catalog.get(job.metadata.model)
            frame_rate = spec.frame_rate if spec else 24
            return job.metadata.duration_seconds, frame_rate
        # Restored from a backup: assume the default asynchronous model
        spec = self.catalog.get(PROVIDER_DEFAULT_MODEL[DEFAULT_ASYNC_PROVIDER])
        return spec.default_duration, spec.frame_rate

    async def advance_all(self) -> List[ClipJob]:
        """Advance every processing job concurrently."""
        jobs = await run_blocking(self.store.list_by_status, JobStatus.PROCESSING)
        logger.info("Processing %d jobs", len(jobs))

        async def safe_advance(job: ClipJob) -> ClipJob:
            try:
                return await self.advance(job)
            except Exception:
                logger.exception("Error processing %s", job.id)
                return job

        return list(await asyncio.gather(*(safe_advance(job) for job in jobs)))
