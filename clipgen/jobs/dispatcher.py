"""Clip job dispatcher: validates a start request and hands it to a provider.

Ordering on the asynchronous path is write-ahead: the operation handle is
backed up to blob storage before the job record exists, so a crash between
the two still leaves a recoverable trace.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from clipgen.io.asset_fetch import fetch_reference_asset
from clipgen.jobs.artifacts import build_result, store_clip
from clipgen.jobs.backup import OperationBackupWriter
from clipgen.jobs.duplicates import reject_duplicate
from clipgen.jobs.errors import (
    ConfigurationError,
    DuplicateRequest,
    ProviderSubmissionError,
    QuotaExceeded,
    ValidationError,
)
from clipgen.jobs.executor import run_blocking
from clipgen.jobs.models import (
    ClipAction,
    ClipGenerationRequest,
    ClipJob,
    GenerationMetadata,
    JobInput,
    JobStatus,
    generate_job_id,
    utcnow,
)
from clipgen.jobs.prompts import DEFAULT_NEGATIVE_PROMPT, build_clip_prompt
from clipgen.jobs.spending import SpendingGate
from clipgen.jobs.store import JobStore
from clipgen.providers.base import ProviderAdapter, ProviderRequest, SubmissionMode
from clipgen.providers.catalog import ModelCatalog, catalog as default_catalog
from clipgen.providers.normalize import normalize_params
from clipgen.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("entityId", "action", "referenceAssetUrl")
STARTED_MESSAGE = "Clip generation job started. Poll /api/v1/jobs?id=JOB_ID for status."
DUPLICATE_MESSAGE = "Job already in progress for this entity/action. Returning existing job."
UNSAFE_PATH_PARTS = ("/", "\\", "..")


@dataclass
class StartResult:
    job_id: str
    status: JobStatus
    message: str = ""
    duplicate: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != JobStatus.FAILED

    def to_response(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "jobId": self.job_id, "error": self.error}
        body = {
            "success": True,
            "jobId": self.job_id,
            "status": self.status.value,
            "message": self.message,
        }
        if self.duplicate:
            body["duplicate"] = True
        return body


def parse_request(payload: Union[ClipGenerationRequest, Mapping[str, Any]]) -> ClipGenerationRequest:
    """Validate a raw start payload (camelCase or snake_case keys)."""
    if isinstance(payload, ClipGenerationRequest):
        return _check_entity_id(payload)

    def present(camel: str) -> bool:
        snake = "".join("_" + c.lower() if c.isupper() else c for c in camel)
        return bool(payload.get(camel) or payload.get(snake))

    if not all(present(name) for name in REQUIRED_FIELDS):
        raise ValidationError("entityId, action, and referenceAssetUrl are required")

    action = payload.get("action")
    if not isinstance(action, str) or action not in {a.value for a in ClipAction}:
        raise ValidationError(f"Invalid action: {action}")

    try:
        request = ClipGenerationRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid request: {e.errors()[0].get('msg', e)}") from e

    return _check_entity_id(request)


def _check_entity_id(request: ClipGenerationRequest) -> ClipGenerationRequest:
    # entityId becomes a storage path segment
    if any(part in request.entity_id for part in UNSAFE_PATH_PARTS):
        raise ValidationError(f"Invalid entityId: {request.entity_id}")
    return request


class ClipJobDispatcher:
    """Starts clip generation jobs."""

    def __init__(
        self,
        store: JobStore,
        storage: BlobStorage,
        spending: SpendingGate,
        backup: OperationBackupWriter,
        adapters: Dict[str, ProviderAdapter],
        http: httpx.AsyncClient,
        catalog: ModelCatalog = default_catalog,
        default_model: Optional[str] = None,
    ):
        self.store = store
        self.storage = storage
        self.spending = spending
        self.backup = backup
        self.adapters = adapters
        self.http = http
        self.catalog = catalog
        self.default_model = default_model

    def adapter_for(self, provider: str) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None:
            raise ConfigurationError(f"No adapter registered for provider {provider}")
        return adapter

    async def start(self, payload: Union[ClipGenerationRequest, Mapping[str, Any]]) -> StartResult:
        """Start a job, or return the one already running for this entity/action.

        Raises ClipJobError subclasses for failures before a job exists.
        """
        request = parse_request(payload)
        spec = self.catalog.resolve(request.model, request.provider, self.default_model)
        params = normalize_params(spec, request.duration, request.resolution, request.aspect_ratio)

        adapter = self.adapter_for(spec.provider)
        if not adapter.is_configured():
            raise ConfigurationError(f"{adapter.credentials_env} not configured")

        try:
            await run_blocking(reject_duplicate, self.store, request.entity_id, request.action)
        except DuplicateRequest as e:
            logger.info(
                "Duplicate job detected for %s/%s, returning existing job %s",
                request.entity_id, request.action.value, e.job_id,
            )
            return StartResult(
                job_id=e.job_id,
                status=JobStatus.PROCESSING,
                message=DUPLICATE_MESSAGE,
                duplicate=True,
            )

        check = await run_blocking(self.spending.can_start)
        if not check.allowed:
            logger.warning("Daily spending limit reached: %s", check.reason)
            raise QuotaExceeded(check.reason, remaining=check.remaining)
        logger.info("Spending check passed. %d videos remaining today.", check.remaining)

        prompt = build_clip_prompt(request.action, request.description)
        negative_prompt = None
        if spec.accepts_negative_prompt:
            negative_prompt = request.negative_prompt or DEFAULT_NEGATIVE_PROMPT

        job_id = generate_job_id()
        job_input = request.job_input()
        logger.info("Starting job %s for %s/%s on %s", job_id, request.entity_id, request.action.value, spec.key)
        logger.debug("Prompt: %s", prompt[:100])

        asset = await fetch_reference_asset(self.http, request.reference_asset_url)

        metadata = GenerationMetadata(
            provider=spec.provider,
            model=spec.key,
            provider_model_id=spec.provider_model_id,
            duration_seconds=params.duration_seconds,
            resolution=params.resolution,
            aspect_ratio=params.aspect_ratio,
            negative_prompt_applied=negative_prompt is not None,
        )
        provider_request = ProviderRequest(
            model=spec,
            params=params,
            prompt=prompt,
            asset=asset,
            negative_prompt=negative_prompt,
        )

        if adapter.mode == SubmissionMode.ASYNC:
            return await self._start_async(adapter, provider_request, job_id, job_input, metadata)
        return await self._start_sync(adapter, provider_request, job_id, job_input, metadata)

    async def _start_async(
        self,
        adapter: ProviderAdapter,
        provider_request: ProviderRequest,
        job_id: str,
        job_input: JobInput,
        metadata: GenerationMetadata,
    ) -> StartResult:
        try:
            submission = await adapter.submit(provider_request)
            if not submission.operation_id:
                raise ProviderSubmissionError("Provider did not return an operation name")
        except Exception as e:
            logger.exception("Video generation failed to start for %s", job_id)
            return await self._record_failure(job_id, job_input, metadata, str(e) or "Failed to start video generation")

        operation_id = submission.operation_id
        logger.info("Job %s received operation %s", job_id, operation_id)

        # Backup first, then job record
        await run_blocking(
            self.backup.write,
            operation_id=operation_id,
            job_id=job_id,
            entity_id=job_input.entity_id,
            action=job_input.action.value,
            reference_asset_url=job_input.reference_asset_url,
        )
        await self._record_usage(job_id)

        await run_blocking(self.store.create, ClipJob(
            id=job_id,
            status=JobStatus.PROCESSING,
            progress=10,
            progress_message="Video generation started...",
            input=job_input,
            operation_id=operation_id,
            metadata=metadata,
        ))
        logger.info("Job %s created with operation: %s", job_id, operation_id)
        return StartResult(job_id=job_id, status=JobStatus.PROCESSING, message=STARTED_MESSAGE)

    async def _start_sync(
        self,
        adapter: ProviderAdapter,
        provider_request: ProviderRequest,
        job_id: str,
        job_input: JobInput,
        metadata: GenerationMetadata,
    ) -> StartResult:
        try:
            submission = await adapter.submit(provider_request)
        except Exception as e:
            logger.exception("Synchronous generation failed for %s", job_id)
            return await self._record_failure(job_id, job_input, metadata, str(e) or "Video generation failed")

        await self._record_usage(job_id)

        if not submission.video_url:
            return await self._record_failure(job_id, job_input, metadata, "No video URL returned from provider")

        try:
            data = await adapter.download_artifact(submission.video_url)
            stored = await run_blocking(store_clip, self.storage, job_input, data)
        except Exception as e:
            logger.exception("Failed to save generated video for %s", job_id)
            return await self._record_failure(job_id, job_input, metadata, f"Failed to download video: {e}")

        result = build_result(stored, metadata.duration_seconds, provider_request.model.frame_rate)
        await run_blocking(self.store.create, ClipJob(
            id=job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            progress_message="Clip generation complete!",
            input=job_input,
            metadata=metadata,
            result=result,
            completed_at=utcnow(),
        ))
        logger.info("Job %s completed synchronously (request %s): %s", job_id, submission.request_id, stored.url)
        return StartResult(job_id=job_id, status=JobStatus.COMPLETED, message="Clip generation complete!")

    async def _record_usage(self, job_id: str) -> None:
        try:
            await run_blocking(self.spending.record_usage)
        except Exception:
            logger.exception("Failed to record spending for job %s", job_id)

    async def _record_failure(
        self,
        job_id: str,
        job_input: JobInput,
        metadata: GenerationMetadata,
        message: str,
    ) -> StartResult:
        await run_blocking(self.store.create, ClipJob(
            id=job_id,
            status=JobStatus.FAILED,
            progress=0,
            progress_message="Video generation failed",
            input=job_input,
            metadata=metadata,
            error=message,
            completed_at=utcnow(),
        ))
        return StartResult(job_id=job_id, status=JobStatus.FAILED, error=message)
