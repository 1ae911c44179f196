"""Persisting generated clips to blob storage."""

from clipgen.jobs.models import ClipResult, JobInput
from clipgen.storage.blob_storage import BlobStorage, StoredObject

VIDEO_CONTENT_TYPE = "video/mp4"


def clip_path(job_input: JobInput) -> str:
    return f"clips/{job_input.entity_id}/{job_input.action.value}.mp4"


def store_clip(storage: BlobStorage, job_input: JobInput, data: bytes) -> StoredObject:
    return storage.upload(clip_path(job_input), data, VIDEO_CONTENT_TYPE)


def build_result(stored: StoredObject, duration_seconds: int, frame_rate: int) -> ClipResult:
    return ClipResult(
        video_url=stored.url,
        duration_ms=duration_seconds * 1000,
        frame_rate=frame_rate,
    )
