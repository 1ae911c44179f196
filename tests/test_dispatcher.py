# tests/test_dispatcher.py
import asyncio
import logging

import httpx
import pytest

from clipgen.jobs.backup import backup_path
from clipgen.jobs.errors import (
    AssetFetchError,
    ConfigurationError,
    QuotaExceeded,
    ValidationError,
)
from clipgen.jobs.models import ClipAction, ClipJob, JobStatus
from clipgen.jobs.processor import ClipJobProcessor
from clipgen.jobs.prompts import CHROMA_KEY_SUFFIX, DEFAULT_NEGATIVE_PROMPT
from clipgen.jobs.spending import SPENDING_DOCUMENT

from conftest import ASSET_URL, MP4_BYTES, PNG_BYTES, done_operation, make_job, read_json


def start_payload(**overrides):
    payload = {
        "entityId": "fish-1",
        "action": "swimIdle",
        "referenceAssetUrl": ASSET_URL,
        "description": "A small blue reef fish",
    }
    payload.update(overrides)
    return payload


def run_start(services, **overrides):
    return asyncio.run(services.dispatcher.start(start_payload(**overrides)))


def test_async_start_creates_processing_job(services, genai_client, storage):
    result = run_start(services)

    assert result.success
    assert result.status == JobStatus.PROCESSING
    assert not result.duplicate

    job = services.store.get(result.job_id)
    assert job.status == JobStatus.PROCESSING
    assert job.progress == 10
    assert job.progress_message == "Video generation started..."
    assert job.operation_id == "operations/op-1"
    assert job.metadata.model == "google/veo-3.1-generate-preview"
    assert job.metadata.duration_seconds == 8
    assert job.result is None and job.error is None

    backup = services.backup.read(result.job_id)
    assert backup.operation_id == "operations/op-1"
    assert backup.entity_id == "fish-1"
    assert backup.action == ClipAction.SWIM_IDLE

    assert read_json(storage, SPENDING_DOCUMENT)["currentDay"]["videoGenerations"] == 1


def test_async_start_sends_image_prompt_and_config(services, genai_client):
    run_start(services, duration=4, resolution="1080p", aspectRatio="9:16")

    call = genai_client.models.calls[0]
    assert call["model"] == "veo-3.1-generate-preview"
    assert call["prompt"].startswith("A small blue reef fish, Fish swimming slowly")
    assert call["prompt"].endswith(CHROMA_KEY_SUFFIX)
    assert call["image"].image_bytes == PNG_BYTES
    assert call["image"].mime_type == "image/png"
    config = call["config"]
    assert config.duration_seconds == 4
    assert config.resolution == "720p"  # 1080p needs 8s
    assert config.aspect_ratio == "9:16"
    assert config.negative_prompt == DEFAULT_NEGATIVE_PROMPT


def test_duplicate_returns_existing_job(services, genai_client):
    services.store.create(make_job(job_id="job_existing"))

    result = run_start(services)

    assert result.duplicate
    assert result.job_id == "job_existing"
    assert result.to_response()["duplicate"] is True
    assert genai_client.models.calls == []
    assert len(services.store.list_all()) == 1


def test_duplicate_ignores_other_actions_and_terminal_jobs(services, genai_client):
    services.store.create(make_job(job_id="job_bite", action=ClipAction.BITE))
    services.store.create(make_job(job_id="job_done", status=JobStatus.COMPLETED))

    result = run_start(services)

    assert not result.duplicate
    assert len(genai_client.models.calls) == 1


def test_quota_exceeded_creates_no_job(services, genai_client):
    for _ in range(10):
        services.spending.record_usage()

    with pytest.raises(QuotaExceeded) as exc_info:
        run_start(services)

    assert exc_info.value.remaining == 0
    assert exc_info.value.status_code == 429
    assert genai_client.models.calls == []
    assert services.store.list_all() == []


@pytest.mark.parametrize("overrides", [
    {"entityId": ""},
    {"action": None},
    {"referenceAssetUrl": None},
    {"action": "moonwalk"},
    {"action": ["bite"]},
    {"action": {"name": "bite"}},
    {"model": "acme/video-9000"},
])
def test_invalid_requests_rejected(services, overrides):
    with pytest.raises(ValidationError):
        run_start(services, **overrides)
    assert services.store.list_all() == []


@pytest.mark.parametrize("entity_id", ["../escape", "fish/1", "fish\\1", ".."])
def test_path_unsafe_entity_id_rejected_before_provider_call(services, genai_client, storage, entity_id):
    with pytest.raises(ValidationError) as exc_info:
        run_start(services, entityId=entity_id)

    assert exc_info.value.message == f"Invalid entityId: {entity_id}"
    assert genai_client.models.calls == []
    assert read_json(storage, SPENDING_DOCUMENT) is None
    assert services.store.list_all() == []


def test_missing_credentials_is_configuration_error(services, veo_adapter):
    veo_adapter.api_key = ""
    with pytest.raises(ConfigurationError) as exc_info:
        run_start(services)
    assert "GEMINI_API_KEY" in exc_info.value.message


def test_unreachable_asset_creates_no_job(services, provider_api, genai_client):
    provider_api.asset_status = 404

    with pytest.raises(AssetFetchError):
        run_start(services)

    assert genai_client.models.calls == []
    assert services.store.list_all() == []


def test_submission_failure_records_failed_job(services, genai_client, storage):
    genai_client.models.error = RuntimeError("quota exhausted upstream")

    result = run_start(services)

    assert not result.success
    assert result.to_response() == {"success": False, "jobId": result.job_id, "error": "quota exhausted upstream"}
    job = services.store.get(result.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "quota exhausted upstream"
    assert job.completed_at is not None
    assert storage.download(backup_path(result.job_id)) is None
    assert read_json(storage, SPENDING_DOCUMENT) is None


def test_missing_operation_name_records_failed_job(services, genai_client):
    genai_client.models.operation_name = None

    result = run_start(services)

    assert services.store.get(result.job_id).status == JobStatus.FAILED


def test_usage_recording_failure_does_not_abort(services, monkeypatch):
    def broken():
        raise OSError("ledger unavailable")

    monkeypatch.setattr(services.spending, "record_usage", broken)

    result = run_start(services)

    assert services.store.get(result.job_id).status == JobStatus.PROCESSING


def test_backup_failure_logs_critical_line_and_job_still_created(services, monkeypatch, caplog):
    class BrokenStorage:
        def put_json(self, path, payload):
            raise OSError("disk full")

    monkeypatch.setattr(services.backup, "_storage", BrokenStorage())

    with caplog.at_level(logging.INFO, logger="clipgen"):
        result = run_start(services)

    assert services.store.get(result.job_id).status == JobStatus.PROCESSING
    critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert critical
    assert "operationId=operations/op-1" in critical[0].getMessage()
    assert f"jobId={result.job_id}" in critical[0].getMessage()


def test_crash_after_backup_leaves_recoverable_operation(services, storage, provider_api, monkeypatch):
    def crash(job):
        raise RuntimeError("process died")

    monkeypatch.setattr(services.store, "create", crash)
    with pytest.raises(RuntimeError):
        run_start(services)
    monkeypatch.undo()

    assert services.store.list_all() == []
    backups = services.backup.list_backups()
    assert len(backups) == 1
    assert backups[0]["operationId"] == "operations/op-1"

    restored = ClipJob.from_backup(services.backup.read(backups[0]["jobId"]))
    assert restored.status == JobStatus.PROCESSING
    assert restored.operation_id == "operations/op-1"
    services.store.create(restored)

    provider_api.script_operation("operations/op-1", done_operation())
    processor = ClipJobProcessor(services.store, storage, {"google": services.adapters["google"]})
    job = asyncio.run(processor.advance(restored))

    assert job.status == JobStatus.COMPLETED
    assert job.result.duration_ms == 8000


def test_sync_start_completes_without_processing_state(services, fal_client, storage):
    result = run_start(services, model="fal/wan-2.1", duration=5, aspectRatio="16:9")

    assert result.success
    assert result.status == JobStatus.COMPLETED
    job = services.store.get(result.job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.operation_id is None
    assert job.result.video_url == "https://cdn.test/clips/fish-1/swimIdle.mp4"
    assert job.result.duration_ms == 5000
    assert job.result.frame_rate == 16
    assert storage.download("clips/fish-1/swimIdle.mp4") == MP4_BYTES
    assert storage.download(backup_path(result.job_id)) is None

    call = fal_client.calls[0]
    assert call["application"] == "fal-ai/wan-i2v"
    assert call["arguments"]["num_frames"] == 81
    assert call["arguments"]["frames_per_second"] == 16
    assert call["arguments"]["image_url"] == ASSET_URL
    assert call["arguments"]["negative_prompt"] == DEFAULT_NEGATIVE_PROMPT


def test_sync_start_by_provider_uses_provider_default_model(services, fal_client):
    run_start(services, provider="fal")
    assert fal_client.calls[0]["application"] == "fal-ai/wan-i2v"


def test_sync_grok_omits_negative_prompt(services, fal_client):
    result = run_start(services, model="fal/grok-imagine", negativePrompt="ugly")

    arguments = fal_client.calls[0]["arguments"]
    assert "negative_prompt" not in arguments
    assert arguments["duration"] == 6
    assert services.store.get(result.job_id).metadata.negative_prompt_applied is False


def test_sync_kling_sends_string_duration(services, fal_client):
    run_start(services, model="fal/kling-2.1-standard", duration=9)

    arguments = fal_client.calls[0]["arguments"]
    assert arguments["duration"] == "10"
    assert arguments["cfg_scale"] == 0.5
    assert "aspect_ratio" not in arguments


def test_sync_without_video_url_fails(services, fal_client):
    fal_client.result = {"video": None}

    result = run_start(services, model="fal/wan-2.1")

    job = services.store.get(result.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "No video URL returned from provider"


def test_sync_download_failure_fails(services, provider_api):
    provider_api.video_handler = lambda request: httpx.Response(403)

    result = run_start(services, model="fal/wan-2.1")

    job = services.store.get(result.job_id)
    assert job.status == JobStatus.FAILED
    assert job.error.startswith("Failed to download video")


def test_sync_adapter_exception_fails(services, fal_client):
    fal_client.error = RuntimeError("fal is down")

    result = run_start(services, model="fal/kling-2.1-pro")

    assert not result.success
    assert services.store.get(result.job_id).error == "fal is down"
