# tests/conftest.py
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from clipgen.config import Settings
from clipgen.jobs.models import ClipAction, ClipJob, GenerationMetadata, JobInput, JobStatus
from clipgen.jobs.store import BlobJobStore
from clipgen.providers.fal import FalVideoAdapter
from clipgen.providers.veo import VeoVideoAdapter
from clipgen.services import build_services
from clipgen.storage.blob_storage import LocalBlobStorage

API_BASE = "https://veo.test/v1beta"
ASSET_URL = "https://assets.test/sprite.png"
VIDEO_URI = "https://files.test/v1beta/files/abc:download"
FAL_VIDEO_URL = "https://fal.test/output/video.mp4"
PNG_BYTES = b"\x89PNG\r\n\x1a\nsprite"
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42video"

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeProviderApi:
    """Scriptable stand-in for the HTTP endpoints the service talks to."""

    def __init__(self):
        self.operations: Dict[str, List[Any]] = {}
        self.video_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.requests: List[httpx.Request] = []
        self.asset_status = 200

    def script_operation(self, name: str, *responses) -> None:
        """Each poll pops the next response; the last one repeats."""
        self.operations[name] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url.startswith(ASSET_URL):
            if self.asset_status != 200:
                return httpx.Response(self.asset_status)
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

        if url.startswith(API_BASE + "/operations/"):
            name = request.url.path.split("/v1beta/", 1)[1]
            script = self.operations.get(name)
            if not script:
                return httpx.Response(404, json={"error": {"message": "not found"}})
            response = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(response, Exception):
                raise response
            if isinstance(response, int):
                return httpx.Response(response, text="upstream error")
            return httpx.Response(200, json=response)

        if url.startswith(VIDEO_URI) or url.startswith(FAL_VIDEO_URL):
            if self.video_handler is not None:
                return self.video_handler(request)
            return httpx.Response(200, content=MP4_BYTES)

        return httpx.Response(404)

    def requests_to(self, prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(prefix)]


class FakeGenaiModels:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.operation_name: Optional[str] = "operations/op-1"
        self.error: Optional[Exception] = None

    async def generate_videos(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(name=self.operation_name)


class FakeGenaiClient:
    def __init__(self):
        self.models = FakeGenaiModels()
        self.aio = SimpleNamespace(models=self.models)


class FakeFalClient:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.result: Any = {"video": {"url": FAL_VIDEO_URL}}
        self.error: Optional[Exception] = None

    async def subscribe(self, application, arguments=None, with_logs=False):
        self.calls.append({"application": application, "arguments": arguments})
        if self.error is not None:
            raise self.error
        return self.result


def done_operation(uri: str = VIDEO_URI) -> dict:
    return {
        "name": "operations/op-1",
        "done": True,
        "response": {
            "generateVideoResponse": {"generatedSamples": [{"video": {"uri": uri}}]},
        },
    }


def make_job(
    job_id: str = "job_1",
    entity_id: str = "fish-1",
    action: ClipAction = ClipAction.SWIM_IDLE,
    status: JobStatus = JobStatus.PROCESSING,
    operation_id: Optional[str] = "operations/op-1",
    created_at: datetime = T0,
    progress: int = 10,
    model: str = "google/veo-3.1-generate-preview",
) -> ClipJob:
    provider = model.split("/", 1)[0]
    return ClipJob(
        id=job_id,
        status=status,
        progress=progress,
        progress_message="Video generation started...",
        input=JobInput(entity_id=entity_id, action=action, reference_asset_url=ASSET_URL),
        operation_id=operation_id,
        metadata=GenerationMetadata(
            provider=provider,
            model=model,
            provider_model_id=model.split("/", 1)[1],
            duration_seconds=8,
            resolution="720p",
            aspect_ratio="16:9",
        ),
        created_at=created_at,
        updated_at=created_at,
    )


@pytest.fixture
def provider_api():
    return FakeProviderApi()


@pytest.fixture
def http(provider_api):
    return httpx.AsyncClient(transport=httpx.MockTransport(provider_api.handler))


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "blobs"), public_base_url="https://cdn.test")


@pytest.fixture
def store(storage):
    return BlobJobStore(storage)


@pytest.fixture
def genai_client():
    return FakeGenaiClient()


@pytest.fixture
def fal_client():
    return FakeFalClient()


@pytest.fixture
def veo_adapter(http, genai_client):
    return VeoVideoAdapter("test-key", http, api_base=API_BASE, client=genai_client)


@pytest.fixture
def fal_adapter(http, fal_client):
    return FalVideoAdapter("fal-test", http, client=fal_client)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        gemini_api_base=API_BASE,
        fal_key="fal-test",
        storage_backend="local",
        local_storage_dir=str(tmp_path / "blobs"),
        public_asset_base_url="https://cdn.test",
        job_store_backend="blob",
        daily_video_limit=10,
        environment="development",
    )


@pytest.fixture
def services(settings, http, storage, veo_adapter, fal_adapter):
    return build_services(
        settings,
        http=http,
        storage=storage,
        adapters={"google": veo_adapter, "fal": fal_adapter},
    )


def read_json(storage, path: str):
    data = storage.download(path)
    return json.loads(data) if data is not None else None
