"""Google Veo image-to-video adapter (long-running operations)."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from google import genai
from google.genai import types
from google.genai.errors import APIError

from clipgen.jobs.errors import PollTransportError, ProviderSubmissionError
from clipgen.providers.base import (
    AsyncProviderAdapter,
    OperationStatus,
    ProviderRequest,
    SubmissionResult,
)
from clipgen.providers.download import DownloadAttempt, download_with_fallbacks

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


def _dig(payload: Any, *path) -> Any:
    node = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or len(node) <= step:
                return None
            node = node[step]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(step)
        if node is None:
            return None
    return node


# Locations the finished operation has been observed to carry the video URI,
# tried in order.
ARTIFACT_EXTRACTORS: Tuple[Tuple[str, Callable[[Dict[str, Any]], Any]], ...] = (
    ("generateVideoResponse",
     lambda op: _dig(op, "response", "generateVideoResponse", "generatedSamples", 0, "video", "uri")),
    ("generatedVideos",
     lambda op: _dig(op, "response", "generatedVideos", 0, "video", "uri")),
    ("result.videos",
     lambda op: _dig(op, "result", "videos", 0, "uri")),
    ("response.videos",
     lambda op: _dig(op, "response", "videos", 0, "uri")),
)


def download_attempts(api_key: str) -> Tuple[DownloadAttempt, ...]:
    return (
        DownloadAttempt(name="key param", params={"key": api_key}),
        DownloadAttempt(name="alt=media", params={"alt": "media", "key": api_key}),
        DownloadAttempt(name="api key header", headers={"x-goog-api-key": api_key}),
    )


class VeoVideoAdapter(AsyncProviderAdapter):
    provider = "google"
    credentials_env = "GEMINI_API_KEY"

    def __init__(
        self,
        api_key: Optional[str],
        http: httpx.AsyncClient,
        api_base: str = DEFAULT_API_BASE,
        client: Optional[genai.Client] = None,
    ):
        self.api_key = api_key
        self.http = http
        self.api_base = api_base.rstrip("/")
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def submit(self, request: ProviderRequest) -> SubmissionResult:
        params = request.params
        config = types.GenerateVideosConfig(
            duration_seconds=params.duration_seconds,
            aspect_ratio=params.aspect_ratio,
            resolution=params.resolution,
            number_of_videos=1,
        )
        if request.negative_prompt and request.model.accepts_negative_prompt:
            config.negative_prompt = request.negative_prompt

        logger.info(
            "Submitting Veo generation: model=%s duration=%ss resolution=%s aspect=%s",
            request.model.provider_model_id, params.duration_seconds,
            params.resolution, params.aspect_ratio,
        )
        try:
            operation = await self.client.aio.models.generate_videos(
                model=request.model.provider_model_id,
                prompt=request.prompt,
                image=types.Image(image_bytes=request.asset.data, mime_type=request.asset.mime_type),
                config=config,
            )
        except APIError as e:
            raise ProviderSubmissionError(f"Veo rejected the request: {e.message or e}") from e

        if not getattr(operation, "name", None):
            raise ProviderSubmissionError("No operation ID returned from Veo")
        logger.info("Veo operation started: %s", operation.name)
        return SubmissionResult(operation_id=operation.name)

    async def get_operation(self, operation_id: str) -> OperationStatus:
        url = f"{self.api_base}/{operation_id}"
        try:
            response = await self.http.get(url, params={"key": self.api_key or ""})
        except httpx.HTTPError as e:
            raise PollTransportError(f"Operation status request failed: {e}") from e

        if not response.is_success:
            raise PollTransportError(
                f"Operation status check failed: {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise PollTransportError("Operation status response was not JSON") from e

        error = payload.get("error")
        error_message = None
        if error:
            error_message = error.get("message") if isinstance(error, dict) else str(error)
            error_message = error_message or "Video generation failed"
        return OperationStatus(
            done=bool(payload.get("done")),
            error_message=error_message,
            payload=payload,
        )

    def locate_artifact(self, payload: Dict[str, Any]) -> Optional[str]:
        for name, extract in ARTIFACT_EXTRACTORS:
            uri = extract(payload)
            if isinstance(uri, str) and uri:
                logger.debug("Found video URI via %s", name)
                return uri
        logger.warning("No video URI in operation payload, keys: %s", list(payload.keys()))
        return None

    async def download_artifact(self, url: str) -> bytes:
        return await download_with_fallbacks(self.http, url, download_attempts(self.api_key or ""))
