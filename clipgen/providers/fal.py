"""fal.ai image-to-video adapter (single blocking call)."""

import logging
from typing import Any, Dict, Optional

import fal_client
import httpx

from clipgen.jobs.errors import ConfigurationError
from clipgen.providers.base import (
    ASPECT_RATIO_FROM_IMAGE,
    ProviderAdapter,
    ProviderRequest,
    SubmissionMode,
    SubmissionResult,
)
from clipgen.providers.download import download_with_fallbacks

logger = logging.getLogger(__name__)

WAN_FPS = 16
WAN_MIN_FRAMES = 81
WAN_MAX_FRAMES = 100
KLING_CFG_SCALE = 0.5


def wan_arguments(request: ProviderRequest) -> Dict[str, Any]:
    params = request.params
    num_frames = min(WAN_MAX_FRAMES, max(WAN_MIN_FRAMES, params.duration_seconds * WAN_FPS))
    arguments = {
        "prompt": request.prompt,
        "image_url": request.asset.url,
        "aspect_ratio": params.aspect_ratio,
        "resolution": params.resolution,
        "num_frames": num_frames,
        "frames_per_second": WAN_FPS,
    }
    if request.negative_prompt:
        arguments["negative_prompt"] = request.negative_prompt
    return arguments


def kling_arguments(request: ProviderRequest) -> Dict[str, Any]:
    arguments = {
        "prompt": request.prompt,
        "image_url": request.asset.url,
        "duration": "10" if request.params.duration_seconds >= 10 else "5",
        "cfg_scale": KLING_CFG_SCALE,
    }
    if request.negative_prompt:
        arguments["negative_prompt"] = request.negative_prompt
    return arguments


def grok_arguments(request: ProviderRequest) -> Dict[str, Any]:
    params = request.params
    return {
        "prompt": request.prompt,
        "image_url": request.asset.url,
        "duration": params.duration_seconds,
        "aspect_ratio": params.aspect_ratio or ASPECT_RATIO_FROM_IMAGE,
        "resolution": params.resolution,
    }


ARGUMENT_BUILDERS = {
    "fal/wan-2.1": wan_arguments,
    "fal/kling-2.1-standard": kling_arguments,
    "fal/kling-2.1-pro": kling_arguments,
    "fal/grok-imagine": grok_arguments,
}


class FalVideoAdapter(ProviderAdapter):
    provider = "fal"
    mode = SubmissionMode.SYNC
    credentials_env = "FAL_KEY"

    def __init__(
        self,
        api_key: Optional[str],
        http: httpx.AsyncClient,
        client: Optional[fal_client.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.http = http
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> fal_client.AsyncClient:
        if self._client is None:
            self._client = fal_client.AsyncClient(key=self.api_key)
        return self._client

    def build_arguments(self, request: ProviderRequest) -> Dict[str, Any]:
        builder = ARGUMENT_BUILDERS.get(request.model.key)
        if builder is None:
            raise ConfigurationError(f"No fal argument mapping for model {request.model.key}")
        return builder(request)

    async def submit(self, request: ProviderRequest) -> SubmissionResult:
        arguments = self.build_arguments(request)
        logger.info(
            "Calling fal.ai %s: duration=%ss aspect=%s",
            request.model.provider_model_id,
            request.params.duration_seconds,
            request.params.aspect_ratio,
        )
        result = await self.client.subscribe(
            request.model.provider_model_id,
            arguments=arguments,
            with_logs=True,
        )

        if not isinstance(result, dict):
            result = {}
        video = result.get("video")
        video_url = video.get("url") if isinstance(video, dict) else None
        if not video_url:
            logger.warning("fal.ai returned no video URL for %s", request.model.key)
        return SubmissionResult(video_url=video_url, request_id=result.get("request_id"))

    async def download_artifact(self, url: str) -> bytes:
        return await download_with_fallbacks(self.http, url)
