"""Catalog of supported video models and provider resolution."""

from typing import Dict, List, Optional

from clipgen.jobs.errors import ValidationError
from clipgen.providers.base import SubmissionMode, VideoModelSpec

# Resolution used when a request asks for one the model does not offer
PROVIDER_DEFAULT_RESOLUTION: Dict[str, str] = {
    "google": "720p",
    "fal": "720p",
}

PROVIDER_DEFAULT_MODEL: Dict[str, str] = {
    "google": "google/veo-3.1-generate-preview",
    "fal": "fal/wan-2.1",
}

_VEO_COMMON = dict(
    provider="google",
    mode=SubmissionMode.ASYNC,
    durations=(4, 6, 8),
    default_duration=8,
    resolutions=("720p", "1080p"),
    aspect_ratios=("16:9", "9:16"),
    default_aspect_ratio="16:9",
    accepts_negative_prompt=True,
    frame_rate=24,
    top_resolution_requires_max_duration=True,
)

_KLING_COMMON = dict(
    provider="fal",
    mode=SubmissionMode.SYNC,
    durations=(5, 10),
    default_duration=5,
    accepts_negative_prompt=True,
    frame_rate=24,
)

DEFAULT_MODELS: List[VideoModelSpec] = [
    VideoModelSpec(
        key="google/veo-3.1-generate-preview",
        name="Veo 3.1",
        provider_model_id="veo-3.1-generate-preview",
        cost_per_second=0.40,
        **_VEO_COMMON,
    ),
    VideoModelSpec(
        key="google/veo-3.1-fast-generate-preview",
        name="Veo 3.1 Fast",
        provider_model_id="veo-3.1-fast-generate-preview",
        cost_per_second=0.15,
        **_VEO_COMMON,
    ),
    VideoModelSpec(
        key="fal/wan-2.1",
        name="Wan 2.1",
        provider="fal",
        provider_model_id="fal-ai/wan-i2v",
        mode=SubmissionMode.SYNC,
        durations=(5, 6),  # 81-100 frames at 16 fps
        default_duration=5,
        resolutions=("480p", "720p"),
        aspect_ratios=("auto", "16:9", "9:16", "1:1"),
        default_aspect_ratio="1:1",
        frame_rate=16,
        cost_per_second=0.05,
    ),
    VideoModelSpec(
        key="fal/kling-2.1-standard",
        name="Kling 2.1 Standard",
        provider_model_id="fal-ai/kling-video/v2.1/standard/image-to-video",
        cost_per_second=0.07,
        **_KLING_COMMON,
    ),
    VideoModelSpec(
        key="fal/kling-2.1-pro",
        name="Kling 2.1 Pro",
        provider_model_id="fal-ai/kling-video/v2.1/pro/image-to-video",
        cost_per_second=0.115,
        **_KLING_COMMON,
    ),
    VideoModelSpec(
        key="fal/grok-imagine",
        name="Grok Imagine Video",
        provider="fal",
        provider_model_id="xai/grok-imagine-video/image-to-video",
        mode=SubmissionMode.SYNC,
        durations=(6,),
        default_duration=6,
        resolutions=("480p", "720p"),
        aspect_ratios=("auto", "16:9", "4:3", "3:2", "1:1", "2:3", "3:4", "9:16"),
        default_aspect_ratio="auto",
        accepts_negative_prompt=False,
        cost_per_second=0.05,
    ),
]


def provider_prefix(model_key: str) -> str:
    return model_key.split("/", 1)[0]


class ModelCatalog:
    """Looks up video models by key and resolves requests to one model."""

    def __init__(self, models: Optional[List[VideoModelSpec]] = None):
        self._models: Dict[str, VideoModelSpec] = {}
        for spec in models if models is not None else DEFAULT_MODELS:
            self.register(spec)

    def register(self, spec: VideoModelSpec) -> None:
        if provider_prefix(spec.key) != spec.provider:
            raise ValueError(f"Model key '{spec.key}' is not namespaced by provider '{spec.provider}'")
        self._models[spec.key] = spec

    def get(self, key: str) -> Optional[VideoModelSpec]:
        return self._models.get(key)

    def list_models(self, provider: Optional[str] = None) -> List[VideoModelSpec]:
        specs = list(self._models.values())
        if provider:
            specs = [s for s in specs if s.provider == provider]
        return specs

    def resolve(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        default_model: Optional[str] = None,
    ) -> VideoModelSpec:
        """Pick the model for a request: explicit model, then the provider's
        default model, then the service default."""
        if model:
            spec = self._models.get(model)
            if spec is None:
                raise ValidationError(
                    f"Invalid model: {model}. Valid options: {', '.join(self._models)}"
                )
            if provider and provider != spec.provider:
                raise ValidationError(f"Model {model} is not offered by provider {provider}")
            return spec

        if provider:
            key = PROVIDER_DEFAULT_MODEL.get(provider)
            if key is None or key not in self._models:
                raise ValidationError(f"Invalid provider: {provider}")
            return self._models[key]

        key = default_model or PROVIDER_DEFAULT_MODEL["google"]
        spec = self._models.get(key)
        if spec is None:
            raise ValidationError(f"Default model {key} is not in the catalog")
        return spec


# Global catalog instance
catalog = ModelCatalog()
