"""Coerce requested generation parameters onto what a model accepts."""

import logging
from typing import Optional, Sequence

from clipgen.providers.base import ASPECT_RATIO_FROM_IMAGE, NormalizedParams, VideoModelSpec
from clipgen.providers.catalog import PROVIDER_DEFAULT_RESOLUTION

logger = logging.getLogger(__name__)

FALLBACK_RESOLUTION = "720p"


def nearest_duration(allowed: Sequence[int], requested: int) -> int:
    """Closest allowed duration. Ties go to the earlier table entry."""
    best = allowed[0]
    for value in allowed[1:]:
        if abs(value - requested) < abs(best - requested):
            best = value
    return best


def normalize_params(
    spec: VideoModelSpec,
    duration: Optional[int] = None,
    resolution: Optional[str] = None,
    aspect_ratio: Optional[str] = None,
) -> NormalizedParams:
    """Map requested duration, resolution and aspect ratio onto the model's
    allowed values. Never raises; deviations are listed in ``adjustments``."""
    adjustments = []

    # Duration
    if duration is None:
        final_duration = spec.default_duration
    elif duration in spec.durations:
        final_duration = duration
    else:
        final_duration = nearest_duration(spec.durations, duration)
        adjustments.append(f"duration {duration}s -> {final_duration}s")

    # Resolution
    provider_default = PROVIDER_DEFAULT_RESOLUTION.get(spec.provider, FALLBACK_RESOLUTION)
    if resolution and resolution in spec.resolutions:
        final_resolution = resolution
    else:
        final_resolution = provider_default
        if resolution and resolution != final_resolution:
            adjustments.append(f"resolution {resolution} -> {final_resolution}")

    if (
        spec.top_resolution_requires_max_duration
        and len(spec.resolutions) > 1
        and final_resolution == spec.resolutions[-1]
        and final_duration != max(spec.durations)
    ):
        downgraded = spec.resolutions[-2]
        adjustments.append(
            f"resolution {final_resolution} -> {downgraded} "
            f"({final_resolution} requires {max(spec.durations)}s)"
        )
        final_resolution = downgraded

    # Aspect ratio
    if not spec.aspect_ratios:
        final_aspect = ASPECT_RATIO_FROM_IMAGE
    elif aspect_ratio in spec.aspect_ratios:
        final_aspect = aspect_ratio
    else:
        final_aspect = spec.default_aspect_ratio
        if aspect_ratio and aspect_ratio != final_aspect:
            adjustments.append(f"aspect ratio {aspect_ratio} -> {final_aspect}")

    if adjustments:
        logger.info("Adjusted parameters for %s: %s", spec.key, "; ".join(adjustments))

    return NormalizedParams(
        duration_seconds=final_duration,
        resolution=final_resolution,
        aspect_ratio=final_aspect,
        adjustments=adjustments,
    )
