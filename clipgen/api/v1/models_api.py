"""Models API: list catalog video models."""

from typing import Optional

from fastapi import APIRouter

from clipgen.providers.catalog import catalog

router = APIRouter()


@router.get("/models")
async def list_models(provider: Optional[str] = None):
    """List supported video models with their allowed parameters."""
    specs = catalog.list_models(provider=provider)
    return {
        "models": [
            {
                "model": s.key,
                "name": s.name,
                "provider": s.provider,
                "mode": s.mode.value,
                "durations": list(s.durations),
                "defaultDuration": s.default_duration,
                "resolutions": list(s.resolutions),
                "aspectRatios": list(s.aspect_ratios),
                "defaultAspectRatio": s.default_aspect_ratio,
                "negativePrompt": s.accepts_negative_prompt,
                "frameRate": s.frame_rate,
                "costPerSecond": s.cost_per_second,
            }
            for s in specs
        ],
        "count": len(specs),
    }
