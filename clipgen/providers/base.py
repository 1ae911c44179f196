"""Provider adapter interfaces and shared data types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from clipgen.io.asset_fetch import ReferenceAsset

# Sent when a model takes its aspect ratio from the reference image
ASPECT_RATIO_FROM_IMAGE = "auto"


class SubmissionMode(str, Enum):
    SYNC = "sync"    # one blocking call returns the artifact
    ASYNC = "async"  # submit returns an operation handle to poll


@dataclass(frozen=True)
class VideoModelSpec:
    """Catalog entry describing one video model and what it accepts."""
    key: str
    name: str
    provider: str
    provider_model_id: str
    mode: SubmissionMode
    durations: Tuple[int, ...]
    default_duration: int
    resolutions: Tuple[str, ...] = ()
    aspect_ratios: Tuple[str, ...] = ()
    default_aspect_ratio: str = ASPECT_RATIO_FROM_IMAGE
    accepts_negative_prompt: bool = True
    frame_rate: int = 24
    top_resolution_requires_max_duration: bool = False
    cost_per_second: float = 0.0


@dataclass
class NormalizedParams:
    duration_seconds: int
    resolution: str
    aspect_ratio: str
    adjustments: List[str] = field(default_factory=list)


@dataclass
class ProviderRequest:
    model: VideoModelSpec
    params: NormalizedParams
    prompt: str
    asset: ReferenceAsset
    negative_prompt: Optional[str] = None


@dataclass
class SubmissionResult:
    operation_id: Optional[str] = None
    video_url: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class OperationStatus:
    done: bool
    error_message: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """Translates a normalized request into one provider's API."""

    provider: str
    mode: SubmissionMode
    credentials_env: str

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials for this provider are present."""
        ...

    @abstractmethod
    async def submit(self, request: ProviderRequest) -> SubmissionResult:
        """Start generation. Raises ProviderSubmissionError on rejection."""
        ...

    @abstractmethod
    async def download_artifact(self, url: str) -> bytes:
        """Fetch generated video bytes. Raises ArtifactDownloadError."""
        ...


class AsyncProviderAdapter(ProviderAdapter):
    """Provider whose submit returns an operation handle to poll."""

    mode = SubmissionMode.ASYNC

    @abstractmethod
    async def get_operation(self, operation_id: str) -> OperationStatus:
        """Query operation status. Raises PollTransportError."""
        ...

    @abstractmethod
    def locate_artifact(self, payload: Dict[str, Any]) -> Optional[str]:
        """Find the artifact URL in a finished operation, or None."""
        ...
