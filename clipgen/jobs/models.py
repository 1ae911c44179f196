"""Clip generation job data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
import secrets
import string
import time


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_job_id() -> str:
    """job_<epoch ms>_<7 random base36 chars>."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(7))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class ClipAction(str, Enum):
    SWIM_IDLE = "swimIdle"
    SWIM_FAST = "swimFast"
    DASH = "dash"
    BITE = "bite"
    TAKE_DAMAGE = "takeDamage"
    DEATH = "death"
    SPECIAL = "special"


class JobInput(CamelModel):
    entity_id: str
    action: ClipAction
    reference_asset_url: str
    description: Optional[str] = None


class GenerationMetadata(CamelModel):
    """Parameters actually sent to the provider, after normalization."""
    provider: str
    model: str
    provider_model_id: str
    duration_seconds: int
    resolution: str
    aspect_ratio: str
    negative_prompt_applied: bool = False


class ClipResult(CamelModel):
    video_url: str
    duration_ms: int
    frame_rate: int
    thumbnail_url: Optional[str] = None
    frames: List[str] = Field(default_factory=list)


class ClipJob(CamelModel):
    """Tracks one clip generation request from submission to terminal outcome."""
    id: str = Field(default_factory=generate_job_id)
    status: JobStatus = JobStatus.PROCESSING
    progress: int = 0
    progress_message: str = ""
    input: JobInput
    operation_id: Optional[str] = None
    metadata: Optional[GenerationMetadata] = None
    result: Optional[ClipResult] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_backup(cls, backup: "OperationBackup") -> "ClipJob":
        """Rebuild the processing job a backup record was written for."""
        return cls(
            id=backup.job_id,
            status=JobStatus.PROCESSING,
            progress=10,
            progress_message="Restored from operation backup",
            input=JobInput(
                entity_id=backup.entity_id,
                action=backup.action,
                reference_asset_url=backup.reference_asset_url,
            ),
            operation_id=backup.operation_id,
            created_at=backup.timestamp,
            updated_at=backup.timestamp,
        )


class OperationBackup(CamelModel):
    """Recovery-only copy of a provider operation handle."""
    operation_id: str
    job_id: str
    entity_id: str
    action: ClipAction
    reference_asset_url: str
    timestamp: datetime = Field(default_factory=utcnow)
    recovered: bool = False


class ClipGenerationRequest(CamelModel):
    """Body of a start request."""
    entity_id: str
    action: ClipAction
    reference_asset_url: str
    description: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    duration: Optional[int] = None
    resolution: Optional[str] = None
    aspect_ratio: Optional[str] = None
    negative_prompt: Optional[str] = None

    def job_input(self) -> JobInput:
        return JobInput(
            entity_id=self.entity_id,
            action=self.action,
            reference_asset_url=self.reference_asset_url,
            description=self.description,
        )
