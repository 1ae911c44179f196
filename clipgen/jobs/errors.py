"""Error taxonomy for clip generation jobs.

Errors raised before a job exists carry an HTTP ``status_code`` and are
surfaced to the caller of ``start()``. Errors after a job exists are recorded
on the job and never leave the processor.
"""

from typing import Any, Dict, Optional


class ClipJobError(Exception):
    status_code: int = 500
    error: str = "Clip generation error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ValidationError(ClipJobError):
    status_code = 400
    error = "Invalid request"


class ConfigurationError(ClipJobError):
    status_code = 500
    error = "Provider not configured"


class DuplicateRequest(ClipJobError):
    """Not a failure: a job for the same entity/action is already running."""
    status_code = 200
    error = "Duplicate request"

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} already in progress")
        self.job_id = job_id


class QuotaExceeded(ClipJobError):
    status_code = 429
    error = "Daily limit reached"

    def __init__(self, message: str, remaining: int = 0):
        super().__init__(message)
        self.remaining = remaining

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["remaining"] = self.remaining
        return body


class AssetFetchError(ClipJobError):
    status_code = 400
    error = "Reference asset unavailable"


class ProviderSubmissionError(ClipJobError):
    error = "Provider rejected the request"


class ProviderTerminalError(ClipJobError):
    error = "Video generation failed"


class PollTransportError(ClipJobError):
    error = "Status poll failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.http_status = status_code


class PollTimeout(ClipJobError):
    error = "Generation timed out"


class ArtifactLocationMissing(ClipJobError):
    error = "No artifact location"


class ArtifactDownloadError(ClipJobError):
    error = "Artifact download failed"
