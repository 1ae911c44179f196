"""Application configuration via environment variables."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Google Veo (asynchronous provider)
    gemini_api_key: str = ""
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"

    # fal.ai (synchronous provider)
    fal_key: str = Field(default="", validation_alias=AliasChoices("fal_key", "fal_api_key"))

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Blob storage
    storage_backend: str = "local"  # "local" or "supabase"
    local_storage_dir: str = "./data/blobs"
    public_asset_base_url: Optional[str] = None
    supabase_storage_bucket: str = "clip-assets"

    # Job store
    job_store_backend: str = "blob"  # "blob" or "supabase"
    jobs_table: str = "clip_jobs"

    # Generation
    default_video_model: str = "google/veo-3.1-generate-preview"
    daily_video_limit: int = 10

    # Polling
    poll_timeout_minutes: float = 15.0
    expected_generation_seconds: float = 120.0
    http_timeout_seconds: float = 60.0

    # Housekeeping
    job_retention_hours: int = 24
    cron_secret: Optional[str] = None
    environment: str = "development"

    log_level: str = "INFO"
    compute_port: int = 8001

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
