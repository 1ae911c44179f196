"""Builds the shared components from settings and holds the live instance."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from clipgen.config import Settings
from clipgen.db.supabase_client import get_supabase
from clipgen.jobs.backup import OperationBackupWriter
from clipgen.jobs.dispatcher import ClipJobDispatcher
from clipgen.jobs.locks import KeyedGuard
from clipgen.jobs.processor import ClipJobProcessor
from clipgen.jobs.spending import DailySpendingTracker
from clipgen.jobs.store import BlobJobStore, JobStore, SupabaseJobStore
from clipgen.providers.base import AsyncProviderAdapter, ProviderAdapter, SubmissionMode
from clipgen.providers.catalog import catalog
from clipgen.providers.fal import FalVideoAdapter
from clipgen.providers.veo import VeoVideoAdapter
from clipgen.storage.blob_storage import BlobStorage, LocalBlobStorage, SupabaseBlobStorage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    storage: BlobStorage
    store: JobStore
    spending: DailySpendingTracker
    backup: OperationBackupWriter
    http: httpx.AsyncClient
    adapters: Dict[str, ProviderAdapter]
    dispatcher: ClipJobDispatcher
    processor: ClipJobProcessor
    guard: KeyedGuard = field(default_factory=KeyedGuard)

    async def aclose(self) -> None:
        await self.http.aclose()


def build_storage(settings: Settings) -> BlobStorage:
    if settings.storage_backend == "supabase":
        return SupabaseBlobStorage(get_supabase(), settings.supabase_storage_bucket)
    return LocalBlobStorage(settings.local_storage_dir, settings.public_asset_base_url)


def build_job_store(settings: Settings, storage: BlobStorage) -> JobStore:
    if settings.job_store_backend == "supabase":
        return SupabaseJobStore(get_supabase(), settings.jobs_table)
    return BlobJobStore(storage)


def build_adapters(settings: Settings, http: httpx.AsyncClient) -> Dict[str, ProviderAdapter]:
    return {
        "google": VeoVideoAdapter(settings.gemini_api_key, http, api_base=settings.gemini_api_base),
        "fal": FalVideoAdapter(settings.fal_key, http),
    }


def build_services(
    settings: Settings,
    http: Optional[httpx.AsyncClient] = None,
    storage: Optional[BlobStorage] = None,
    adapters: Optional[Dict[str, ProviderAdapter]] = None,
) -> Services:
    http = http or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    storage = storage or build_storage(settings)
    store = build_job_store(settings, storage)
    spending = DailySpendingTracker(storage, daily_limit=settings.daily_video_limit)
    backup = OperationBackupWriter(storage)
    adapters = adapters or build_adapters(settings, http)
    guard = KeyedGuard()

    dispatcher = ClipJobDispatcher(
        store=store,
        storage=storage,
        spending=spending,
        backup=backup,
        adapters=adapters,
        http=http,
        catalog=catalog,
        default_model=settings.default_video_model,
    )
    pollable: Dict[str, AsyncProviderAdapter] = {
        name: adapter for name, adapter in adapters.items()
        if adapter.mode == SubmissionMode.ASYNC
    }
    processor = ClipJobProcessor(
        store=store,
        storage=storage,
        adapters=pollable,
        guard=guard,
        catalog=catalog,
        timeout_minutes=settings.poll_timeout_minutes,
        expected_generation_seconds=settings.expected_generation_seconds,
    )
    logger.info(
        "Services ready: storage=%s, job store=%s, providers=%s",
        type(storage).__name__, type(store).__name__,
        ", ".join(f"{name}({'on' if a.is_configured() else 'off'})" for name, a in adapters.items()),
    )
    return Services(
        settings=settings,
        storage=storage,
        store=store,
        spending=spending,
        backup=backup,
        http=http,
        adapters=adapters,
        dispatcher=dispatcher,
        processor=processor,
        guard=guard,
    )


_services: Optional[Services] = None


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services


def get_services() -> Optional[Services]:
    return _services
