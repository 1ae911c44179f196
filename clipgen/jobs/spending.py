"""Spending gate: caps how many paid video generations may start per day."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import Field

from clipgen.jobs.models import CamelModel, utcnow
from clipgen.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

SPENDING_DOCUMENT = "state/spending-tracker.json"
HISTORY_DAYS = 30


@dataclass
class SpendingCheck:
    allowed: bool
    remaining: int
    reason: str = ""


class SpendingGate(ABC):

    @abstractmethod
    def can_start(self) -> SpendingCheck:
        ...

    @abstractmethod
    def record_usage(self) -> None:
        ...


class SpendingRecord(CamelModel):
    date: str
    video_generations: int = 0
    last_updated: datetime = Field(default_factory=utcnow)


class SpendingLedger(CamelModel):
    current_day: SpendingRecord
    history: List[SpendingRecord] = Field(default_factory=list)


class DailySpendingTracker(SpendingGate):
    """Counts generations per UTC day in a JSON ledger on blob storage."""

    def __init__(
        self,
        storage: BlobStorage,
        daily_limit: int = 10,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._limit = daily_limit
        self._now = now or utcnow

    @property
    def limit(self) -> int:
        return self._limit

    def _today(self) -> str:
        return self._now().strftime("%Y-%m-%d")

    def _load(self) -> SpendingLedger:
        today = self._today()
        raw = self._storage.get_json(SPENDING_DOCUMENT)
        if raw is None:
            return SpendingLedger(current_day=SpendingRecord(date=today, last_updated=self._now()))

        ledger = SpendingLedger.model_validate(raw)
        if ledger.current_day.date != today:
            ledger.history.insert(0, ledger.current_day)
            ledger.history = ledger.history[:HISTORY_DAYS]
            ledger.current_day = SpendingRecord(date=today, last_updated=self._now())
        return ledger

    def can_start(self) -> SpendingCheck:
        used = self._load().current_day.video_generations
        remaining = max(0, self._limit - used)
        if used >= self._limit:
            return SpendingCheck(
                allowed=False,
                remaining=0,
                reason=(
                    f"Daily video generation limit reached ({self._limit} videos). "
                    "Resets at midnight UTC."
                ),
            )
        return SpendingCheck(allowed=True, remaining=remaining)

    def record_usage(self) -> None:
        ledger = self._load()
        ledger.current_day.video_generations += 1
        ledger.current_day.last_updated = self._now()
        self._storage.put_json(SPENDING_DOCUMENT, ledger.to_json_dict())
        logger.info(
            "Recorded video generation. Today's count: %d",
            ledger.current_day.video_generations,
        )

    def status(self) -> dict:
        today = self._load().current_day
        remaining = max(0, self._limit - today.video_generations)
        percent = round(today.video_generations / self._limit * 100) if self._limit else 100
        return {
            "today": today.to_json_dict(),
            "limit": self._limit,
            "remaining": remaining,
            "percentUsed": percent,
        }

    def history(self) -> List[dict]:
        ledger = self._load()
        return [r.to_json_dict() for r in [ledger.current_day, *ledger.history]]
