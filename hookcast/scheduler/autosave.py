"""Autosave scheduler - persists the registry on a fixed interval."""
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hookcast.errors import PersistenceFailure
from hookcast.registry.topics import TopicRegistry

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Calls registry.persist() every `interval_seconds`. Opt-in, off by default."""

    def __init__(self, registry: TopicRegistry, interval_seconds: int = 300):
        self.registry = registry
        self.interval_seconds = interval_seconds
        self._scheduler: AsyncIOScheduler | None = None
        self._last_saved: datetime | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the interval job. Needs a running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            IntervalTrigger(seconds=self.interval_seconds),
            id="autosave",
        )
        self._scheduler.start()
        logger.info("Autosave every %ds", self.interval_seconds)

    def stop(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    async def run_once(self) -> bool:
        """Persist now. A failed save is logged and retried on the next tick."""
        try:
            self.registry.persist()
        except PersistenceFailure as e:
            logger.warning("Autosave failed: %s", e)
            return False
        self._last_saved = datetime.now(timezone.utc)
        return True

    def get_last_saved(self) -> datetime | None:
        return self._last_saved
