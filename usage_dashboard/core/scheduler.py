import asyncio
import time
from datetime import datetime, timedelta

from usage_dashboard.core.orchestrator import ScrapeOrchestrator
from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.models import utcnow

log = get_logger("scheduler")


def compute_next_refresh(now: datetime, interval_minutes: int = 10) -> datetime:
    """Next wall-clock boundary strictly after `now` (10:03 -> 10:10, 10:10 -> 10:20)."""
    minutes_until_next = interval_minutes - (now.minute % interval_minutes)
    nxt = now + timedelta(minutes=minutes_until_next)
    return nxt.replace(second=0, microsecond=0)


class RefreshScheduler:
    """Owns isScraping / nextRefresh and fires the orchestrator.

    Runs are single-flight: a trigger while a run is in progress is rejected,
    never queued. The flag is set synchronously before the run task is
    created, so two triggers in the same tick cannot both start.
    """

    def __init__(self, orchestrator: ScrapeOrchestrator, interval_minutes: int = 10, clock=utcnow):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self._clock = clock
        self._is_scraping = False
        self._next_refresh: datetime | None = None
        self._started_monotonic = time.monotonic()
        self._timer_task: asyncio.Task | None = None
        self._run_task: asyncio.Task | None = None

    @property
    def is_scraping(self) -> bool:
        return self._is_scraping

    @property
    def next_refresh(self) -> datetime | None:
        return self._next_refresh

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._started_monotonic

    def status(self) -> dict:
        return {
            "is_scraping": self._is_scraping,
            "next_refresh": self._next_refresh,
            "uptime": self.uptime,
        }

    def update_next_refresh(self, now: datetime | None = None) -> datetime:
        self._next_refresh = compute_next_refresh(now or self._clock(), self.interval_minutes)
        return self._next_refresh

    def trigger(self) -> bool:
        """Start a run in the background. Returns False if one is already going."""
        if self._is_scraping:
            log.info("refresh_rejected", reason="already_scraping")
            return False
        self._is_scraping = True
        self._run_task = asyncio.create_task(self._scrape(), name="usage_scrape")
        return True

    async def run_now(self) -> bool:
        """Run in the caller's task. Returns False if a run is already going."""
        if self._is_scraping:
            log.info("scheduled_run_skipped", reason="already_scraping")
            return False
        self._is_scraping = True
        await self._scrape()
        return True

    async def _scrape(self):
        log.info("scrape_run_start", next_refresh=str(self._next_refresh))
        try:
            await self.orchestrator.run_all(next_refresh=self._next_refresh)
            log.info("scrape_run_complete")
        except Exception as e:
            log.error("scrape_run_failed", error=str(e))
        finally:
            self._is_scraping = False

    async def _timer_loop(self):
        log.info("refresh_timer_started", interval_minutes=self.interval_minutes)
        while True:
            now = self._clock()
            target = self._next_refresh if self._next_refresh and self._next_refresh > now else None
            if target is None:
                target = self.update_next_refresh(now)
            await asyncio.sleep(max((target - now).total_seconds(), 0))
            # Never recompute from a clock that woke slightly early
            self.update_next_refresh(max(self._clock(), target))
            await self.run_now()

    def start(self):
        """Kick off the immediate startup run and the recurring timer."""
        if self._timer_task is not None:
            return
        self.update_next_refresh()
        self.trigger()
        self._timer_task = asyncio.create_task(self._timer_loop(), name="refresh_timer")

    async def stop(self):
        for task in (self._timer_task, self._run_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer_task = None
        self._run_task = None
