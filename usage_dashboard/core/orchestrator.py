from datetime import datetime

from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.models import AccountConfig, AggregateSnapshot, AccountStatus, utcnow
from usage_dashboard.scraper.pipeline import AccountScrapePipeline
from usage_dashboard.storage.cache import CacheStore

log = get_logger("orchestrator")


class ScrapeOrchestrator:
    """Scrapes every configured account, one at a time, and publishes the result."""

    def __init__(
        self,
        pipeline: AccountScrapePipeline,
        cache: CacheStore,
        accounts: list[AccountConfig],
        clock=utcnow,
    ):
        self.pipeline = pipeline
        self.cache = cache
        self.accounts = sorted(accounts, key=lambda a: a.index)
        self._clock = clock

    async def run_all(self, next_refresh: datetime | None = None) -> AggregateSnapshot:
        """Run the pipeline for each account in index order and write the
        combined snapshot in one replacement. A cache write failure propagates."""
        log.info("scrape_all_start", accounts=len(self.accounts))
        results = []
        for account in self.accounts:
            results.append(await self.pipeline.run(account))

        snapshot = AggregateSnapshot(
            last_updated=self._clock(),
            accounts=results,
            next_refresh=next_refresh,
            is_scraping=False,
        )
        self.cache.write(snapshot)

        ok = sum(1 for r in results if r.status == AccountStatus.OK)
        log.info("scrape_all_done", ok=ok, failed=len(results) - ok)
        return snapshot
