from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.browser import BrowserSessionDriver
from usage_dashboard.scraper.errors import ScrapeError
from usage_dashboard.scraper.extractor import UsageSignalExtractor
from usage_dashboard.scraper.models import AccountConfig, AccountStatus, UsageSnapshot, utcnow
from usage_dashboard.scraper.parser import parse_usage

log = get_logger("pipeline")


class AccountScrapePipeline:
    """Driver -> Extractor -> Parser for one account.

    run() never raises: every failure becomes a snapshot whose status says
    what went wrong, so one bad account cannot stop the others.
    """

    def __init__(
        self,
        driver: BrowserSessionDriver,
        extractor: UsageSignalExtractor,
        excerpt_length: int = 2000,
        clock=utcnow,
    ):
        self.driver = driver
        self.extractor = extractor
        self.excerpt_length = excerpt_length
        self._clock = clock

    async def run(self, account: AccountConfig) -> UsageSnapshot:
        log.info("account_scrape_start", account_index=account.index, account_name=account.display_name)
        try:
            async with self.driver.open(account.index) as page:
                signals = await self.extractor.extract(page)
            fragment = parse_usage(signals)
        except ScrapeError as e:
            log.warning("account_scrape_failed", account_index=account.index, status=e.status.value, error=e.message)
            return self._failed(account, e.status, e.message)
        except Exception as e:
            log.error("account_scrape_error", account_index=account.index, error=str(e))
            return self._failed(account, AccountStatus.ERROR, str(e) or type(e).__name__)

        log.info(
            "account_scrape_ok",
            account_index=account.index,
            session=fragment.session.percent,
            weekly=fragment.weekly.percent,
            settled=signals.render_settled,
        )
        return UsageSnapshot(
            account_index=account.index,
            account_name=account.display_name,
            status=AccountStatus.OK,
            last_updated=self._clock(),
            session=fragment.session,
            weekly=fragment.weekly,
            extra=fragment.extra,
            raw_text_excerpt=signals.full_text[: self.excerpt_length],
            render_settled=signals.render_settled,
        )

    def _failed(self, account: AccountConfig, status: AccountStatus, message: str) -> UsageSnapshot:
        return UsageSnapshot(
            account_index=account.index,
            account_name=account.display_name,
            status=status,
            error=message,
            last_updated=self._clock(),
        )
