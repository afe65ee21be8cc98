"""
Browser Session Driver - opens an authenticated Playwright page on the usage
screen for one account, or says why it could not.

One isolated Chromium instance per account run. The page is only handed out
after two liveness checks, because the target is a client-rendered app that
can redirect after load:

  1. right after navigation the URL must still be the usage page
  2. after the settle delay the URL is checked again and the rendered text
     must not contain the unauthenticated marker (the login screen)
"""

from contextlib import asynccontextmanager

from usage_dashboard.config import Settings
from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.credentials import CredentialStore
from usage_dashboard.scraper.errors import SessionExpiredError

log = get_logger("browser")

BROWSER_ARGS = ["--no-sandbox", "--disable-blink-features=AutomationControlled"]
BODY_TEXT_JS = "() => (document.body && document.body.innerText) || ''"


def _default_playwright_factory():
    from playwright.async_api import async_playwright

    return async_playwright()


class BrowserSessionDriver:
    def __init__(self, store: CredentialStore, cfg: Settings, playwright_factory=None):
        self.store = store
        self.cfg = cfg
        self._playwright_factory = playwright_factory or _default_playwright_factory

    def on_usage_page(self, url: str) -> bool:
        return self.cfg.usage_path in (url or "")

    @asynccontextmanager
    async def open(self, account_index: int):
        """Yield a Playwright page showing the usage screen.

        Raises NoSessionError before any browser is launched when the account
        has no cookie file, and SessionExpiredError when the target bounces us
        to its login flow. The browser is closed on every exit path. Cookies
        are written back only when the caller's block completes normally.
        """
        cookies = self.store.load(account_index)

        playwright = await self._playwright_factory().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(headless=self.cfg.headless, args=BROWSER_ARGS)
            context = await browser.new_context(
                viewport={"width": self.cfg.viewport_width, "height": self.cfg.viewport_height}
            )
            await context.add_cookies(cookies)
            page = await context.new_page()

            log.info("navigating", account_index=account_index, url=self.cfg.usage_url)
            await page.goto(
                self.cfg.usage_url,
                wait_until="domcontentloaded",
                timeout=self.cfg.navigation_timeout_seconds * 1000,
            )

            if not self.on_usage_page(page.url):
                log.warning("session_expired_redirect", account_index=account_index, url=page.url)
                raise SessionExpiredError(f"Session expired (redirected to {page.url}). Re-run login.")

            # Client-side routing may still send us to the login screen
            await page.wait_for_timeout(self.cfg.settle_delay_seconds * 1000)
            body = await page.evaluate(BODY_TEXT_JS)
            if not self.on_usage_page(page.url) or self.cfg.unauthenticated_marker in (body or ""):
                log.warning("session_invalid_after_render", account_index=account_index, url=page.url)
                raise SessionExpiredError(
                    "Session invalid (login page rendered after load). Re-run login on this host."
                )

            yield page

            await self._refresh_credentials(account_index, context)
        finally:
            await self._release(account_index, browser, playwright)

    async def _refresh_credentials(self, account_index: int, context):
        try:
            cookies = await context.cookies()
            self.store.save(account_index, cookies)
        except Exception as e:
            log.warning("cookie_refresh_failed", account_index=account_index, error=str(e))

    async def _release(self, account_index: int, browser, playwright):
        try:
            if browser:
                await browser.close()
        except Exception as e:
            log.warning("browser_close_err", account_index=account_index, error=str(e))
        try:
            await playwright.stop()
        except Exception as e:
            log.warning("playwright_stop_err", account_index=account_index, error=str(e))
