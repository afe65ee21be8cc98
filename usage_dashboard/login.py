"""
Interactive login for one account: opens a visible browser on the login
page, waits for the operator to finish signing in, then exports the
browser's cookies to sessions/account-<N>/cookies.json.

    usage-dashboard-login 1
"""

import argparse
import asyncio
import sys
from urllib.parse import urlparse

from usage_dashboard.config import Settings, account_name, settings
from usage_dashboard.observability.logger import get_logger, setup_logging
from usage_dashboard.scraper.browser import BROWSER_ARGS
from usage_dashboard.scraper.credentials import CredentialStore

log = get_logger("login")


def parse_account_index(argv: list[str], cfg: Settings) -> int:
    parser = argparse.ArgumentParser(
        prog="usage-dashboard-login",
        description="Log in to one account and save its session cookies.",
    )
    parser.add_argument("account", type=int, help="account number, 1..ACCOUNT_COUNT")
    args = parser.parse_args(argv)
    if args.account < 1 or args.account > cfg.account_count:
        parser.error(f"account must be between 1 and {cfg.account_count} (ACCOUNT_COUNT)")
    return args.account


def login_succeeded(url: str, login_url: str) -> bool:
    expected = urlparse(login_url)
    current = urlparse(url or "")
    return current.netloc == expected.netloc and current.path.rstrip("/") != expected.path.rstrip("/")


async def login(account_index: int, cfg: Settings, store: CredentialStore) -> bool:
    from playwright.async_api import async_playwright

    session_dir = store.session_dir(account_index)
    name = account_name(account_index)
    log.info("login_start", account_index=account_index, account_name=name, session_dir=session_dir)
    if store.exists(account_index):
        log.warning("login_overwrites_session", account_index=account_index)
        print("Cookies are already saved for this account. Logging in again will overwrite them.")

    async with async_playwright() as p:
        context = await p.chromium.launch_persistent_context(
            session_dir,
            headless=False,
            viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            args=BROWSER_ARGS,
        )
        try:
            page = await context.new_page()
            await page.goto(cfg.login_url, wait_until="domcontentloaded")

            print(f"\nLog in to {name} in the browser window, complete any 2FA,")
            print("then come back here.")
            await asyncio.to_thread(input, "Press Enter when login is complete... ")

            if not login_succeeded(page.url, cfg.login_url):
                log.warning("login_not_detected", account_index=account_index, url=page.url)
                return False

            path = store.save(account_index, await context.cookies())
            log.info("login_saved", account_index=account_index, path=path)
            return True
        finally:
            await context.close()


def main(argv: list[str] | None = None) -> int:
    setup_logging(settings.log_level, "console")
    account_index = parse_account_index(sys.argv[1:] if argv is None else argv, settings)
    store = CredentialStore(settings.sessions_dir)
    try:
        ok = asyncio.run(login(account_index, settings, store))
    except Exception as e:
        log.error("login_failed", account_index=account_index, error=str(e))
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
