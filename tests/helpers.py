from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from usage_dashboard.scraper.browser import BODY_TEXT_JS

USAGE_URL = "https://claude.ai/settings/usage"

SCENARIO_TEXT = (
    "Current session 45% used ... Resets in 2 hr 42 min ... All models 78% ... "
    "Resets Mon 11:00 PM ... $12.50 ... $20.00 ... Reset date\nMar 1"
)

# Captured shape of the live usage page
USAGE_PAGE_TEXT = """Settings
Usage
Plan usage limits
Current session
Resets in 3 hr 5 min
12% used
Weekly limits
Learn more about usage limits
All models
Resets Thu 9:00 AM
64% used
Extra usage
$4.10
spent
$50
Monthly spend limit
Apr 1
Reset date
"""


def make_fake_playwright(goto_url=USAGE_URL, settled_url=None, body="", harvest=None, cookies=None, goto_error=None):
    """Playwright stand-in: factory() -> .start() -> chromium.launch() -> browser -> context -> page."""
    page = MagicMock()
    page.url = "about:blank"

    async def goto(url, **kwargs):
        if goto_error:
            raise goto_error
        page.url = goto_url

    async def wait_for_timeout(ms):
        if settled_url is not None:
            page.url = settled_url

    def evaluate(script, *args):
        if script == BODY_TEXT_JS:
            return body
        return harvest if harvest is not None else {"text": body, "sections": [], "progress": []}

    page.goto = AsyncMock(side_effect=goto)
    page.wait_for_timeout = AsyncMock(side_effect=wait_for_timeout)
    page.wait_for_function = AsyncMock(return_value=True)
    page.evaluate = AsyncMock(side_effect=evaluate)

    context = MagicMock()
    context.add_cookies = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    context.cookies = AsyncMock(return_value=cookies if cookies is not None else [])

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    factory = MagicMock(return_value=starter)
    return SimpleNamespace(factory=factory, pw=pw, browser=browser, context=context, page=page)
