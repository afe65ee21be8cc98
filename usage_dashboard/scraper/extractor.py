"""
Usage Signal Extractor - harvests raw text and DOM signals from the rendered
usage page. It never decides what a number means; that is the parser's job.
"""

import re

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.models import ProgressIndicator, RawPageSignals, Section
from usage_dashboard.scraper.parser import WEEKDAY

log = get_logger("extractor")

PERCENT_RE = re.compile(r"\d+(?:\.\d+)?%")
DOLLAR_RE = re.compile(r"\$[\d,]+(?:\.\d{1,2})?")
RESET_PHRASE_RE = re.compile(
    r"resets?\s+(?:in\s+)?(?:\d+\s+(?:hour|hr|minute|min|day|week)s?|on\s+\w+|" + WEEKDAY + r")",
    re.IGNORECASE,
)
TIME_PHRASE_RE = re.compile(
    r"(?:resets?\s+(?:in\s+)?)?(?:\d+h\s*\d+m|\d+\s+(?:hours?|hrs?)\s+\d+\s+(?:minutes?|mins?)|\d+\s+days?)",
    re.IGNORECASE,
)

READY_JS = """
({minLength, loadingMarker}) => {
    const body = (document.body && document.body.innerText) || '';
    return body.length > minLength && !body.includes(loadingMarker);
}
"""

HARVEST_JS = """
() => {
    const text = (document.body && document.body.innerText) || '';
    const sections = [];
    const headings = document.querySelectorAll(
        'h1, h2, h3, h4, h5, h6, [class*="heading"], [class*="title"]'
    );
    headings.forEach(h => {
        const heading = (h.textContent || '').trim();
        if (!heading) return;
        const parts = [];
        let next = h.nextElementSibling;
        for (let i = 0; i < 5 && next; i++) {
            parts.push((next.textContent || '').trim());
            next = next.nextElementSibling;
        }
        sections.push({heading, content: parts.join(' | ')});
    });
    const progress = [];
    document.querySelectorAll(
        '[role="progressbar"], progress, [aria-valuenow][aria-valuemax]'
    ).forEach(bar => {
        let label = bar.getAttribute('aria-label');
        const labelledBy = bar.getAttribute('aria-labelledby');
        if (!label && labelledBy) {
            const ref = document.getElementById(labelledBy);
            label = ref ? (ref.textContent || '').trim() : labelledBy;
        }
        progress.push({
            value: bar.getAttribute('aria-valuenow') || bar.getAttribute('value'),
            max: bar.getAttribute('aria-valuemax') || bar.getAttribute('max'),
            label: label,
            text: (bar.textContent || '').trim(),
        });
    });
    return {text, sections, progress};
}
"""


def _to_float(value):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_signals(payload: dict, render_settled: bool = True) -> RawPageSignals:
    """Turn the in-page harvest into RawPageSignals by scanning its text
    for the page's stable vocabulary (percentages, dollars, resets)."""
    text = payload.get("text") or ""
    sections = [
        Section(heading=s.get("heading", ""), content=s.get("content") or "")
        for s in payload.get("sections") or []
        if s.get("heading")
    ]
    progress = [
        ProgressIndicator(
            value=_to_float(p.get("value")),
            max=_to_float(p.get("max")),
            label=p.get("label"),
            text=p.get("text") or "",
        )
        for p in payload.get("progress") or []
    ]
    return RawPageSignals(
        full_text=text,
        percentages=PERCENT_RE.findall(text),
        dollar_amounts=DOLLAR_RE.findall(text),
        reset_phrases=RESET_PHRASE_RE.findall(text),
        time_phrases=TIME_PHRASE_RE.findall(text),
        sections=sections,
        progress_indicators=progress,
        render_settled=render_settled,
    )


class UsageSignalExtractor:
    def __init__(
        self,
        readiness_timeout_seconds: float = 20,
        poll_interval_ms: int = 500,
        late_hydration_delay_seconds: float = 1,
        min_text_length: int = 200,
        loading_marker: str = "Loading...\nLoading...\nLoading...",
    ):
        self.readiness_timeout_seconds = readiness_timeout_seconds
        self.poll_interval_ms = poll_interval_ms
        self.late_hydration_delay_seconds = late_hydration_delay_seconds
        self.min_text_length = min_text_length
        self.loading_marker = loading_marker

    @classmethod
    def from_settings(cls, cfg) -> "UsageSignalExtractor":
        return cls(
            readiness_timeout_seconds=cfg.readiness_timeout_seconds,
            poll_interval_ms=cfg.readiness_poll_interval_ms,
            late_hydration_delay_seconds=cfg.late_hydration_delay_seconds,
            min_text_length=cfg.min_text_length,
            loading_marker=cfg.loading_marker,
        )

    async def wait_until_ready(self, page) -> bool:
        """Poll until the page has real content. Returns False on timeout;
        a timeout is not fatal, extraction goes ahead with what rendered."""
        settled = True
        try:
            await page.wait_for_function(
                READY_JS,
                arg={"minLength": self.min_text_length, "loadingMarker": self.loading_marker},
                timeout=self.readiness_timeout_seconds * 1000,
                polling=self.poll_interval_ms,
            )
        except PlaywrightTimeoutError:
            settled = False
            log.warning("render_not_settled", timeout_s=self.readiness_timeout_seconds)
        # Late hydration
        await page.wait_for_timeout(self.late_hydration_delay_seconds * 1000)
        return settled

    async def extract(self, page) -> RawPageSignals:
        settled = await self.wait_until_ready(page)
        payload = await page.evaluate(HARVEST_JS)
        signals = build_signals(payload or {}, render_settled=settled)
        log.info(
            "signals_extracted",
            text_len=len(signals.full_text),
            sections=len(signals.sections),
            progress=len(signals.progress_indicators),
            settled=settled,
        )
        return signals
