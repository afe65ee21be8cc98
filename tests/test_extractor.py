from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import SCENARIO_TEXT
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from usage_dashboard.scraper.extractor import HARVEST_JS, READY_JS, UsageSignalExtractor, build_signals


class TestBuildSignals:
    def test_lexical_signals(self):
        signals = build_signals({"text": SCENARIO_TEXT})
        assert signals.percentages == ["45%", "78%"]
        assert signals.dollar_amounts == ["$12.50", "$20.00"]
        assert signals.reset_phrases[0].lower().startswith("resets in 2 hr")
        assert any("Mon" in p for p in signals.reset_phrases)
        assert signals.time_phrases == ["Resets in 2 hr 42 min"]
        assert signals.full_text == SCENARIO_TEXT

    def test_reset_phrases_need_a_real_weekday(self):
        signals = build_signals({"text": "Resets monthly\nResets Tuesday\nresets Sun."})
        assert signals.reset_phrases == ["Resets Tuesday", "resets Sun."]

    def test_sections_and_progress(self):
        payload = {
            "text": "",
            "sections": [
                {"heading": "Current session", "content": "12% used | Resets in 1 hr"},
                {"heading": "", "content": "dropped"},
            ],
            "progress": [
                {"value": "40", "max": "100", "label": "Session usage", "text": ""},
                {"value": None, "max": "bogus", "label": None, "text": "?"},
            ],
        }
        signals = build_signals(payload)
        assert [s.heading for s in signals.sections] == ["Current session"]
        assert signals.progress_indicators[0].value == 40.0
        assert signals.progress_indicators[0].max == 100.0
        assert signals.progress_indicators[1].value is None
        assert signals.progress_indicators[1].max is None

    def test_empty_payload(self):
        signals = build_signals({})
        assert signals.full_text == ""
        assert signals.percentages == []
        assert signals.render_settled is True

    def test_render_settled_is_threaded_through(self):
        assert build_signals({"text": "x"}, render_settled=False).render_settled is False


def make_page(payload, wait_error=None):
    page = MagicMock()
    page.wait_for_function = AsyncMock(side_effect=wait_error)
    page.wait_for_timeout = AsyncMock()
    page.evaluate = AsyncMock(return_value=payload)
    return page


@pytest.mark.asyncio
class TestUsageSignalExtractor:
    async def test_ready_page(self):
        page = make_page({"text": SCENARIO_TEXT})
        extractor = UsageSignalExtractor(readiness_timeout_seconds=20, poll_interval_ms=500)
        signals = await extractor.extract(page)

        assert signals.render_settled is True
        assert signals.dollar_amounts == ["$12.50", "$20.00"]
        args, kwargs = page.wait_for_function.call_args
        assert args[0] == READY_JS
        assert kwargs["timeout"] == 20000
        assert kwargs["polling"] == 500
        assert kwargs["arg"]["minLength"] == 200
        page.evaluate.assert_awaited_once_with(HARVEST_JS)

    async def test_timeout_is_not_fatal(self):
        page = make_page({"text": "Loading..."}, wait_error=PlaywrightTimeoutError("Timeout 20000ms exceeded"))
        extractor = UsageSignalExtractor(late_hydration_delay_seconds=1)
        signals = await extractor.extract(page)

        assert signals.render_settled is False
        assert signals.full_text == "Loading..."
        # Still waits for late hydration after the timeout
        page.wait_for_timeout.assert_awaited_once_with(1000)

    async def test_other_errors_propagate(self):
        page = make_page({}, wait_error=RuntimeError("Target closed"))
        with pytest.raises(RuntimeError):
            await UsageSignalExtractor().extract(page)

    async def test_from_settings(self, cfg):
        extractor = UsageSignalExtractor.from_settings(cfg)
        assert extractor.readiness_timeout_seconds == cfg.readiness_timeout_seconds
        assert extractor.loading_marker == cfg.loading_marker
