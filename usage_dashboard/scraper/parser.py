"""
Usage Data Parser - turns RawPageSignals into the session/weekly/extra usage
sections.

The page has no schema, so every field is filled by an ordered list of named
rules; the first rule returning something other than None wins. Rules see only
the signals, never the clock or the network, so parsing is deterministic.
A field no rule matches stays None.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from usage_dashboard.scraper.models import (
    ExtraUsage,
    RawPageSignals,
    SessionUsage,
    UsageFragment,
    WeeklyUsage,
)

PERCENT_WINDOW = 200
NUMBER = r"(\d+(?:\.\d+)?)\s*%"
WEEKDAY = r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)(?:day|sday|nesday|rsday|urday)?\b\.?"
DURATION = r"(?:\d+\s*(?:days?|d|hours?|hrs?|h|minutes?|mins?|m)\b\s*)+"
DATE_TOKEN = r"[A-Z][a-z]{2,8}\.? \d{1,2}(?:, \d{4})?"

_PERCENT_RE = re.compile(NUMBER)


@dataclass(frozen=True)
class Rule:
    name: str
    apply: Callable[[RawPageSignals], object]


def _percent(text: str):
    m = _PERCENT_RE.search(text or "")
    return float(m.group(1)) if m else None


def text_percent_after(name: str, context: str) -> Rule:
    """A percentage within PERCENT_WINDOW chars after a context phrase."""
    pattern = re.compile(context + rf"[^%]{{0,{PERCENT_WINDOW}}}?" + NUMBER, re.IGNORECASE)

    def apply(signals):
        m = pattern.search(signals.full_text)
        return float(m.group(1)) if m else None

    return Rule(name, apply)


def section_percent(name: str, keywords: tuple[str, ...]) -> Rule:
    """A percentage inside a heading block whose heading mentions a keyword."""

    def apply(signals):
        for section in signals.sections:
            heading = section.heading.lower()
            if any(k in heading for k in keywords):
                value = _percent(section.heading)
                if value is None:
                    value = _percent(section.content)
                if value is not None:
                    return value
        return None

    return Rule(name, apply)


def progress_percent(name: str, keywords: tuple[str, ...]) -> Rule:
    """value/max of a progress indicator whose label or text mentions a keyword."""

    def apply(signals):
        for bar in signals.progress_indicators:
            described = f"{bar.label or ''} {bar.text}".lower()
            if bar.value is None or not any(k in described for k in keywords):
                continue
            if bar.max:
                return bar.value / bar.max * 100
            return bar.value
        return None

    return Rule(name, apply)


def text_match(name: str, pattern: str, group: int = 1, flags: int = re.IGNORECASE) -> Rule:
    compiled = re.compile(pattern, flags)

    def apply(signals):
        m = compiled.search(signals.full_text)
        if not m:
            return None
        value = m.group(group).strip()
        return value or None

    return Rule(name, apply)


def nth_signal(name: str, attr: str, index: int) -> Rule:
    def apply(signals):
        values = getattr(signals, attr)
        return values[index].strip() if len(values) > index else None

    return Rule(name, apply)


RULES: dict[str, list[Rule]] = {
    "session.percent": [
        text_percent_after("current_session_text", r"current\s+session"),
        text_percent_after("session_text", r"\bsession"),
        section_percent("session_section", ("session", "current")),
        progress_percent("session_progress", ("session",)),
    ],
    "session.reset_in": [
        text_match("resets_in_duration", r"Resets in\s+(" + DURATION + r")"),
        text_match("resets_in_line", r"Resets in\s+([^\n]+)"),
        nth_signal("first_reset_phrase", "reset_phrases", 0),
        nth_signal("first_time_phrase", "time_phrases", 0),
    ],
    "weekly.percent": [
        text_percent_after("all_models_text", r"All models"),
        text_percent_after("weekly_text", r"weekly"),
        text_percent_after("week_text", r"\bweek\b"),
        section_percent("weekly_section", ("weekly", "week", "all models")),
        progress_percent("weekly_progress", ("week", "all models")),
    ],
    "weekly.reset_on": [
        text_match("resets_weekday_time", r"Resets\s+(" + WEEKDAY + r"(?:\s+\d{1,2}(?::\d{2})?\s*(?:AM|PM)?)?)"),
        text_match("resets_weekday_line", r"Resets\s+(" + WEEKDAY + r"[^\n]*)"),
        nth_signal("second_reset_phrase", "reset_phrases", 1),
    ],
    "extra.spent": [
        nth_signal("first_dollar_amount", "dollar_amounts", 0),
    ],
    "extra.limit": [
        nth_signal("second_dollar_amount", "dollar_amounts", 1),
    ],
    "extra.balance": [
        text_match("balance_after_label", r"\bbalance\b[^$\n]{0,40}(\$[\d,]+(?:\.\d{1,2})?)"),
    ],
    "extra.reset_date": [
        text_match("date_before_label", r"(" + DATE_TOKEN + r")[ \t]*\n\s*(?i:Reset date)", flags=0),
        text_match("date_after_label", r"Reset date[ \t]*\n\s*([^\n]{1,40})"),
    ],
}


def apply_rules(rules: list[Rule], signals: RawPageSignals):
    """Return (value, rule_name) for the first rule that matches, else (None, None)."""
    for rule in rules:
        value = rule.apply(signals)
        if value is not None:
            return value, rule.name
    return None, None


def resolve(signals: RawPageSignals, rules: dict[str, list[Rule]] | None = None) -> dict[str, tuple]:
    table = RULES if rules is None else rules
    return {field: apply_rules(field_rules, signals) for field, field_rules in table.items()}


def parse_usage(signals: RawPageSignals, rules: dict[str, list[Rule]] | None = None) -> UsageFragment:
    """Build the usage sections from raw signals.

    Percentages are passed through as parsed, out-of-range values included.
    """
    values = {field: value for field, (value, _) in resolve(signals, rules).items()}
    return UsageFragment(
        session=SessionUsage(
            percent=values.get("session.percent"),
            reset_in=values.get("session.reset_in"),
        ),
        weekly=WeeklyUsage(
            percent=values.get("weekly.percent"),
            reset_on=values.get("weekly.reset_on"),
        ),
        extra=ExtraUsage(
            spent=values.get("extra.spent"),
            limit=values.get("extra.limit"),
            balance=values.get("extra.balance"),
            reset_date=values.get("extra.reset_date"),
        ),
    )
