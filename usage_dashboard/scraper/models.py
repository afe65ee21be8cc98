from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PositiveInt
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class CamelModel(BaseModel):
    """Base for everything that ends up in usage.json or an API response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountStatus(str, Enum):
    OK = "ok"
    NO_SESSION = "no_session"
    SESSION_EXPIRED = "session_expired"
    ERROR = "error"


class AccountConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: PositiveInt
    display_name: str


class Section(BaseModel):
    heading: str
    content: str = ""


class ProgressIndicator(BaseModel):
    value: float | None = None
    max: float | None = None
    label: str | None = None
    text: str = ""


class RawPageSignals(BaseModel):
    """Uninterpreted text and DOM signals harvested from one rendered page."""

    full_text: str = ""
    percentages: list[str] = Field(default_factory=list)
    dollar_amounts: list[str] = Field(default_factory=list)
    reset_phrases: list[str] = Field(default_factory=list)
    time_phrases: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    progress_indicators: list[ProgressIndicator] = Field(default_factory=list)
    render_settled: bool = True


class SessionUsage(CamelModel):
    percent: float | None = None
    reset_in: str | None = None
    label: str = "Current Session"


class WeeklyUsage(CamelModel):
    percent: float | None = None
    reset_on: str | None = None
    label: str = "Weekly Limit"


class ExtraUsage(CamelModel):
    spent: str | None = None
    limit: str | None = None
    balance: str | None = None
    reset_date: str | None = None
    label: str = "Extra Usage"


class UsageFragment(CamelModel):
    """The parser's output: the usage sections of a snapshot, nothing else."""

    session: SessionUsage = Field(default_factory=SessionUsage)
    weekly: WeeklyUsage = Field(default_factory=WeeklyUsage)
    extra: ExtraUsage = Field(default_factory=ExtraUsage)


class UsageSnapshot(CamelModel):
    account_index: int
    account_name: str
    status: AccountStatus
    error: str | None = None
    last_updated: datetime = Field(default_factory=utcnow)
    session: SessionUsage | None = None
    weekly: WeeklyUsage | None = None
    extra: ExtraUsage | None = None
    raw_text_excerpt: str = ""
    render_settled: bool | None = None


class AggregateSnapshot(CamelModel):
    last_updated: datetime | None = None
    accounts: list[UsageSnapshot] = Field(default_factory=list)
    next_refresh: datetime | None = None
    is_scraping: bool = False
