import os

from dotenv import dotenv_values
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from usage_dashboard.observability.logger import LOG_FORMATS, resolve_level
from usage_dashboard.scraper.models import AccountConfig


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 4455

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Storage
    data_dir: str = "data"
    sessions_dir: str = "sessions"
    public_dir: str = "public"

    # Accounts (display names come from ACCOUNT_<N>_NAME)
    account_count: int = Field(default=4, ge=1)

    # Target page
    usage_url: str = "https://claude.ai/settings/usage"
    usage_path: str = "settings/usage"
    login_url: str = "https://claude.ai/login"
    unauthenticated_marker: str = "Continue with Google"
    loading_marker: str = "Loading...\nLoading...\nLoading..."

    # Browser
    headless: bool = False
    viewport_width: int = 1280
    viewport_height: int = 800

    # Timing
    navigation_timeout_seconds: float = 60
    settle_delay_seconds: float = 5
    readiness_timeout_seconds: float = 20
    readiness_poll_interval_ms: int = 500
    late_hydration_delay_seconds: float = 1
    min_text_length: int = 200
    raw_text_excerpt_length: int = 2000

    # Scheduler
    refresh_interval_minutes: int = 10

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("refresh_interval_minutes")
    @classmethod
    def _divides_hour(cls, v: int) -> int:
        if v < 1 or 60 % v != 0:
            raise ValueError("refresh_interval_minutes must divide 60")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        resolve_level(v)
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        if v not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        return v

    @property
    def cache_file(self) -> str:
        return os.path.join(self.data_dir, "usage.json")


def account_name(index: int, environ: dict | None = None) -> str:
    env = environ if environ is not None else _merged_environ()
    return env.get(f"ACCOUNT_{index}_NAME") or f"Account {index}"


def load_accounts(cfg: Settings, environ: dict | None = None) -> list[AccountConfig]:
    """Build the static account list for indices 1..account_count."""
    env = environ if environ is not None else _merged_environ()
    return [
        AccountConfig(index=i, display_name=account_name(i, env))
        for i in range(1, cfg.account_count + 1)
    ]


def _merged_environ() -> dict:
    # Process env wins over .env
    file_values = {k: v for k, v in dotenv_values(".env").items() if v is not None}
    return {**file_values, **os.environ}


settings = Settings()
