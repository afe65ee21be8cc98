from datetime import datetime

from usage_dashboard.scraper.models import CamelModel


class RefreshResponse(CamelModel):
    success: bool
    message: str


class StatusResponse(CamelModel):
    is_scraping: bool
    next_refresh: datetime | None = None
    uptime: float
