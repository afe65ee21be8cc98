from usage_dashboard.scraper.models import AccountStatus


class ScrapeError(Exception):
    """A classified, account-scoped scrape failure."""

    status = AccountStatus.ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoSessionError(ScrapeError):
    status = AccountStatus.NO_SESSION


class SessionExpiredError(ScrapeError):
    status = AccountStatus.SESSION_EXPIRED


class CredentialFormatError(ScrapeError):
    status = AccountStatus.ERROR
