import json
import os
import tempfile

from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.errors import CredentialFormatError, NoSessionError

log = get_logger("credentials")

COOKIES_FILENAME = "cookies.json"


class CredentialStore:
    """Per-account cookie sets under <sessions_dir>/account-<N>/cookies.json"""

    def __init__(self, sessions_dir: str = "sessions"):
        self.sessions_dir = sessions_dir

    def session_dir(self, account_index: int) -> str:
        return os.path.join(self.sessions_dir, f"account-{account_index}")

    def cookies_path(self, account_index: int) -> str:
        return os.path.join(self.session_dir(account_index), COOKIES_FILENAME)

    def exists(self, account_index: int) -> bool:
        return os.path.isfile(self.cookies_path(account_index))

    def load(self, account_index: int) -> list[dict]:
        """Read the stored cookie records for an account.

        Raises NoSessionError when no cookie file exists (the message says
        whether the account was never set up or only the file is missing) and
        CredentialFormatError when the file is not a JSON list of cookies.
        """
        path = self.cookies_path(account_index)
        if not os.path.isfile(path):
            if os.path.isdir(self.session_dir(account_index)):
                msg = (
                    "Session exists but no cookies.json. "
                    f"Re-run: usage-dashboard-login {account_index}"
                )
            else:
                msg = f"No session found. Run: usage-dashboard-login {account_index}"
            raise NoSessionError(msg)

        try:
            with open(path, "r", encoding="utf-8") as f:
                cookies = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CredentialFormatError(f"Could not parse {path}: {e}") from e

        if not isinstance(cookies, list) or not all(isinstance(c, dict) for c in cookies):
            raise CredentialFormatError(f"Could not parse {path}: expected a list of cookies")
        return cookies

    def save(self, account_index: int, cookies: list[dict]) -> str:
        session_dir = self.session_dir(account_index)
        os.makedirs(session_dir, exist_ok=True)
        path = self.cookies_path(account_index)
        fd, tmp_path = tempfile.mkstemp(dir=session_dir, prefix=".cookies-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(cookies, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        log.info("credentials_saved", account_index=account_index, cookies=len(cookies))
        return path
