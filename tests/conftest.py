import os
import tempfile

# Must be set before any usage_dashboard imports that build settings
_tmp = tempfile.mkdtemp()
os.environ["DATA_DIR"] = os.path.join(_tmp, "data")
os.environ["SESSIONS_DIR"] = os.path.join(_tmp, "sessions")
os.environ["PUBLIC_DIR"] = os.path.join(_tmp, "no-public")

import json

import pytest
from usage_dashboard.config import Settings
from usage_dashboard.scraper.credentials import CredentialStore


@pytest.fixture
def cfg(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        sessions_dir=str(tmp_path / "sessions"),
        settle_delay_seconds=0,
        late_hydration_delay_seconds=0,
    )


@pytest.fixture
def store(cfg):
    return CredentialStore(cfg.sessions_dir)


@pytest.fixture
def write_cookies(store):
    """Write a cookies.json for an account (valid cookies by default, or raw text)."""

    def _write(account_index, cookies=None, raw=None):
        os.makedirs(store.session_dir(account_index), exist_ok=True)
        with open(store.cookies_path(account_index), "w") as f:
            if raw is not None:
                f.write(raw)
            else:
                json.dump(
                    cookies
                    if cookies is not None
                    else [{"name": "sessionKey", "value": "abc", "domain": ".claude.ai", "path": "/"}],
                    f,
                )

    return _write
