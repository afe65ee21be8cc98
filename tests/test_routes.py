from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from usage_dashboard.main import app, app_state, build_scheduler
from usage_dashboard.scraper.models import AccountStatus, AggregateSnapshot, UsageSnapshot
from usage_dashboard.storage.cache import CacheStore

NEXT = datetime(2026, 3, 2, 10, 20, tzinfo=UTC)


@pytest.fixture
def scheduler():
    s = MagicMock()
    s.is_scraping = False
    s.next_refresh = NEXT
    s.trigger.return_value = True
    s.status.return_value = {"is_scraping": False, "next_refresh": NEXT, "uptime": 12.5}
    return s


@pytest.fixture
def client(tmp_path, scheduler):
    app_state.clear()
    app_state.update({"cache": CacheStore(str(tmp_path / "usage.json")), "scheduler": scheduler})
    yield TestClient(app)
    app_state.clear()


class TestUsageEndpoint:
    def test_empty_cache(self, client):
        response = client.get("/api/usage")
        assert response.status_code == 200
        body = response.json()
        assert body["lastUpdated"] is None
        assert body["accounts"] == []
        assert body["isScraping"] is False
        assert body["nextRefresh"].startswith("2026-03-02T10:20:00")

    def test_corrupt_cache_serves_empty_shape(self, client):
        with open(app_state["cache"].path, "wb") as f:
            f.write(b"\xff\xfe garbage")
        response = client.get("/api/usage")
        assert response.status_code == 200
        assert response.json()["accounts"] == []

    def test_cached_snapshot_with_live_flags(self, client, scheduler):
        app_state["cache"].write(
            AggregateSnapshot(
                last_updated=datetime(2026, 3, 2, 10, 10, tzinfo=UTC),
                accounts=[
                    UsageSnapshot(
                        account_index=1,
                        account_name="Work",
                        status=AccountStatus.NO_SESSION,
                        error="No session found",
                    )
                ],
            )
        )
        scheduler.is_scraping = True

        body = client.get("/api/usage").json()
        assert body["isScraping"] is True
        assert body["lastUpdated"].startswith("2026-03-02T10:10:00")
        assert body["accounts"][0]["accountName"] == "Work"
        assert body["accounts"][0]["status"] == "no_session"
        assert body["accounts"][0]["error"] == "No session found"


class TestRefreshEndpoint:
    def test_refresh_started(self, client, scheduler):
        body = client.get("/api/refresh").json()
        assert body == {"success": True, "message": "Refresh started"}
        scheduler.trigger.assert_called_once()

    def test_refresh_rejected_while_scraping(self, client, scheduler):
        scheduler.trigger.return_value = False
        body = client.get("/api/refresh").json()
        assert body["success"] is False
        assert "already in progress" in body["message"]


class TestStatusEndpoint:
    def test_status(self, client):
        body = client.get("/api/status").json()
        assert body["isScraping"] is False
        assert body["uptime"] == 12.5
        assert body["nextRefresh"].startswith("2026-03-02T10:20:00")


class TestAppWiring:
    def test_build_scheduler(self, cfg, tmp_path):
        scheduler = build_scheduler(cfg, CacheStore(str(tmp_path / "usage.json")))
        assert [a.index for a in scheduler.orchestrator.accounts] == [1, 2, 3, 4]
        assert scheduler.interval_minutes == cfg.refresh_interval_minutes

    def test_lifespan_starts_and_stops_scheduler(self):
        app_state.clear()
        # No cookies exist under the test sessions dir, so the startup run never opens a browser
        with TestClient(app) as client:
            scheduler = app_state["scheduler"]
            assert scheduler.next_refresh is not None
            assert client.get("/api/status").status_code == 200
        assert scheduler._timer_task is None
        app_state.clear()
