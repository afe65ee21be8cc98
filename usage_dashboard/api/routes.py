from fastapi import APIRouter

from usage_dashboard.api.schemas import RefreshResponse, StatusResponse
from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.models import AggregateSnapshot

log = get_logger("api")

router = APIRouter(prefix="/api")


def get_app_state():
    """Get shared app state, populated by the lifespan on startup."""
    from usage_dashboard.main import app_state

    return app_state


@router.get("/usage", response_model=AggregateSnapshot, response_model_by_alias=True)
async def get_usage():
    """Last cached snapshot, never blocked on a scrape in progress."""
    state = get_app_state()
    scheduler = state["scheduler"]
    cached = state["cache"].read() or AggregateSnapshot()
    return cached.model_copy(
        update={"next_refresh": scheduler.next_refresh, "is_scraping": scheduler.is_scraping}
    )


@router.get("/refresh", response_model=RefreshResponse, response_model_by_alias=True)
async def refresh():
    scheduler = get_app_state()["scheduler"]
    if not scheduler.trigger():
        return RefreshResponse(success=False, message="Scraping already in progress")
    log.info("manual_refresh_started")
    return RefreshResponse(success=True, message="Refresh started")


@router.get("/status", response_model=StatusResponse, response_model_by_alias=True)
async def get_status():
    scheduler = get_app_state()["scheduler"]
    return StatusResponse(**scheduler.status())
