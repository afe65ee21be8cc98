import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from usage_dashboard.api.routes import router as api_router
from usage_dashboard.config import Settings, load_accounts, settings
from usage_dashboard.core.orchestrator import ScrapeOrchestrator
from usage_dashboard.core.scheduler import RefreshScheduler
from usage_dashboard.observability.logger import get_logger, setup_logging
from usage_dashboard.scraper.browser import BrowserSessionDriver
from usage_dashboard.scraper.credentials import CredentialStore
from usage_dashboard.scraper.extractor import UsageSignalExtractor
from usage_dashboard.scraper.pipeline import AccountScrapePipeline
from usage_dashboard.storage.cache import CacheStore

setup_logging(settings.log_level, settings.log_format)
log = get_logger("main")

# Shared application state, read by API routes
app_state = {}


def build_scheduler(cfg: Settings, cache: CacheStore) -> RefreshScheduler:
    store = CredentialStore(cfg.sessions_dir)
    pipeline = AccountScrapePipeline(
        driver=BrowserSessionDriver(store, cfg),
        extractor=UsageSignalExtractor.from_settings(cfg),
        excerpt_length=cfg.raw_text_excerpt_length,
    )
    orchestrator = ScrapeOrchestrator(pipeline, cache, load_accounts(cfg))
    return RefreshScheduler(orchestrator, interval_minutes=cfg.refresh_interval_minutes)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("usage_dashboard_starting", accounts=settings.account_count, port=settings.port)
    os.makedirs(settings.data_dir, exist_ok=True)

    cache = CacheStore(settings.cache_file)
    scheduler = build_scheduler(settings, cache)
    app_state.update({
        "settings": settings,
        "cache": cache,
        "scheduler": scheduler,
    })

    # Initial scrape runs in the background; the API serves the old cache meanwhile
    scheduler.start()
    log.info("usage_dashboard_ready", next_refresh=str(scheduler.next_refresh))

    yield

    log.info("usage_dashboard_shutting_down")
    await scheduler.stop()


app = FastAPI(title="Usage Dashboard", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

if os.path.isdir(settings.public_dir):
    app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="dashboard")


def run():
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
