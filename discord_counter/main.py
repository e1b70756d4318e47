import asyncio
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from discord_counter.db.base import SessionLocal, get_db
from discord_counter.core.config import Settings, settings
from discord_counter.core.logging import get_logger, setup_logging
from discord_counter.routers import servers as servers_router
from discord_counter.routers import sync as sync_router
from discord_counter.services.batch import BatchCoordinator
from discord_counter.services.fetcher import RemoteFetcher
from discord_counter.services.runner import SyncRunner, run_schedule
from discord_counter.services.store import SqlStore
from discord_counter.services.sync import SyncOrchestrator
from discord_counter.core.errors import (
    CounterException,
    counter_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

logger = get_logger(__name__)


def build_orchestrator_factory(store: SqlStore, client: httpx.AsyncClient, config: Settings):
    """Wire fetcher → coordinator → orchestrator from settings."""
    fetcher = RemoteFetcher(
        client=client,
        token=config.APIFY_TOKEN,
        actor_id=config.APIFY_ACTOR_ID,
        base_url=config.APIFY_BASE_URL,
        max_retries=config.FETCH_MAX_RETRIES,
        base_delay=config.FETCH_BASE_DELAY_SECONDS,
    )
    coordinator = BatchCoordinator(
        fetcher,
        batch_size=config.BATCH_SIZE,
        cooldown=config.BATCH_COOLDOWN_SECONDS,
    )

    def factory() -> SyncOrchestrator:
        return SyncOrchestrator(store=store, coordinator=coordinator)

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    settings.require_provider_credentials()

    store = SqlStore(SessionLocal)
    async with httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT_SECONDS) as client:
        factory = build_orchestrator_factory(store, client, settings)
        runner = SyncRunner(factory)
        app.state.store = store
        app.state.orchestrator_factory = factory
        app.state.runner = runner

        stop = asyncio.Event()
        scheduler = None
        if settings.SCHEDULER_ENABLED:
            scheduler = asyncio.create_task(
                run_schedule(runner, settings.SYNC_INTERVAL_SECONDS, stop)
            )
        logger.bind(environment=settings.APP_ENV).info("Discord Counter Worker started")
        try:
            yield
        finally:
            stop.set()
            if scheduler is not None:
                await scheduler
            await runner.shutdown()


app = FastAPI(
    title="Discord Counter API",
    description=(
        "**Discord server member/presence counter**\n\n"
        "Refreshes cached guild metadata through an Apify actor in rate-limited "
        "batches, keeps per-server history and hourly totals.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CounterException, counter_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(sync_router.router)
app.include_router(servers_router.router)


@app.get("/", response_class=PlainTextResponse, tags=["health"], include_in_schema=False)
def root():
    return "Discord Counter Worker is running!"


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
