"""
wattstream.api.main — FastAPI application entry point
=======================================================

Run with::

    uvicorn wattstream.api.main:app --reload --port 8000

Everything stateful (engine, broadcaster, accrual pipeline, generators) is
built in :func:`lifespan` and hung off ``app.state``.  Tests inject their own
engine/config by setting ``app.state.engine`` / ``app.state.config`` before
the app starts.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from wattstream.api.deps import default_config, default_engine  # noqa: E402
from wattstream.api.routes.demo import router as demo_router  # noqa: E402
from wattstream.api.routes.live import router as live_router  # noqa: E402
from wattstream.api.routes.wallet import router as wallet_router  # noqa: E402
from wattstream.database.engine import init_db  # noqa: E402
from wattstream.services.accrual_service import AccrualPipeline  # noqa: E402
from wattstream.services.broadcaster import BalanceBroadcaster  # noqa: E402
from wattstream.services.generators import AmbientGenerator, AutoSeeder  # noqa: E402
from wattstream.services.ledger_service import LedgerUnavailable  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — wire services, start the generators."""
    engine = getattr(app.state, "engine", None) or default_engine()
    config = getattr(app.state, "config", None) or default_config()
    app.state.engine = engine
    app.state.config = config

    init_db(engine)

    broadcaster = BalanceBroadcaster(engine)
    pipeline = AccrualPipeline(engine, broadcaster, tz=config.tz)
    ambient = AmbientGenerator(
        pipeline,
        interval_seconds=config.ambient_interval_seconds,
        backfill_hours=config.backfill_hours,
        enabled=config.ambient_enabled,
    )
    auto_seeder = AutoSeeder(
        pipeline,
        interval_minutes=config.auto_seeder_interval_minutes,
        max_users_per_cycle=config.auto_seeder_max_users,
        enabled=config.auto_seeder_enabled,
        initial_delay_seconds=config.auto_seeder_initial_delay_seconds,
    )
    app.state.broadcaster = broadcaster
    app.state.pipeline = pipeline
    app.state.ambient = ambient
    app.state.auto_seeder = auto_seeder

    ambient.start()
    auto_seeder.start()
    logger.info("%s API started — engine ready (%s)", config.site_name, engine.url.database)
    try:
        yield
    finally:
        await ambient.aclose()
        await auto_seeder.aclose()
        broadcaster.close()
        logger.info("%s API shutting down", config.site_name)


async def ledger_unavailable_handler(request: Request, exc: LedgerUnavailable):
    logger.error("Ledger unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Ledger temporarily unavailable"})


def create_app() -> FastAPI:
    application = FastAPI(
        title="WattStream Dashboard API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS — allow the dashboard dev server and production frontend
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(LedgerUnavailable, ledger_unavailable_handler)

    # Mount routers
    application.include_router(wallet_router, prefix="/api")
    application.include_router(demo_router, prefix="/api")
    application.include_router(live_router)

    @application.get("/api/health")
    def health():
        return {"status": "ok"}

    return application


app = create_app()
