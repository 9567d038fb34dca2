"""
wattstream.api.routes.demo — Demo data and generator controls
===============================================================

Endpoints that make a fresh dashboard come alive: one-shot backfills, the
manual "pretend I just sold some energy" trigger, and runtime switches for
the two background generators.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from wattstream.api.deps import (
    CurrentUser,
    get_ambient,
    get_auto_seeder,
    get_config,
    get_pipeline,
)
from wattstream.api.schemas import (
    AmbientStatus,
    AmbientToggle,
    AutoSeederStatus,
    AutoSeederToggle,
    SeedRequest,
    SeedResponse,
    TokenUpdateResponse,
)
from wattstream.config import WattConfig
from wattstream.constants import TOKEN_SYMBOL
from wattstream.services.accrual_service import AccrualPipeline
from wattstream.services.generators import AmbientGenerator, AutoSeeder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["demo"])


# ---------------------------------------------------------------------------
# One-shot data
# ---------------------------------------------------------------------------
@router.post("/energy/generate-demo")
async def generate_demo(
    user_id: CurrentUser,
    ambient: AmbientGenerator = Depends(get_ambient),
):
    """Start ambient readings for the caller (backfilling on first sight)."""
    tracked = await ambient.add_user(user_id)
    return {"message": "Demo data generated successfully", "newlyTracked": tracked}


@router.post("/seed-demo-data", response_model=SeedResponse)
async def seed_demo_data(
    user_id: CurrentUser,
    body: SeedRequest | None = None,
    pipeline: AccrualPipeline = Depends(get_pipeline),
    config: WattConfig = Depends(get_config),
):
    """Backfill *days* × *hoursPerDay* historical readings for the caller."""
    body = body or SeedRequest()
    result = await pipeline.seed_history(
        user_id,
        body.days,
        body.hours_per_day,
        max_days=config.max_seed_days,
        max_hours_per_day=config.max_seed_hours_per_day,
    )
    logger.info(
        "Seeded %d readings for %s (%.3f %s)",
        result.readings, user_id, result.total_tokens, TOKEN_SYMBOL,
    )
    return SeedResponse(
        message="Demo data seeded successfully",
        energy_records=result.readings,
        token_entries=result.ledger_entries,
        total_tokens_earned=result.total_tokens,
    )


@router.post("/test/token-update", response_model=TokenUpdateResponse)
async def test_token_update(
    user_id: CurrentUser,
    pipeline: AccrualPipeline = Depends(get_pipeline),
):
    """Credit a small random amount and push it to the caller's ticker."""
    amount, balance = await pipeline.random_credit(user_id)
    return TokenUpdateResponse(
        success=True,
        earnings=amount,
        new_balance=balance.current_balance,
        message=f"Added {amount:.2f} {TOKEN_SYMBOL} tokens",
    )


# ---------------------------------------------------------------------------
# Auto-seeder
# ---------------------------------------------------------------------------
@router.get("/auto-seeder/status", response_model=AutoSeederStatus)
def auto_seeder_status(
    _user: CurrentUser,
    auto_seeder: AutoSeeder = Depends(get_auto_seeder),
):
    return AutoSeederStatus(**auto_seeder.status())


@router.post("/auto-seeder/toggle", response_model=AutoSeederStatus)
async def toggle_auto_seeder(
    body: AutoSeederToggle,
    _user: CurrentUser,
    auto_seeder: AutoSeeder = Depends(get_auto_seeder),
):
    auto_seeder.update_config(
        enabled=body.enabled,
        interval_minutes=body.interval_minutes,
        max_users_per_cycle=body.max_users_per_cycle,
    )
    return AutoSeederStatus(**auto_seeder.status())


# ---------------------------------------------------------------------------
# Ambient generator
# ---------------------------------------------------------------------------
@router.get("/ambient/status", response_model=AmbientStatus)
def ambient_status(
    _user: CurrentUser,
    ambient: AmbientGenerator = Depends(get_ambient),
):
    return AmbientStatus(**ambient.status())


@router.post("/ambient/toggle", response_model=AmbientStatus)
async def toggle_ambient(
    body: AmbientToggle,
    _user: CurrentUser,
    ambient: AmbientGenerator = Depends(get_ambient),
):
    ambient.reconfigure(enabled=body.enabled, interval_seconds=body.interval_seconds)
    return AmbientStatus(**ambient.status())
