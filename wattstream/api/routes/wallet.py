"""
wattstream.api.routes.wallet — Balance, ledger and reading reads
==================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from wattstream.api.deps import CurrentUser, get_ambient, get_auto_seeder, get_engine
from wattstream.api.schemas import EnergyReadingOut, LedgerEntryOut, TrackResponse
from wattstream.database.engine import run_db
from wattstream.services import ledger_service
from wattstream.services.generators import AmbientGenerator, AutoSeeder
from wattstream.wire import BalanceOut

router = APIRouter(tags=["wallet"])


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------
@router.get("/me", response_model=TrackResponse)
async def get_me(
    user_id: CurrentUser,
    ambient: AmbientGenerator = Depends(get_ambient),
    auto_seeder: AutoSeeder = Depends(get_auto_seeder),
):
    """Identify the caller and start generating readings for them."""
    return TrackResponse(
        user_id=user_id,
        ambient_tracked=await ambient.add_user(user_id),
        auto_seeded=auto_seeder.add_user(user_id),
    )


# ---------------------------------------------------------------------------
# GET /wallet
# ---------------------------------------------------------------------------
@router.get("/wallet", response_model=BalanceOut)
async def get_wallet(user_id: CurrentUser, engine: Engine = Depends(get_engine)):
    """Current balance; a user never credited gets the all-zero shape."""
    snapshot = await run_db(ledger_service.read_balance_or_zero, engine, user_id)
    return BalanceOut.model_validate(snapshot, from_attributes=True)


# ---------------------------------------------------------------------------
# GET /tokens/ledger
# ---------------------------------------------------------------------------
@router.get("/tokens/ledger", response_model=list[LedgerEntryOut])
async def get_ledger(
    user_id: CurrentUser,
    limit: int = Query(50, ge=1, le=500),
    engine: Engine = Depends(get_engine),
):
    rows = await run_db(ledger_service.list_ledger, engine, user_id, limit)
    return [LedgerEntryOut.model_validate(r, from_attributes=True) for r in rows]


# ---------------------------------------------------------------------------
# GET /energy/readings, GET /energy/latest
# ---------------------------------------------------------------------------
@router.get("/energy/readings", response_model=list[EnergyReadingOut])
async def get_readings(
    user_id: CurrentUser,
    limit: int = Query(24, ge=1, le=500),
    engine: Engine = Depends(get_engine),
):
    rows = await run_db(ledger_service.list_readings, engine, user_id, limit)
    return [EnergyReadingOut.model_validate(r, from_attributes=True) for r in rows]


@router.get("/energy/latest", response_model=EnergyReadingOut)
async def get_latest_reading(user_id: CurrentUser, engine: Engine = Depends(get_engine)):
    """Most recent reading, or zeros when there is none yet."""
    row = await run_db(ledger_service.latest_reading, engine, user_id)
    if row is None:
        return EnergyReadingOut()
    return EnergyReadingOut.model_validate(row, from_attributes=True)
