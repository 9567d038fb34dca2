"""
wattstream.api.schemas — Wire Contracts
=========================================

Pydantic models for the HTTP request and response bodies.  The live-channel
messages and the wallet balance live in :mod:`wattstream.wire`.  Field names
on the wire are camelCase.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from wattstream.constants import DEFAULT_SEED_DAYS
from wattstream.wire import WireModel


# ---------------------------------------------------------------------------
# Wallet / ledger
# ---------------------------------------------------------------------------
class LedgerEntryOut(WireModel):
    id: int
    amount: float
    category: str
    description: str | None = None
    created_at: datetime | None = None


class EnergyReadingOut(WireModel):
    id: int | None = None
    generated_kw: float = 0.0
    consumed_kw: float = 0.0
    exported_surplus_kw: float = 0.0
    tokens_earned: float = 0.0
    timestamp: datetime | None = None


# ---------------------------------------------------------------------------
# Seeding / demo triggers
# ---------------------------------------------------------------------------
class SeedRequest(WireModel):
    days: int = Field(default=DEFAULT_SEED_DAYS, ge=1)
    hours_per_day: int = Field(default=24, ge=1)


class SeedResponse(WireModel):
    message: str
    energy_records: int
    token_entries: int
    total_tokens_earned: float


class TokenUpdateResponse(WireModel):
    success: bool
    earnings: float
    new_balance: float
    message: str


class TrackResponse(WireModel):
    user_id: str
    ambient_tracked: bool
    auto_seeded: bool


# ---------------------------------------------------------------------------
# Generator control
# ---------------------------------------------------------------------------
class AutoSeederStatus(WireModel):
    enabled: bool
    active_users: int
    interval_minutes: float
    max_users_per_cycle: int
    is_running: bool


class AutoSeederToggle(WireModel):
    enabled: bool
    interval_minutes: float | None = Field(default=None, gt=0)
    max_users_per_cycle: int | None = Field(default=None, ge=1)


class AmbientStatus(WireModel):
    enabled: bool
    tracked_users: int
    interval_seconds: float
    backfill_hours: int
    is_running: bool


class AmbientToggle(WireModel):
    enabled: bool
    interval_seconds: float | None = Field(default=None, gt=0)
