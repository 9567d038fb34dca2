"""
wattstream.services.accrual_service — Reading → Reward → Credit → Push
=======================================================================

The one path every WATT token travels, whether it comes from a generator
tick, a registration backfill, the demo seeding endpoint or the manual
test trigger:

    synthesize(timestamp) → calculate_reward → ledger (one transaction)
                          → broadcaster.push (only for nonzero rewards)

Pushes always happen after the ledger transaction has committed and carry
the committed balance, so a client never sees a value the store does not
have.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING

from wattstream.constants import (
    MAX_SEED_DAYS,
    MAX_SEED_HOURS_PER_DAY,
    TEST_CREDIT_MAX,
    TEST_CREDIT_MIN,
)
from wattstream.database.engine import run_db
from wattstream.database.models import LedgerCategory
from wattstream.engine.reward import CONVERSION_RATE, RewardResult, calculate_reward
from wattstream.engine.synthesizer import Reading, synthesize
from wattstream.services import ledger_service
from wattstream.services.ledger_service import BalanceSnapshot, BulkResult, ReadingRecord

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from wattstream.services.broadcaster import BalanceBroadcaster

logger = logging.getLogger(__name__)

Synthesizer = Callable[[datetime], Reading]


@dataclass(frozen=True, slots=True)
class AccrualResult:
    """Outcome of one live reading."""

    reading: ReadingRecord
    reward: RewardResult
    balance: BalanceSnapshot | None
    pushed: bool = False

    @property
    def tokens_earned(self) -> float:
        return self.reward.tokens_earned


def hourly_window(end: datetime, hours: int) -> list[datetime]:
    """*hours* hourly timestamps ending one hour before *end*, oldest first."""
    return [end - timedelta(hours=offset) for offset in range(hours, 0, -1)]


def seed_timestamps(
    now: datetime,
    days: int,
    hours_per_day: int,
    tz: tzinfo | None = None,
) -> list[datetime]:
    """On-the-hour timestamps for the last *days* days, hours 0..hours_per_day-1.

    Times later than *now* are left out.  Results are oldest first.
    """
    local_now = now.astimezone(tz) if tz is not None else now
    stamps: list[datetime] = []
    for day in range(days - 1, -1, -1):
        midnight = (local_now - timedelta(days=day)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        for hour in range(hours_per_day):
            ts = midnight + timedelta(hours=hour)
            if ts <= local_now:
                stamps.append(ts)
    return stamps


class AccrualPipeline:
    """Glue between the pure engine, the ledger and the broadcaster.

    Parameters
    ----------
    engine : SQLAlchemy engine for the ledger
    broadcaster : optional live-push target; ``None`` disables pushes
    synthesizer : ``timestamp → Reading``; defaults to :func:`synthesize`
    tz : zone for hour-of-day and demo seeding calendar days
    clock : returns "now" (UTC, aware)
    """

    def __init__(
        self,
        engine: Engine,
        broadcaster: BalanceBroadcaster | None = None,
        *,
        synthesizer: Synthesizer | None = None,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.engine = engine
        self.broadcaster = broadcaster
        self.tz = tz
        self._rng = rng or random.Random()
        self._synthesizer = synthesizer or (
            lambda ts: synthesize(ts, rng=self._rng, tz=self.tz)
        )
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    async def _push(self, balance: BalanceSnapshot, earned: float) -> bool:
        if self.broadcaster is None:
            return False
        return await self.broadcaster.push_snapshot(balance, earned=earned)

    # -------------------------------------------------------------------
    # Single live reading
    # -------------------------------------------------------------------
    async def accrue(self, user_id: str, at: datetime | None = None) -> AccrualResult:
        """Synthesize, reward, persist and (if anything was earned) push.

        Raises ``SynthesisError`` / ``LedgerUnavailable`` to the caller.
        """
        timestamp = at or self.now()
        reading = self._synthesizer(timestamp)
        reward = calculate_reward(reading)

        record, balance = await run_db(
            ledger_service.record_reading, self.engine, user_id, reading, reward,
        )

        pushed = False
        if balance is not None and reward.earned_anything:
            pushed = await self._push(balance, reward.tokens_earned)

        return AccrualResult(reading=record, reward=reward, balance=balance, pushed=pushed)

    # -------------------------------------------------------------------
    # Historical backfill
    # -------------------------------------------------------------------
    async def backfill(self, user_id: str, timestamps: list[datetime]) -> BulkResult:
        """Persist one reading per timestamp; push the final balance once."""
        items = []
        for ts in timestamps:
            reading = self._synthesizer(ts)
            items.append((reading, calculate_reward(reading)))

        result = await run_db(ledger_service.record_readings, self.engine, user_id, items)
        if result.total_tokens > 0:
            await self._push(result.balance, result.total_tokens)

        logger.info(
            "Backfilled %d readings for %s (%d credits, %.3f WATT)",
            result.readings, user_id, result.ledger_entries, result.total_tokens,
        )
        return result

    async def backfill_hours(self, user_id: str, hours: int) -> BulkResult:
        return await self.backfill(user_id, hourly_window(self.now(), hours))

    async def seed_history(
        self,
        user_id: str,
        days: int,
        hours_per_day: int,
        *,
        max_days: int = MAX_SEED_DAYS,
        max_hours_per_day: int = MAX_SEED_HOURS_PER_DAY,
    ) -> BulkResult:
        """Demo backfill of *days* × *hours_per_day*, clamped to sane bounds."""
        days = max(1, min(days, max_days))
        hours_per_day = max(1, min(hours_per_day, max_hours_per_day))
        stamps = seed_timestamps(self.now(), days, hours_per_day, self.tz)
        return await self.backfill(user_id, stamps)

    # -------------------------------------------------------------------
    # Manual test trigger
    # -------------------------------------------------------------------
    async def random_credit(self, user_id: str) -> tuple[float, BalanceSnapshot]:
        """Credit a small random amount to exercise the live ticker."""
        amount = round(self._rng.uniform(TEST_CREDIT_MIN, TEST_CREDIT_MAX), 3)
        surplus = amount / CONVERSION_RATE
        balance = await run_db(
            ledger_service.credit,
            self.engine,
            user_id,
            amount,
            LedgerCategory.GENERATION,
            f"Surplus energy sale: {surplus:.2f} kWh",
        )
        await self._push(balance, amount)
        return amount, balance
