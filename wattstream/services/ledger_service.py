"""
wattstream.services.ledger_service — Balance Ledger
====================================================

Single source of truth for WATT balances.  Callable from request handlers
and background generators alike (through ``run_db``).

Every positive credit is one transaction that:

    1. Increments ``current_balance``, ``lifetime_earnings`` and
       ``todays_earnings`` with an SQL-level ``x = x + :amount``.  The
       increment is evaluated by the database, so two concurrent credits of
       *a* and *b* always land as *a + b*.
    2. Inserts the Balance row on a user's first credit.  A concurrent first
       credit that loses the insert race hits the primary key, rolls back its
       SAVEPOINT and falls through to the increment.
    3. Appends exactly one ``token_ledger`` row.

Zero-amount credits are skipped entirely: no ledger row, no balance write.

Storage failures surface as :class:`LedgerUnavailable` so callers can log
and carry on without knowing about SQLAlchemy.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from wattstream.database.engine import get_session
from wattstream.database.models import Balance, EnergyReading, LedgerCategory, LedgerEntry
from wattstream.engine.reward import RewardResult
from wattstream.engine.synthesizer import Reading

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class LedgerUnavailable(RuntimeError):
    """The ledger store could not complete a read or a credit."""


# ---------------------------------------------------------------------------
# Snapshots handed out of the service (detached from any session)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    user_id: str
    current_balance: float = 0.0
    lifetime_earnings: float = 0.0
    todays_earnings: float = 0.0
    last_updated: datetime | None = None

    @classmethod
    def zero(cls, user_id: str) -> BalanceSnapshot:
        """What an absent Balance row means."""
        return cls(user_id=user_id)


@dataclass(frozen=True, slots=True)
class ReadingRecord:
    id: int
    user_id: str
    generated_kw: float
    consumed_kw: float
    exported_surplus_kw: float
    tokens_earned: float
    timestamp: datetime | None


@dataclass(frozen=True, slots=True)
class LedgerRecord:
    id: int
    user_id: str
    amount: float
    category: str
    description: str | None
    created_at: datetime | None


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Outcome of :func:`record_readings`."""

    readings: int
    ledger_entries: int
    total_tokens: float
    balance: BalanceSnapshot


def _to_reading_record(row: EnergyReading) -> ReadingRecord:
    return ReadingRecord(
        id=row.id,
        user_id=row.user_id,
        generated_kw=row.generated_kw,
        consumed_kw=row.consumed_kw,
        exported_surplus_kw=row.exported_surplus_kw,
        tokens_earned=row.tokens_earned,
        timestamp=row.timestamp,
    )


def _to_ledger_record(row: LedgerEntry) -> LedgerRecord:
    return LedgerRecord(
        id=row.id,
        user_id=row.user_id,
        amount=row.amount,
        category=row.category,
        description=row.description,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Session-level primitives
# ---------------------------------------------------------------------------
def _validate_amount(amount: float) -> float:
    amount = float(amount)
    if not math.isfinite(amount):
        raise ValueError(f"Credit amount must be finite, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Credit amount must be non-negative, got {amount!r}")
    return amount


def _snapshot(session: Session, user_id: str) -> BalanceSnapshot | None:
    # Column select bypasses the identity map so we see the incremented values
    row = session.execute(
        select(
            Balance.current_balance,
            Balance.lifetime_earnings,
            Balance.todays_earnings,
            Balance.last_updated,
        ).where(Balance.user_id == user_id)
    ).one_or_none()
    if row is None:
        return None
    return BalanceSnapshot(
        user_id=user_id,
        current_balance=row.current_balance,
        lifetime_earnings=row.lifetime_earnings,
        todays_earnings=row.todays_earnings,
        last_updated=row.last_updated,
    )


def _increment(session: Session, user_id: str, amount: float) -> int:
    result = session.execute(
        update(Balance)
        .where(Balance.user_id == user_id)
        .values(
            current_balance=Balance.current_balance + amount,
            lifetime_earnings=Balance.lifetime_earnings + amount,
            todays_earnings=Balance.todays_earnings + amount,
            last_updated=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def apply_credit(
    session: Session,
    user_id: str,
    amount: float,
    category: LedgerCategory | str,
    description: str | None = None,
) -> BalanceSnapshot | None:
    """Credit *amount* inside an open *session* (caller commits).

    Returns the post-credit snapshot, or ``None`` when *amount* is zero and
    nothing was written.
    """
    amount = _validate_amount(amount)
    if amount == 0:
        return None

    if _increment(session, user_id, amount) == 0:
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Balance(
                    user_id=user_id,
                    current_balance=amount,
                    lifetime_earnings=amount,
                    todays_earnings=amount,
                ))
                session.flush()
        except IntegrityError:
            # Another writer created the row first; increment theirs.
            _increment(session, user_id, amount)

    session.add(LedgerEntry(
        user_id=user_id,
        amount=amount,
        category=LedgerCategory(category).value,
        description=description,
    ))
    session.flush()
    return _snapshot(session, user_id)


def _add_reading(session: Session, user_id: str, reading: Reading, reward: RewardResult) -> EnergyReading:
    row = EnergyReading(
        user_id=user_id,
        generated_kw=reading.generated_kw,
        consumed_kw=reading.consumed_kw,
        exported_surplus_kw=reward.exported_surplus_kw,
        tokens_earned=reward.tokens_earned,
        timestamp=reading.timestamp,
    )
    session.add(row)
    return row


# ---------------------------------------------------------------------------
# Public API — each call is one transaction
# ---------------------------------------------------------------------------
def credit(
    engine: Engine,
    user_id: str,
    amount: float,
    category: LedgerCategory | str = LedgerCategory.GENERATION,
    description: str | None = None,
) -> BalanceSnapshot:
    """Atomically add *amount* to a user's balance and log a ledger entry.

    Returns the balance after the credit.  A zero *amount* writes nothing and
    returns the current balance (zero snapshot if the user has none yet).

    Raises
    ------
    ValueError
        If *amount* is negative or not finite.
    LedgerUnavailable
        If the store fails.
    """
    amount = _validate_amount(amount)
    try:
        with get_session(engine) as session:
            snapshot = apply_credit(session, user_id, amount, category, description)
            if snapshot is None:
                snapshot = _snapshot(session, user_id) or BalanceSnapshot.zero(user_id)
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"credit failed for user {user_id}") from exc

    if amount > 0:
        logger.debug(
            "Credited %.3f (%s) to %s → balance %.3f",
            amount, category, user_id, snapshot.current_balance,
        )
    return snapshot


def read_balance(engine: Engine, user_id: str) -> BalanceSnapshot | None:
    """Return the user's balance, or ``None`` if they have never been credited."""
    try:
        with Session(engine) as session:
            return _snapshot(session, user_id)
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"balance read failed for user {user_id}") from exc


def read_balance_or_zero(engine: Engine, user_id: str) -> BalanceSnapshot:
    """Like :func:`read_balance` but absence is the zero snapshot."""
    return read_balance(engine, user_id) or BalanceSnapshot.zero(user_id)


def record_reading(
    engine: Engine,
    user_id: str,
    reading: Reading,
    reward: RewardResult,
    description: str | None = None,
) -> tuple[ReadingRecord, BalanceSnapshot | None]:
    """Persist one reading and credit its reward in a single transaction.

    Returns ``(reading_record, balance)``; *balance* is ``None`` when the
    reading earned nothing.
    """
    try:
        with get_session(engine) as session:
            row = _add_reading(session, user_id, reading, reward)
            balance = None
            if reward.earned_anything:
                balance = apply_credit(
                    session,
                    user_id,
                    reward.tokens_earned,
                    LedgerCategory.GENERATION,
                    description or (
                        f"Real-time generation: {reward.exported_surplus_kw} kWh surplus"
                    ),
                )
            session.flush()
            record = _to_reading_record(row)
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"reading write failed for user {user_id}") from exc
    return record, balance


def record_readings(
    engine: Engine,
    user_id: str,
    items: Iterable[tuple[Reading, RewardResult]],
) -> BulkResult:
    """Persist a batch of historical readings in one transaction.

    Each rewarded reading gets its own credit (and ledger row), exactly as if
    it had arrived live.
    """
    readings = 0
    entries = 0
    total = 0.0
    try:
        with get_session(engine) as session:
            for reading, reward in items:
                _add_reading(session, user_id, reading, reward)
                readings += 1
                if reward.earned_anything:
                    apply_credit(
                        session,
                        user_id,
                        reward.tokens_earned,
                        LedgerCategory.GENERATION,
                        f"Solar generation reward: {reward.exported_surplus_kw} kWh surplus exported",
                    )
                    entries += 1
                    total += reward.tokens_earned
            session.flush()
            balance = _snapshot(session, user_id) or BalanceSnapshot.zero(user_id)
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"bulk reading write failed for user {user_id}") from exc

    return BulkResult(
        readings=readings,
        ledger_entries=entries,
        total_tokens=round(total, 3),
        balance=balance,
    )


def list_ledger(engine: Engine, user_id: str, limit: int = 50) -> list[LedgerRecord]:
    """Newest-first ledger entries for *user_id*."""
    try:
        with Session(engine) as session:
            rows = session.scalars(
                select(LedgerEntry)
                .where(LedgerEntry.user_id == user_id)
                .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
                .limit(limit)
            ).all()
            return [_to_ledger_record(r) for r in rows]
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"ledger read failed for user {user_id}") from exc


def list_readings(engine: Engine, user_id: str, limit: int = 24) -> list[ReadingRecord]:
    """Newest-first energy readings for *user_id*."""
    try:
        with Session(engine) as session:
            rows = session.scalars(
                select(EnergyReading)
                .where(EnergyReading.user_id == user_id)
                .order_by(EnergyReading.timestamp.desc(), EnergyReading.id.desc())
                .limit(limit)
            ).all()
            return [_to_reading_record(r) for r in rows]
    except SQLAlchemyError as exc:
        raise LedgerUnavailable(f"readings read failed for user {user_id}") from exc


def latest_reading(engine: Engine, user_id: str) -> ReadingRecord | None:
    rows = list_readings(engine, user_id, limit=1)
    return rows[0] if rows else None
