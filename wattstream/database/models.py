"""
wattstream.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- energy_readings — Append-only synthetic meter readings with derived rewards
- token_ledger    — Append-only audit trail, one row per positive credit
- balances        — One mutable row per user (current / lifetime / today)

User identity is owned by the external auth layer; ``user_id`` is the opaque
subject string it hands us, so no ``users`` table lives here.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

USER_ID_LENGTH = 64


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all wattstream ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class LedgerCategory(enum.StrEnum):
    """Why a credit happened."""
    GENERATION = "generation"
    REFERRAL = "referral"
    MILESTONE = "milestone"


# ---------------------------------------------------------------------------
# EnergyReading — append-only reading journal
# ---------------------------------------------------------------------------
class EnergyReading(Base):
    __tablename__ = "energy_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    generated_kw: Mapped[float] = mapped_column(Float, nullable=False)
    consumed_kw: Mapped[float] = mapped_column(Float, nullable=False)
    exported_surplus_kw: Mapped[float] = mapped_column(Float, nullable=False)
    # Stored at write time so a later rate change never rewrites history
    tokens_earned: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("exported_surplus_kw >= 0", name="ck_readings_surplus_non_negative"),
        CheckConstraint("tokens_earned >= 0", name="ck_readings_tokens_non_negative"),
        Index("ix_energy_readings_user_time", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<EnergyReading id={self.id} user={self.user_id!r} "
            f"surplus={self.exported_surplus_kw} tokens={self.tokens_earned}>"
        )


# ---------------------------------------------------------------------------
# LedgerEntry — append-only audit trail of credits
# ---------------------------------------------------------------------------
class LedgerEntry(Base):
    __tablename__ = "token_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_token_ledger_amount_non_negative"),
        Index("ix_token_ledger_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} user={self.user_id!r} "
            f"amount={self.amount} category={self.category!r}>"
        )


# ---------------------------------------------------------------------------
# Balance — one row per user, mutated only by SQL-level increments
# ---------------------------------------------------------------------------
class Balance(Base):
    __tablename__ = "balances"

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), primary_key=True)
    current_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lifetime_earnings: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    todays_earnings: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_balances_current_non_negative"),
        CheckConstraint(
            "current_balance <= lifetime_earnings",
            name="ck_balances_current_within_lifetime",
        ),
        Index("ix_balances_lifetime_desc", "lifetime_earnings"),
    )

    def __repr__(self) -> str:
        return (
            f"<Balance user={self.user_id!r} current={self.current_balance} "
            f"lifetime={self.lifetime_earnings}>"
        )
