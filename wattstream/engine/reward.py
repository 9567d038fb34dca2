"""
wattstream.engine.reward — Surplus → Token Reward
==================================================

Pure calculation.  No DB I/O inside the engine.

Pipeline:
  Reading → Surplus (clamped at zero) → × CONVERSION_RATE → RewardResult
"""

from __future__ import annotations

from dataclasses import dataclass

from wattstream.engine.synthesizer import PRECISION, Reading

# WATT tokens per kWh of exported surplus.  Persisted rows keep the value
# computed at write time.
CONVERSION_RATE = 0.75

__all__ = [
    "CONVERSION_RATE",
    "RewardResult",
    "calculate_reward",
    "exported_surplus",
]


@dataclass(frozen=True, slots=True)
class RewardResult:
    """Reward derived from a single reading."""

    exported_surplus_kw: float = 0.0
    tokens_earned: float = 0.0

    @property
    def earned_anything(self) -> bool:
        return self.tokens_earned > 0


def exported_surplus(generated_kw: float, consumed_kw: float) -> float:
    """Generated energy beyond consumption; never negative."""
    return max(0.0, generated_kw - consumed_kw)


def calculate_reward(reading: Reading) -> RewardResult:
    """Derive surplus and tokens for *reading*.

    This is a PURE function, total for finite inputs.
    """
    surplus = round(exported_surplus(reading.generated_kw, reading.consumed_kw), PRECISION)
    return RewardResult(
        exported_surplus_kw=surplus,
        tokens_earned=round(surplus * CONVERSION_RATE, PRECISION),
    )
