"""
wattstream.engine.synthesizer — Synthetic Meter Readings
=========================================================

Produces a plausible (generated, consumed) pair for a given instant.
No DB I/O, no network I/O.  The only impurity is the random draw, which can
be pinned by passing a seeded :class:`random.Random`.

Shape of a day:
  * Solar — bell curve over 06:00–18:00 peaking at noon, a 5 % trickle
    outside daylight so a night is never an all-zero stretch.
  * Consumption — morning bump (07–09), bigger evening bump (18–21),
    reduced overnight (22–06), neutral otherwise.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

# Base ranges, in kW
SOLAR_BASE_RANGE: tuple[float, float] = (2.0, 10.0)
CONSUMPTION_BASE_RANGE: tuple[float, float] = (1.0, 8.0)

NIGHT_SOLAR_MULTIPLIER = 0.05
MIN_DAYLIGHT_MULTIPLIER = 0.1

PRECISION = 3


class SynthesisError(ValueError):
    """Raised when a reading cannot be produced for the given timestamp."""


@dataclass(frozen=True, slots=True)
class Reading:
    """One synthetic meter sample."""

    generated_kw: float
    consumed_kw: float
    timestamp: datetime


# ---------------------------------------------------------------------------
# Hour-of-day profiles
# ---------------------------------------------------------------------------
def solar_multiplier(hour: int) -> float:
    """Fraction of the base solar output available at *hour* (0–23)."""
    if 6 <= hour <= 18:
        return max(MIN_DAYLIGHT_MULTIPLIER, 1 - abs(hour - 12) / 8)
    return NIGHT_SOLAR_MULTIPLIER


def consumption_multiplier(hour: int) -> float:
    """Household load factor at *hour* (0–23)."""
    if 7 <= hour <= 9:
        return 1.3
    if 18 <= hour <= 21:
        return 1.4
    if hour >= 22 or hour <= 6:
        return 0.7
    return 1.0


def _local_hour(timestamp: datetime, tz: tzinfo | None) -> int:
    if tz is None:
        return timestamp.hour
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(tz).hour


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def synthesize(
    timestamp: datetime | None = None,
    *,
    rng: random.Random | None = None,
    tz: tzinfo | None = None,
) -> Reading:
    """Synthesize one reading for *timestamp* (``None`` → now, UTC).

    Parameters
    ----------
    timestamp : historical instant for backfill, or ``None`` for a live tick
    rng : random source; defaults to the module-level generator
    tz : zone in which hour-of-day is evaluated; ``None`` uses the
         timestamp's own wall clock

    Raises
    ------
    SynthesisError
        If *timestamp* is not a :class:`datetime`.
    """
    if timestamp is None:
        timestamp = datetime.now(UTC)
    if not isinstance(timestamp, datetime):
        raise SynthesisError(f"Cannot synthesize a reading for {timestamp!r}")

    rand = rng or random
    hour = _local_hour(timestamp, tz)

    base_solar = rand.uniform(*SOLAR_BASE_RANGE)
    base_load = rand.uniform(*CONSUMPTION_BASE_RANGE)

    return Reading(
        generated_kw=round(base_solar * solar_multiplier(hour), PRECISION),
        consumed_kw=round(base_load * consumption_multiplier(hour), PRECISION),
        timestamp=timestamp,
    )
