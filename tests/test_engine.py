"""
tests/test_engine.py — Reading Synthesizer & Reward Calculator
================================================================
Pure functions only; no DB.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta, timezone

import pytest

from wattstream.engine.reward import (
    CONVERSION_RATE,
    RewardResult,
    calculate_reward,
    exported_surplus,
)
from wattstream.engine.synthesizer import (
    NIGHT_SOLAR_MULTIPLIER,
    Reading,
    SynthesisError,
    consumption_multiplier,
    solar_multiplier,
    synthesize,
)


class _Midpoint(random.Random):
    """Deterministic source: every draw is the middle of its range."""

    def uniform(self, a, b):
        return (a + b) / 2


def _at(hour: int) -> datetime:
    return datetime(2026, 7, 1, hour, 0, tzinfo=UTC)


def _reading(generated: float, consumed: float) -> Reading:
    return Reading(generated_kw=generated, consumed_kw=consumed, timestamp=_at(12))


# ===========================================================================
# Hour-of-day profiles
# ===========================================================================
class TestSolarMultiplier:
    def test_peaks_at_noon(self):
        assert solar_multiplier(12) == 1.0

    @pytest.mark.parametrize("hour,expected", [(6, 0.25), (8, 0.5), (16, 0.5), (18, 0.25)])
    def test_daylight_curve(self, hour, expected):
        assert solar_multiplier(hour) == pytest.approx(expected)

    @pytest.mark.parametrize("hour", [0, 3, 5, 19, 23])
    def test_night_trickle(self, hour):
        assert solar_multiplier(hour) == NIGHT_SOLAR_MULTIPLIER

    def test_never_below_floor_in_daylight(self):
        assert all(solar_multiplier(h) >= 0.1 for h in range(6, 19))


class TestConsumptionMultiplier:
    @pytest.mark.parametrize(
        "hour,expected",
        [(7, 1.3), (9, 1.3), (18, 1.4), (21, 1.4), (22, 0.7), (0, 0.7), (6, 0.7), (12, 1.0), (15, 1.0)],
    )
    def test_profile(self, hour, expected):
        assert consumption_multiplier(hour) == expected


# ===========================================================================
# synthesize
# ===========================================================================
class TestSynthesize:
    def test_noon_midpoint(self):
        reading = synthesize(_at(12), rng=_Midpoint())
        assert reading.generated_kw == pytest.approx(6.0)
        assert reading.consumed_kw == pytest.approx(4.5)
        assert reading.timestamp == _at(12)

    def test_morning_peak_load(self):
        reading = synthesize(_at(8), rng=_Midpoint())
        assert reading.generated_kw == pytest.approx(3.0)
        assert reading.consumed_kw == pytest.approx(5.85)

    @pytest.mark.parametrize("hour", [0, 23])
    def test_edge_hours_are_ordinary(self, hour):
        reading = synthesize(_at(hour), rng=_Midpoint())
        assert reading.generated_kw == pytest.approx(0.3)
        assert reading.consumed_kw == pytest.approx(3.15)

    def test_values_stay_in_range(self):
        rng = random.Random(42)
        for hour in range(24):
            reading = synthesize(_at(hour), rng=rng)
            assert 0 <= reading.generated_kw <= 10.0
            assert 0 <= reading.consumed_kw <= 8.0 * 1.4

    def test_rounded_to_three_decimals(self):
        reading = synthesize(_at(10), rng=random.Random(7))
        assert reading.generated_kw == round(reading.generated_kw, 3)
        assert reading.consumed_kw == round(reading.consumed_kw, 3)

    def test_none_means_now(self):
        before = datetime.now(UTC)
        reading = synthesize(None, rng=_Midpoint())
        assert reading.timestamp >= before
        assert reading.timestamp.tzinfo is not None

    def test_hour_taken_in_display_zone(self):
        # 12:00 UTC is 08:00 at UTC-4
        reading = synthesize(_at(12), rng=_Midpoint(), tz=timezone(timedelta(hours=-4)))
        assert reading.generated_kw == pytest.approx(3.0)
        assert reading.consumed_kw == pytest.approx(5.85)

    def test_rejects_non_datetime(self):
        with pytest.raises(SynthesisError):
            synthesize("2026-07-01T12:00:00")  # type: ignore[arg-type]


# ===========================================================================
# Reward
# ===========================================================================
class TestReward:
    def test_conversion_rate(self):
        assert CONVERSION_RATE == 0.75

    def test_surplus_rewarded(self):
        result = calculate_reward(_reading(10.0, 4.0))
        assert result == RewardResult(exported_surplus_kw=6.0, tokens_earned=4.5)
        assert result.earned_anything

    def test_deficit_clamped_to_zero(self):
        result = calculate_reward(_reading(3.0, 5.0))
        assert result.exported_surplus_kw == 0.0
        assert result.tokens_earned == 0.0
        assert not result.earned_anything

    def test_break_even(self):
        assert calculate_reward(_reading(4.2, 4.2)).tokens_earned == 0.0

    def test_exported_surplus_never_negative(self):
        assert exported_surplus(0.0, 8.0) == 0.0

    def test_rounding(self):
        result = calculate_reward(_reading(5.333, 1.0))
        assert result.exported_surplus_kw == 4.333
        assert result.tokens_earned == round(4.333 * 0.75, 3)
