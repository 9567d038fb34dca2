"""
wattstream.config — YAML Configuration Loader
==============================================

**Why this file exists:**
This module reads ``config.yaml`` for deployment settings: the display
timezone used by the reading synthesizer, the cadence of the two background
generators, and the bounds of the demo seeding endpoint.

The auto-seeder keeps the environment switches it has always had
(``AUTO_SEEDER_ENABLED``, ``AUTO_SEEDER_INTERVAL``, ``AUTO_SEEDER_MAX_USERS``);
when set they win over the YAML values.

Usage::

    from wattstream.config import load_config

    cfg = load_config()                   # reads ./config.yaml by default
    print(cfg.ambient_interval_seconds)   # 300
    print(cfg.auto_seeder_enabled)        # False
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

from wattstream.constants import MAX_SEED_DAYS, MAX_SEED_HOURS_PER_DAY


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WattConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str = "WattStream"

    # Synthesizer — hour-of-day is evaluated in this zone
    timezone: str = "UTC"

    # Ambient generator
    ambient_enabled: bool = True
    ambient_interval_seconds: float = 300.0
    backfill_hours: int = 24

    # Auto-seed cycle
    auto_seeder_enabled: bool = False
    auto_seeder_interval_minutes: float = 5.0
    auto_seeder_max_users: int = 10
    auto_seeder_initial_delay_seconds: float = 30.0

    # Demo seeding endpoint bounds
    max_seed_days: int = MAX_SEED_DAYS
    max_seed_hours_per_day: int = MAX_SEED_HOURS_PER_DAY

    @property
    def tz(self) -> tzinfo:
        """Display zone; plain UTC needs no tz database."""
        if self.timezone.upper() == "UTC":
            return UTC
        return ZoneInfo(self.timezone)


# ---------------------------------------------------------------------------
# Env helpers
# ---------------------------------------------------------------------------
def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: float, cast=float):
    """Positive number from env; anything else keeps *default*."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def config_from_mapping(raw: dict | None) -> WattConfig:
    """Build a :class:`WattConfig` from a parsed YAML mapping plus env overrides.

    Missing keys fall back to the dataclass defaults.
    """
    raw = raw or {}
    defaults = WattConfig()

    auto_enabled = bool(raw.get("auto_seeder_enabled", defaults.auto_seeder_enabled))
    auto_interval = float(
        raw.get("auto_seeder_interval_minutes", defaults.auto_seeder_interval_minutes)
    )
    auto_max = int(raw.get("auto_seeder_max_users", defaults.auto_seeder_max_users))

    return WattConfig(
        site_name=str(raw.get("site_name", defaults.site_name)),
        timezone=str(raw.get("timezone", defaults.timezone)),
        ambient_enabled=bool(raw.get("ambient_enabled", defaults.ambient_enabled)),
        ambient_interval_seconds=float(
            raw.get("ambient_interval_seconds", defaults.ambient_interval_seconds)
        ),
        backfill_hours=int(raw.get("backfill_hours", defaults.backfill_hours)),
        auto_seeder_enabled=_env_bool("AUTO_SEEDER_ENABLED", auto_enabled),
        auto_seeder_interval_minutes=_env_number("AUTO_SEEDER_INTERVAL", auto_interval),
        auto_seeder_max_users=_env_number("AUTO_SEEDER_MAX_USERS", auto_max, cast=int),
        auto_seeder_initial_delay_seconds=float(
            raw.get(
                "auto_seeder_initial_delay_seconds",
                defaults.auto_seeder_initial_delay_seconds,
            )
        ),
        max_seed_days=int(raw.get("max_seed_days", defaults.max_seed_days)),
        max_seed_hours_per_day=int(
            raw.get("max_seed_hours_per_day", defaults.max_seed_hours_per_day)
        ),
    )


def load_config(path: str | Path = "config.yaml") -> WattConfig:
    """Read *path* and return a :class:`WattConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict | None = yaml.safe_load(fh)

    return config_from_mapping(raw)
