"""
wattstream.services.generators — Background Reading Generators
===============================================================

Two independently controlled loops feed the accrual pipeline:

- **Ambient generator** — every ``interval_seconds`` (default 5 min), one
  reading "now" for every tracked user.  A user seen for the first time is
  backfilled with the last ``backfill_hours`` hourly readings.
- **Auto-seeder** — every ``interval_minutes``, one reading for at most
  ``max_users_per_cycle`` users.  Off unless ``AUTO_SEEDER_ENABLED`` is set.

Both share :class:`PeriodicGenerator`, a two-state machine::

    STOPPED --start()--> RUNNING --stop()--> STOPPED

``start()`` on a running generator is a no-op, so toggling from the API can
never leave two timers behind.  Ticks are sequential (sleep → cycle →
sleep), so a slow cycle pushes the next one back instead of overlapping it.
A cycle that blows up is logged and the loop carries on; inside a cycle,
each user is isolated from the others' failures.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wattstream.services.accrual_service import AccrualPipeline

logger = logging.getLogger(__name__)


class GeneratorState(enum.StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class CycleReport:
    """What one generator cycle did."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    tokens: float = 0.0
    failed_users: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Shared loop / state machine
# ---------------------------------------------------------------------------
class PeriodicGenerator:
    """Runs :meth:`run_cycle` every ``interval_seconds`` while RUNNING."""

    name = "generator"

    def __init__(
        self,
        pipeline: AccrualPipeline,
        *,
        interval_seconds: float,
        enabled: bool = True,
        initial_delay_seconds: float | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.pipeline = pipeline
        self.interval_seconds = float(interval_seconds)
        self.enabled = enabled
        self.initial_delay_seconds = initial_delay_seconds
        self._users: dict[str, None] = {}   # insertion-ordered set
        self._task: asyncio.Task | None = None

    # -------------------------------------------------------------------
    # Tracked users
    # -------------------------------------------------------------------
    @property
    def users(self) -> list[str]:
        return list(self._users)

    def track(self, user_id: str) -> bool:
        """Start tracking *user_id*; False if already tracked."""
        if user_id in self._users:
            return False
        self._users[user_id] = None
        logger.info(
            "%s: tracking user %s (%d total)", self.name, user_id, len(self._users),
        )
        return True

    def remove_user(self, user_id: str) -> None:
        if user_id in self._users:
            del self._users[user_id]
            logger.info(
                "%s: stopped tracking user %s (%d total)",
                self.name, user_id, len(self._users),
            )

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    @property
    def state(self) -> GeneratorState:
        if self._task is not None and not self._task.done():
            return GeneratorState.RUNNING
        return GeneratorState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state is GeneratorState.RUNNING

    def start(self) -> bool:
        """Start the loop on the running event loop.

        Returns True only if a new loop was started.
        """
        if not self.enabled:
            logger.info("%s disabled via configuration", self.name)
            return False
        if self.is_running:
            logger.debug("%s already running", self.name)
            return False

        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"{self.name}-loop"
        )
        logger.info("%s started (every %.1fs)", self.name, self.interval_seconds)
        return True

    def stop(self) -> bool:
        """Cancel the loop.  Returns True if one was running."""
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("%s stopped", self.name)
        return True

    async def aclose(self) -> None:
        """Stop and wait for the loop task to finish unwinding."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def reconfigure(
        self,
        *,
        enabled: bool | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        """Apply new settings at runtime, restarting the loop if needed."""
        was_running = self.is_running
        interval_changed = (
            interval_seconds is not None and float(interval_seconds) != self.interval_seconds
        )
        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValueError("interval_seconds must be positive")
            self.interval_seconds = float(interval_seconds)
        if enabled is not None:
            self.enabled = enabled

        logger.info(
            "%s reconfigured: enabled=%s interval=%.1fs",
            self.name, self.enabled, self.interval_seconds,
        )

        if not self.enabled:
            self.stop()
        elif not was_running:
            self.start()
        elif interval_changed:
            self.stop()
            self.start()

    async def _loop(self) -> None:
        delay = self.initial_delay_seconds
        await asyncio.sleep(self.interval_seconds if delay is None else delay)
        while True:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("%s cycle failed", self.name, extra={"task": self.name})
            await asyncio.sleep(self.interval_seconds)

    # -------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------
    def batch(self) -> list[str]:
        return self.users

    async def run_cycle(self) -> CycleReport:
        """Accrue one live reading for every user in :meth:`batch`."""
        report = CycleReport()
        for user_id in self.batch():
            report.processed += 1
            try:
                result = await self.pipeline.accrue(user_id)
            except Exception:
                report.failed += 1
                report.failed_users.append(user_id)
                logger.exception("%s: error generating data for user %s", self.name, user_id)
                continue
            report.succeeded += 1
            report.tokens += result.tokens_earned
            logger.debug(
                "%s: generated data for user %s - %.3f WATT earned",
                self.name, user_id, result.tokens_earned,
            )

        if report.processed:
            logger.info(
                "%s: cycle complete - %d success, %d errors",
                self.name, report.succeeded, report.failed,
            )
        else:
            logger.debug("%s: no active users", self.name)
        return report


# ---------------------------------------------------------------------------
# Ambient generator
# ---------------------------------------------------------------------------
class AmbientGenerator(PeriodicGenerator):
    """Always-on reading generator with a registration-time backfill."""

    name = "ambient-generator"

    def __init__(
        self,
        pipeline: AccrualPipeline,
        *,
        interval_seconds: float = 300.0,
        backfill_hours: int = 24,
        enabled: bool = True,
    ) -> None:
        super().__init__(pipeline, interval_seconds=interval_seconds, enabled=enabled)
        self.backfill_hours = backfill_hours

    async def add_user(self, user_id: str) -> bool:
        """Track *user_id*; on first sight, backfill its recent history.

        Returns True if the user was new.  A failed backfill is logged; the
        user stays tracked and will accrue from the next tick.
        """
        if not self.track(user_id):
            return False
        if self.backfill_hours > 0:
            try:
                await self.pipeline.backfill_hours(user_id, self.backfill_hours)
            except Exception:
                logger.exception("%s: backfill failed for %s", self.name, user_id)
        return True

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "tracked_users": len(self._users),
            "interval_seconds": self.interval_seconds,
            "backfill_hours": self.backfill_hours,
            "is_running": self.is_running,
        }


# ---------------------------------------------------------------------------
# Auto-seeder
# ---------------------------------------------------------------------------
class AutoSeeder(PeriodicGenerator):
    """Toggleable demo cycle, bounded to ``max_users_per_cycle`` users."""

    name = "auto-seeder"

    def __init__(
        self,
        pipeline: AccrualPipeline,
        *,
        interval_minutes: float = 5.0,
        max_users_per_cycle: int = 10,
        enabled: bool = False,
        initial_delay_seconds: float | None = 30.0,
    ) -> None:
        super().__init__(
            pipeline,
            interval_seconds=interval_minutes * 60,
            enabled=enabled,
            initial_delay_seconds=initial_delay_seconds,
        )
        if max_users_per_cycle < 1:
            raise ValueError("max_users_per_cycle must be at least 1")
        self.max_users_per_cycle = max_users_per_cycle

    def add_user(self, user_id: str) -> bool:
        return self.track(user_id)

    @property
    def interval_minutes(self) -> float:
        return self.interval_seconds / 60

    def batch(self) -> list[str]:
        return self.users[: self.max_users_per_cycle]

    def update_config(
        self,
        *,
        enabled: bool | None = None,
        interval_minutes: float | None = None,
        max_users_per_cycle: int | None = None,
    ) -> None:
        if max_users_per_cycle is not None:
            if max_users_per_cycle < 1:
                raise ValueError("max_users_per_cycle must be at least 1")
            self.max_users_per_cycle = max_users_per_cycle
        self.reconfigure(
            enabled=enabled,
            interval_seconds=None if interval_minutes is None else interval_minutes * 60,
        )

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "active_users": len(self._users),
            "interval_minutes": self.interval_minutes,
            "max_users_per_cycle": self.max_users_per_cycle,
            "is_running": self.is_running,
        }
