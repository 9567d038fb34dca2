"""
wattstream.services.broadcaster — Live Balance Pushes
======================================================

Keeps a registry of live client channels keyed by user id and pushes
``balance_update`` messages to them after every nonzero credit.

Delivery is best effort.  A user with no open channel simply misses the
push; their dashboard's polling loop picks the value up on its next tick.

Registry rules:
  * One authoritative channel per user — the newest ``register`` wins.  The
    older transport is left open, it just stops receiving pushes.
  * ``unregister`` looks the channel up by identity, since a transport does
    not know which user it was registered under.
  * A failed send drops the registration (only if it is still the same
    channel) and is otherwise treated as "not connected".

The registry is guarded by a lock: pushes happen on the event loop, but
``run_db`` callers and tests may touch it from worker threads.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from wattstream.database.engine import run_db
from wattstream.services.ledger_service import (
    BalanceSnapshot,
    LedgerUnavailable,
    read_balance_or_zero,
)
from wattstream.wire import BalanceUpdateMessage

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class ChannelSendFailure(RuntimeError):
    """A push could not be written to a registered channel."""


@runtime_checkable
class LiveChannel(Protocol):
    """Anything we can push JSON to (WebSocket adapter, test double, …)."""

    @property
    def is_open(self) -> bool: ...

    async def send_json(self, data: dict[str, Any]) -> None: ...


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
class ChannelRegistry:
    """Thread-safe ``user_id → channel`` map (last registration wins)."""

    def __init__(self) -> None:
        self._channels: dict[str, LiveChannel] = {}
        self._lock = threading.Lock()

    def set(self, user_id: str, channel: LiveChannel) -> LiveChannel | None:
        """Store *channel* for *user_id*; return the channel it replaced."""
        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel
        return previous if previous is not channel else None

    def get(self, user_id: str) -> LiveChannel | None:
        with self._lock:
            return self._channels.get(user_id)

    def remove_channel(self, channel: LiveChannel) -> str | None:
        """Drop *channel* wherever it is registered; return its user id."""
        with self._lock:
            for user_id, registered in self._channels.items():
                if registered is channel:
                    del self._channels[user_id]
                    return user_id
        return None

    def discard(self, user_id: str, channel: LiveChannel) -> bool:
        """Remove *user_id* only if it still points at *channel*."""
        with self._lock:
            if self._channels.get(user_id) is channel:
                del self._channels[user_id]
                return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._channels


# ---------------------------------------------------------------------------
# Broadcaster
# ---------------------------------------------------------------------------
class BalanceBroadcaster:
    """Pushes balance updates to the owning user's live channel.

    Constructed once per app (see ``wattstream.api.main.lifespan``) and
    torn down with :meth:`close`.

    Usage::

        broadcaster = BalanceBroadcaster(engine)
        await broadcaster.register(user_id, channel)
        await broadcaster.push(user_id, snapshot.current_balance, earned=2.5)
    """

    def __init__(self, engine: Engine, registry: ChannelRegistry | None = None) -> None:
        self._engine = engine
        self.registry = registry or ChannelRegistry()

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------
    async def register(self, user_id: str, channel: LiveChannel) -> None:
        """Register *channel* for *user_id* and push the current balance."""
        replaced = self.registry.set(user_id, channel)
        if replaced is not None:
            logger.info("User %s re-subscribed; newer channel supersedes the old one", user_id)
        else:
            logger.info("User %s subscribed to balance updates", user_id)

        try:
            snapshot = await run_db(read_balance_or_zero, self._engine, user_id)
        except LedgerUnavailable:
            logger.exception("Initial balance read failed for %s", user_id)
            return
        await self.push(user_id, snapshot.current_balance)

    def unregister(self, channel: LiveChannel) -> str | None:
        """Forget *channel*; unknown channels are ignored."""
        user_id = self.registry.remove_channel(channel)
        if user_id is not None:
            logger.info("User %s disconnected from balance updates", user_id)
        return user_id

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    async def push(
        self,
        user_id: str,
        balance: float,
        earned: float | None = None,
    ) -> bool:
        """Send a ``balance_update`` to *user_id*'s channel, if any.

        Returns True when the message was written to an open channel.
        """
        channel = self.registry.get(user_id)
        if channel is None:
            return False
        if not channel.is_open:
            self.registry.discard(user_id, channel)
            return False

        message = BalanceUpdateMessage(
            balance=balance,
            earned=earned,
            timestamp=datetime.now(UTC),
        )
        payload = message.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            await self._send(channel, payload)
        except ChannelSendFailure:
            logger.debug("Dropping stale channel for %s", user_id, exc_info=True)
            self.registry.discard(user_id, channel)
            return False

        logger.debug("Pushed balance %.3f (+%s) to %s", balance, earned or 0, user_id)
        return True

    async def push_snapshot(
        self, snapshot: BalanceSnapshot, earned: float | None = None,
    ) -> bool:
        return await self.push(snapshot.user_id, snapshot.current_balance, earned)

    @staticmethod
    async def _send(channel: LiveChannel, payload: dict[str, Any]) -> None:
        try:
            await channel.send_json(payload)
        except Exception as exc:
            raise ChannelSendFailure(str(exc)) from exc

    def close(self) -> None:
        """Drop every registration (process shutdown)."""
        self.registry.clear()
