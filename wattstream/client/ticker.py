"""
wattstream.client.ticker — Live WATT Balance Ticker
=====================================================

Keeps a dashboard's displayed balance in step with the ledger using two
sources at once:

- **Push** — a live channel to ``/ws``; after subscribing, every
  ``balance_update`` animates the ticker and, when ``earned`` is nonzero,
  flashes an "+N WATT" indicator.
- **Poll** — ``GET /api/wallet`` every ``poll_interval`` seconds (first poll
  immediately).  Polling never stops, so a dead channel only costs latency.

Both sources reconcile *by value* against the highest balance seen so far.
A push and a poll that carry the same number are the same event, so the
indicator is shown once; a value below it is stale and ignored.  The first value seen is the baseline: no animation, no
indicator.

Channel lifecycle::

    DISCONNECTED → CONNECTING → SUBSCRIBED ⇄ RECONNECTING

Every close (or failed connect) schedules exactly one reconnect after
``reconnect_delay`` seconds.

Usage::

    async with BalanceTicker(
        user_id,
        fetch_balance=http_balance_fetcher("http://localhost:8000", token),
        open_channel=websocket_opener(live_url("http://localhost:8000")),
    ) as ticker:
        ...
        print(ticker.render())      # "1234 WATT (+2.5)"
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol

import httpx
import websockets
from pydantic import ValidationError

from wattstream.constants import LIVE_CHANNEL_PATH, MSG_BALANCE_UPDATE, TOKEN_SYMBOL, WALLET_PATH
from wattstream.wire import BalanceOut, BalanceUpdateMessage, SubscribeMessage

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_ANIMATION_DURATION = 1.0
DEFAULT_INDICATOR_DURATION = 3.0


class TickerState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    RECONNECTING = "reconnecting"


class LiveConnection(Protocol):
    """The slice of a client WebSocket the ticker uses."""

    async def send(self, message: str) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...

    async def close(self) -> None: ...


FetchBalance = Callable[[], Awaitable[float]]
OpenChannel = Callable[[], Awaitable[LiveConnection]]


# ---------------------------------------------------------------------------
# Animation maths
# ---------------------------------------------------------------------------
def ease_out_cubic(progress: float) -> float:
    progress = min(max(progress, 0.0), 1.0)
    return 1 - (1 - progress) ** 3


def interpolate(start: float, end: float, elapsed: float, duration: float) -> float:
    """Value shown *elapsed* seconds into a *duration*-long animation."""
    if duration <= 0 or elapsed >= duration:
        return end
    return start + (end - start) * ease_out_cubic(elapsed / duration)


# ---------------------------------------------------------------------------
# Ticker
# ---------------------------------------------------------------------------
class BalanceTicker:
    """Displayed-balance state machine for one user."""

    def __init__(
        self,
        user_id: str,
        *,
        fetch_balance: FetchBalance,
        open_channel: OpenChannel,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        animation_duration: float = DEFAULT_ANIMATION_DURATION,
        indicator_duration: float = DEFAULT_INDICATOR_DURATION,
        frame_interval: float = 1 / 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_id = user_id
        self._fetch_balance = fetch_balance
        self._open_channel = open_channel
        self.poll_interval = poll_interval
        self.reconnect_delay = reconnect_delay
        self.animation_duration = animation_duration
        self.indicator_duration = indicator_duration
        self.frame_interval = frame_interval
        self._clock = clock

        self.state = TickerState.DISCONNECTED
        self.displayed: float = 0.0
        self.target: float | None = None          # highest known balance
        self.earned_indicator: float | None = None

        self._closed = True
        self._connection: LiveConnection | None = None
        self._channel_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._animation_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._indicator_handle: asyncio.TimerHandle | None = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start(self) -> None:
        """Open the live channel and start polling.  Idempotent."""
        if not self._closed:
            return
        self._closed = False
        loop = asyncio.get_running_loop()
        self._channel_task = loop.create_task(self._run_channel())
        self._poll_task = loop.create_task(self._poll_loop())

    async def close(self) -> None:
        """Release every task, timer and the channel."""
        self._closed = True
        tasks = [
            t for t in (self._channel_task, self._poll_task, self._animation_task)
            if t is not None
        ]
        try:
            for handle in (self._reconnect_handle, self._indicator_handle):
                if handle is not None:
                    handle.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._reconnect_handle = None
            self._indicator_handle = None
            self._channel_task = self._poll_task = self._animation_task = None
            connection, self._connection = self._connection, None
            if connection is not None:
                await _close_quietly(connection)
            self.state = TickerState.DISCONNECTED

    async def __aenter__(self) -> BalanceTicker:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -------------------------------------------------------------------
    # Live channel
    # -------------------------------------------------------------------
    async def _run_channel(self) -> None:
        if self.state is not TickerState.RECONNECTING:
            self.state = TickerState.CONNECTING
        try:
            connection = await self._open_channel()
        except Exception:
            logger.warning("Live channel connect failed for %s", self.user_id, exc_info=True)
            self._schedule_reconnect()
            return

        self._connection = connection
        try:
            subscribe = SubscribeMessage(user_id=self.user_id)
            await connection.send(subscribe.model_dump_json(by_alias=True))
            self.state = TickerState.SUBSCRIBED
            logger.info("Ticker subscribed for %s", self.user_id)
            async for raw in connection:
                self.handle_message(raw)
        except Exception:
            logger.warning("Live channel dropped for %s", self.user_id, exc_info=True)
        finally:
            if self._connection is connection:
                self._connection = None
            await _close_quietly(connection)

        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closed:
            return
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
        self.state = TickerState.RECONNECTING
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self.reconnect_delay, self._reconnect,
        )

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if self._closed:
            return
        logger.info("Reconnecting live channel for %s", self.user_id)
        self._channel_task = asyncio.get_running_loop().create_task(self._run_channel())

    def handle_message(self, raw: str | bytes) -> None:
        """Apply one inbound channel message; anything malformed is ignored."""
        try:
            data = json.loads(raw)
            if not isinstance(data, dict) or data.get("type") != MSG_BALANCE_UPDATE:
                return
            message = BalanceUpdateMessage.model_validate(data)
        except (ValueError, ValidationError):
            logger.warning("Ignoring malformed channel message: %r", raw)
            return
        self.apply_push(message.balance, message.earned)

    # -------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------
    async def _poll_loop(self) -> None:
        while True:
            try:
                balance = await self._fetch_balance()
            except Exception:
                logger.warning("Balance poll failed for %s", self.user_id, exc_info=True)
            else:
                self.apply_poll(balance)
            await asyncio.sleep(self.poll_interval)

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    # The ledger only ever credits, so the highest balance seen is the newest.
    # A value at or below it is stale (a poll that left before a push landed)
    # or the same event arriving by the other path.
    def apply_push(self, balance: float, earned: float | None = None) -> None:
        if self._set_baseline(balance) or not self._is_newer(balance):
            return
        if earned:
            self.show_earned(earned)
        self.animate_to(balance)

    def apply_poll(self, balance: float) -> None:
        if self._set_baseline(balance) or not self._is_newer(balance):
            return
        self.show_earned(round(balance - self.target, 3))
        self.animate_to(balance)

    def _is_newer(self, balance: float) -> bool:
        return balance > self.target

    def _set_baseline(self, balance: float) -> bool:
        if self.target is not None:
            return False
        self.target = balance
        self.displayed = balance
        return True

    # -------------------------------------------------------------------
    # Animation / indicator
    # -------------------------------------------------------------------
    @property
    def is_animating(self) -> bool:
        return self._animation_task is not None and not self._animation_task.done()

    def animate_to(self, end: float) -> None:
        """Ease the displayed value from where it is now to *end*."""
        self.target = end
        if self._animation_task is not None:
            self._animation_task.cancel()
            self._animation_task = None
        start = self.displayed
        if start == end:
            return
        self._animation_task = asyncio.get_running_loop().create_task(
            self._animate(start, end)
        )

    async def _animate(self, start: float, end: float) -> None:
        began = self._clock()
        while True:
            elapsed = self._clock() - began
            self.displayed = interpolate(start, end, elapsed, self.animation_duration)
            if elapsed >= self.animation_duration:
                break
            await asyncio.sleep(self.frame_interval)
        self.displayed = end

    async def settle(self) -> None:
        """Wait for the running animation, if any, to finish."""
        task = self._animation_task
        if task is not None:
            await asyncio.shield(task)

    def show_earned(self, amount: float) -> None:
        self.earned_indicator = amount
        if self._indicator_handle is not None:
            self._indicator_handle.cancel()
        self._indicator_handle = asyncio.get_running_loop().call_later(
            self.indicator_duration, self._hide_earned,
        )

    def _hide_earned(self) -> None:
        self._indicator_handle = None
        self.earned_indicator = None

    def render(self) -> str:
        text = f"{self.displayed:.0f} {TOKEN_SYMBOL}"
        if self.earned_indicator:
            text += f" (+{self.earned_indicator:.1f})"
        return text


async def _close_quietly(connection: LiveConnection) -> None:
    try:
        await connection.close()
    except Exception:
        logger.debug("Channel close raised", exc_info=True)


# ---------------------------------------------------------------------------
# Default transports
# ---------------------------------------------------------------------------
def live_url(base_url: str) -> str:
    """``http(s)://host`` → ``ws(s)://host/ws``."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + LIVE_CHANNEL_PATH


def http_balance_fetcher(base_url: str, token: str, *, timeout: float = 10.0) -> FetchBalance:
    """Poll ``GET /api/wallet`` with a bearer token."""

    async def fetch() -> float:
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:
            response = await client.get(
                WALLET_PATH, headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        return BalanceOut.model_validate(response.json()).current_balance

    return fetch


def websocket_opener(url: str) -> OpenChannel:
    """Open a ``websockets`` client connection to *url*."""

    async def open_channel() -> LiveConnection:
        return await websockets.connect(url)

    return open_channel
