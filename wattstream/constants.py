"""
wattstream.constants — Shared Constants
========================================

Single source of truth for wire-level names and request bounds shared by the
API, the broadcaster and the client ticker.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Live channel
# ---------------------------------------------------------------------------
LIVE_CHANNEL_PATH = "/ws"
WALLET_PATH = "/api/wallet"

MSG_SUBSCRIBE = "subscribe"
MSG_BALANCE_UPDATE = "balance_update"

# ---------------------------------------------------------------------------
# Token display
# ---------------------------------------------------------------------------
TOKEN_SYMBOL = "WATT"

# ---------------------------------------------------------------------------
# Demo seeding bounds (per request)
# ---------------------------------------------------------------------------
MAX_SEED_DAYS = 30
MAX_SEED_HOURS_PER_DAY = 24
DEFAULT_SEED_DAYS = 7

# Ad hoc test credit range, in WATT
TEST_CREDIT_MIN = 1.0
TEST_CREDIT_MAX = 6.0
