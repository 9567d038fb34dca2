"""
wattstream.wire — Shared wire models
======================================

The bodies that both ends of the dashboard speak: the live-channel messages
and the wallet balance.  The server (``wattstream.services``, ``wattstream.api``)
and the client (``wattstream.client``) import them from here so neither
depends on the other.  Field names on the wire are camelCase.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from wattstream.constants import MSG_BALANCE_UPDATE, MSG_SUBSCRIBE


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscribeMessage(WireModel):
    type: Literal["subscribe"] = MSG_SUBSCRIBE
    user_id: str = Field(min_length=1, max_length=64)


class BalanceUpdateMessage(WireModel):
    type: Literal["balance_update"] = MSG_BALANCE_UPDATE
    balance: float
    earned: float | None = None
    timestamp: datetime


class BalanceOut(WireModel):
    current_balance: float = 0.0
    lifetime_earnings: float = 0.0
    todays_earnings: float = 0.0
    last_updated: datetime | None = None
