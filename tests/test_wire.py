"""
tests/test_wire.py — Shared wire models
=========================================
The live-channel messages and wallet body are shared by the server and the
client, so neither the services nor the client may reach into the API layer.
"""

from __future__ import annotations

import ast
import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

import wattstream
from wattstream.wire import BalanceOut, BalanceUpdateMessage, SubscribeMessage

PACKAGE_ROOT = Path(wattstream.__file__).parent


def _imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    modules: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            modules.add(node.module)
        elif isinstance(node, ast.Import):
            modules.update(alias.name for alias in node.names)
    return modules


class TestLayering:
    @pytest.mark.parametrize(
        "relative",
        sorted(
            str(p.relative_to(PACKAGE_ROOT))
            for sub in ("services", "client", "engine", "database")
            for p in (PACKAGE_ROOT / sub).glob("*.py")
        ),
    )
    def test_does_not_import_api(self, relative):
        imported = _imported_modules(PACKAGE_ROOT / relative)
        assert not any(m.startswith("wattstream.api") for m in imported)


class TestMessages:
    def test_subscribe_is_camel_case(self):
        body = json.loads(SubscribeMessage(user_id="u1").model_dump_json(by_alias=True))
        assert body == {"type": "subscribe", "userId": "u1"}

    def test_balance_update_earned_optional(self):
        message = BalanceUpdateMessage.model_validate(
            {"type": "balance_update", "balance": 4.5, "timestamp": "2026-07-01T12:00:00Z"}
        )
        assert message.earned is None
        assert message.timestamp == datetime(2026, 7, 1, 12, tzinfo=UTC)

    def test_balance_out_reads_camel_case(self):
        body = BalanceOut.model_validate({"currentBalance": 3.0, "lifetimeEarnings": 5.0})
        assert body.current_balance == 3.0
        assert body.todays_earnings == 0.0
