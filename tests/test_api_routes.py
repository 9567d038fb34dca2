"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the HTTP and WebSocket boundary with the FastAPI TestClient
against an in-memory SQLite ledger.

These tests verify:
- Bearer-token auth on every user route
- camelCase response shapes (zero shapes for absent data)
- Demo seeding bounds and the manual credit trigger
- Generator status / toggle round trips
- Live pushes over /ws
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from wattstream.api.deps import issue_token
from wattstream.services import ledger_service
from wattstream.services.ledger_service import LedgerUnavailable


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ===========================================================================
# Health & auth
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthGuards:
    USER_GET_ENDPOINTS = [
        "/api/me",
        "/api/wallet",
        "/api/tokens/ledger",
        "/api/energy/readings",
        "/api/energy/latest",
        "/api/auto-seeder/status",
        "/api/ambient/status",
    ]

    @pytest.mark.parametrize("endpoint", USER_GET_ENDPOINTS)
    def test_no_token_returns_401(self, client, endpoint):
        assert client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", USER_GET_ENDPOINTS)
    def test_bad_token_returns_401(self, client, endpoint):
        assert client.get(endpoint, headers=_auth("not.a.jwt")).status_code == 401

    def test_token_without_subject_returns_401(self, client):
        import jwt

        from wattstream.api.deps import JWT_ALGORITHM, JWT_SECRET

        token = jwt.encode({"name": "anon"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        assert client.get("/api/wallet", headers=_auth(token)).status_code == 401

    def test_post_without_token_returns_401(self, client):
        assert client.post("/api/test/token-update").status_code == 401


# ===========================================================================
# Wallet & history
# ===========================================================================
class TestWallet:
    def test_unknown_user_gets_zero_shape(self, client, user_token):
        resp = client.get("/api/wallet", headers=_auth(user_token))
        assert resp.status_code == 200
        assert resp.json() == {
            "currentBalance": 0.0,
            "lifetimeEarnings": 0.0,
            "todaysEarnings": 0.0,
            "lastUpdated": None,
        }

    def test_token_update_credits_and_logs(self, client, user_token):
        resp = client.post("/api/test/token-update", headers=_auth(user_token))
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert 1.0 <= body["earnings"] <= 6.0
        assert body["newBalance"] == pytest.approx(body["earnings"])

        wallet = client.get("/api/wallet", headers=_auth(user_token)).json()
        assert wallet["currentBalance"] == pytest.approx(body["earnings"])
        assert wallet["lifetimeEarnings"] == pytest.approx(body["earnings"])

        ledger = client.get("/api/tokens/ledger", headers=_auth(user_token)).json()
        assert len(ledger) == 1
        assert ledger[0]["category"] == "generation"
        assert ledger[0]["amount"] == pytest.approx(body["earnings"])

    def test_users_see_only_their_own_wallet(self, client, user_token):
        client.post("/api/test/token-update", headers=_auth(user_token))
        other = issue_token("user-2")
        wallet = client.get("/api/wallet", headers=_auth(other)).json()
        assert wallet["currentBalance"] == 0.0

    def test_latest_reading_zero_shape(self, client, user_token):
        body = client.get("/api/energy/latest", headers=_auth(user_token)).json()
        assert body["generatedKw"] == 0.0
        assert body["tokensEarned"] == 0.0
        assert body["timestamp"] is None

    def test_ledger_outage_returns_503(self, client, user_token):
        with patch.object(
            ledger_service, "read_balance_or_zero", side_effect=LedgerUnavailable("down"),
        ):
            resp = client.get("/api/wallet", headers=_auth(user_token))
        assert resp.status_code == 503
        assert resp.json() == {"detail": "Ledger temporarily unavailable"}


# ===========================================================================
# Demo data
# ===========================================================================
class TestSeeding:
    def test_seed_counts(self, client, user_token):
        resp = client.post(
            "/api/seed-demo-data",
            json={"days": 2, "hoursPerDay": 1},
            headers=_auth(user_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        # midnight of yesterday and of today
        assert body["energyRecords"] == 2
        assert body["tokenEntries"] <= 2
        assert body["message"] == "Demo data seeded successfully"

        readings = client.get("/api/energy/readings", headers=_auth(user_token)).json()
        assert len(readings) == 2
        wallet = client.get("/api/wallet", headers=_auth(user_token)).json()
        assert wallet["currentBalance"] == pytest.approx(body["totalTokensEarned"])

    def test_seed_days_clamped(self, client, user_token):
        resp = client.post(
            "/api/seed-demo-data",
            json={"days": 100, "hoursPerDay": 1},
            headers=_auth(user_token),
        )
        assert resp.status_code == 200
        assert resp.json()["energyRecords"] == 30

    def test_seed_rejects_non_positive(self, client, user_token):
        resp = client.post(
            "/api/seed-demo-data", json={"days": 0}, headers=_auth(user_token),
        )
        assert resp.status_code == 422

    def test_readings_limit(self, client, user_token):
        client.post(
            "/api/seed-demo-data",
            json={"days": 3, "hoursPerDay": 1},
            headers=_auth(user_token),
        )
        readings = client.get(
            "/api/energy/readings?limit=2", headers=_auth(user_token),
        ).json()
        assert len(readings) == 2
        latest = client.get("/api/energy/latest", headers=_auth(user_token)).json()
        assert latest["id"] == readings[0]["id"]

    def test_me_tracks_and_backfills_once(self, client, user_token):
        first = client.get("/api/me", headers=_auth(user_token)).json()
        assert first == {"userId": "user-1", "ambientTracked": True, "autoSeeded": True}

        second = client.get("/api/me", headers=_auth(user_token)).json()
        assert second["ambientTracked"] is False

        readings = client.get("/api/energy/readings", headers=_auth(user_token)).json()
        assert len(readings) == 3  # backfill_hours in the test config

    def test_generate_demo(self, client, user_token):
        resp = client.post("/api/energy/generate-demo", headers=_auth(user_token))
        assert resp.status_code == 200
        assert resp.json()["newlyTracked"] is True


# ===========================================================================
# Generator controls
# ===========================================================================
class TestGeneratorControls:
    def test_auto_seeder_status(self, client, user_token):
        body = client.get("/api/auto-seeder/status", headers=_auth(user_token)).json()
        assert body == {
            "enabled": False,
            "activeUsers": 0,
            "intervalMinutes": 5.0,
            "maxUsersPerCycle": 10,
            "isRunning": False,
        }

    def test_auto_seeder_toggle(self, client, user_token):
        resp = client.post(
            "/api/auto-seeder/toggle",
            json={"enabled": True, "intervalMinutes": 1, "maxUsersPerCycle": 3},
            headers=_auth(user_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["enabled"] is True
        assert body["isRunning"] is True
        assert body["intervalMinutes"] == 1.0
        assert body["maxUsersPerCycle"] == 3

        off = client.post(
            "/api/auto-seeder/toggle", json={"enabled": False}, headers=_auth(user_token),
        ).json()
        assert off["isRunning"] is False

    def test_auto_seeder_toggle_validates(self, client, user_token):
        resp = client.post(
            "/api/auto-seeder/toggle",
            json={"enabled": True, "maxUsersPerCycle": 0},
            headers=_auth(user_token),
        )
        assert resp.status_code == 422

    def test_ambient_toggle(self, client, user_token):
        status = client.get("/api/ambient/status", headers=_auth(user_token)).json()
        assert status["isRunning"] is False
        assert status["backfillHours"] == 3

        body = client.post(
            "/api/ambient/toggle",
            json={"enabled": True, "intervalSeconds": 600},
            headers=_auth(user_token),
        ).json()
        assert body["enabled"] is True
        assert body["isRunning"] is True
        assert body["intervalSeconds"] == 600.0


# ===========================================================================
# Live channel
# ===========================================================================
class TestLiveChannel:
    def test_subscribe_receives_current_balance(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "userId": "user-1"})
            message = ws.receive_json()
        assert message["type"] == "balance_update"
        assert message["balance"] == 0.0
        assert "earned" not in message

    def test_invalid_messages_are_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("garbage")
            ws.send_json({"type": "subscribe"})
            ws.send_json({"type": "subscribe", "userId": "user-1"})
            message = ws.receive_json()
        assert message["balance"] == 0.0

    def test_credit_is_pushed(self, client, user_token):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "userId": "user-1"})
            ws.receive_json()
            body = client.post("/api/test/token-update", headers=_auth(user_token)).json()
            message = ws.receive_json()
        assert message["balance"] == pytest.approx(body["newBalance"])
        assert message["earned"] == pytest.approx(body["earnings"])
