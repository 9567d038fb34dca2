"""
tests/test_jwt_startup — JWT secret validation
================================================
The API must refuse to start when JWT_SECRET is missing, blank, too short,
or a known weak default.
"""

from __future__ import annotations

import pytest

from wattstream.api.deps import _load_jwt_secret, decode_token, issue_token


class TestJWTSecretValidation:
    def test_rejects_missing_secret(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
            _load_jwt_secret()

    def test_rejects_empty_secret(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "")
        with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
            _load_jwt_secret()

    @pytest.mark.parametrize("weak", ["wattstream-dev-secret-change-me", "change-me", "secret"])
    def test_rejects_known_weak_default(self, monkeypatch, weak):
        monkeypatch.setenv("JWT_SECRET", weak)
        with pytest.raises(RuntimeError, match="known weak default"):
            _load_jwt_secret()

    def test_rejects_short_secret(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "tooshort")
        with pytest.raises(RuntimeError, match="too short"):
            _load_jwt_secret()

    def test_accepts_strong_secret(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "a" * 64)
        assert _load_jwt_secret() == "a" * 64


class TestTokens:
    def test_issued_token_carries_subject(self):
        payload = decode_token(issue_token("user-9", name="Nine"))
        assert payload["sub"] == "user-9"
        assert payload["name"] == "Nine"
