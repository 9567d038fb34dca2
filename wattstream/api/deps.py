"""
wattstream.api.deps — FastAPI dependency injection
====================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from wattstream.config import WattConfig, load_config
from wattstream.database.engine import create_db_engine
from wattstream.services.accrual_service import AccrualPipeline
from wattstream.services.broadcaster import BalanceBroadcaster
from wattstream.services.generators import AmbientGenerator, AutoSeeder

_WEAK_SECRETS = frozenset({
    "wattstream-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


# ---------------------------------------------------------------------------
# Process-wide defaults (used by the lifespan when nothing was injected)
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def default_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def default_config() -> WattConfig:
    return load_config(os.getenv("WATTSTREAM_CONFIG", "config.yaml"))


# ---------------------------------------------------------------------------
# Per-app objects built in the lifespan
# ---------------------------------------------------------------------------
def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_config(request: Request) -> WattConfig:
    return request.app.state.config


def get_broadcaster(request: Request) -> BalanceBroadcaster:
    return request.app.state.broadcaster


def get_pipeline(request: Request) -> AccrualPipeline:
    return request.app.state.pipeline


def get_ambient(request: Request) -> AmbientGenerator:
    return request.app.state.ambient


def get_auto_seeder(request: Request) -> AutoSeeder:
    return request.app.state.auto_seeder


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def decode_token(token: str) -> dict:
    """Decode a bearer token.  Raises ``InvalidTokenError`` when bad."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


def issue_token(user_id: str, **claims) -> str:
    """Sign a token for *user_id* (dev tooling and tests)."""
    return jwt.encode({"sub": user_id, **claims}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return its ``sub`` as the user id."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_token(token)
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return user_id


CurrentUser = Annotated[str, Depends(get_current_user)]
