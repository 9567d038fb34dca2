"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of wattstream.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from wattstream.config import WattConfig  # noqa: E402
from wattstream.database.models import Base  # noqa: E402


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all wattstream tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_db_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with a real connection pool.

    Each worker thread gets its own connection, so concurrent writers really
    contend for the database lock.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def make_token(sub: str = "user-1", **claims) -> str:
    """Create a bearer JWT for *sub*."""
    from wattstream.api.deps import issue_token

    return issue_token(sub, **claims)


@pytest.fixture
def user_token():
    return make_token("user-1")


@pytest.fixture
def test_config() -> WattConfig:
    """Generators off, short backfill: nothing runs behind a test's back."""
    return WattConfig(
        ambient_enabled=False,
        backfill_hours=3,
        auto_seeder_enabled=False,
        auto_seeder_initial_delay_seconds=3600.0,
    )


@pytest.fixture
def client(db_engine: Engine, test_config: WattConfig):
    """A started FastAPI TestClient bound to the in-memory engine."""
    from fastapi.testclient import TestClient

    from wattstream.api.main import create_app

    app = create_app()
    app.state.engine = db_engine
    app.state.config = test_config
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
