"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of skillswap.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)
os.environ.setdefault("AI_API_KEY", "")

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from skillswap.database.models import Base, Skill, User  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all SkillSwap tables.

    Uses StaticPool so every session (and the TestClient's worker thread)
    shares the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for assertions; rolled back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------
def make_user(engine: Engine, user_id: str, display_name: str | None = None, **fields) -> User:
    """Insert a user row directly, bypassing the sign-in flow."""
    with Session(engine, expire_on_commit=False) as session:
        user = User(
            id=user_id,
            display_name=display_name or user_id.title(),
            email=f"{user_id}@example.org",
            **fields,
        )
        session.add(user)
        session.commit()
        return user


def make_skill(engine: Engine, user_id: str, name: str, category: str = "Programming") -> Skill:
    with Session(engine, expire_on_commit=False) as session:
        skill = Skill(user_id=user_id, name=name, category=category, proficiency="Intermediate")
        session.add(skill)
        session.commit()
        return skill


@pytest.fixture
def users(db_engine: Engine) -> dict[str, User]:
    """Three ordinary members: alice, bob and carol."""
    return {
        uid: make_user(db_engine, uid)
        for uid in ("alice", "bob", "carol")
    }


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
def make_token(sub: str, name: str | None = None, **claims) -> str:
    """Create an identity JWT.  Usable as a factory in any test."""
    import jwt

    from skillswap.api.deps import JWT_ALGORITHM, JWT_SECRET

    payload = {"sub": sub, "name": name or sub.title(), "email": f"{sub}@example.org", **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(sub: str, name: str | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, name)}"}


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient bound to the in-memory database."""
    from fastapi.testclient import TestClient

    from skillswap.api.deps import get_engine
    from skillswap.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
