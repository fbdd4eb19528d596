"""
skillswap.api.deps — FastAPI dependency injection
==================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from skillswap.config import SkillSwapConfig, load_config
from skillswap.database.engine import create_db_engine
from skillswap.services.ai_service import AISuggestionService
from skillswap.services.user_service import Identity

_WEAK_SECRETS = frozenset({
    "skillswap-dev-secret-change-me",
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
            "Use the identity provider's token signing secret."
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


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> SkillSwapConfig:
    return load_config()


def get_ai_service(
    cfg: Annotated[SkillSwapConfig, Depends(get_config)],
) -> AISuggestionService:
    return AISuggestionService(cfg)


def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """Validate the bearer token and return its profile claims.  401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    uid = payload.get("sub")
    if not uid:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return Identity(
        uid=str(uid),
        display_name=payload.get("name") or "",
        email=payload.get("email") or "",
        photo_url=payload.get("picture") or "",
    )


def get_current_user_id(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> str:
    return identity.uid
