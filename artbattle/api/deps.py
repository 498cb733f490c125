"""
artbattle.api.deps — FastAPI dependency injection
==================================================

The identity provider is external: it issues HS256 bearer tokens whose
``sub`` claim is the user's UUID.  An optional ``username`` claim seeds the
profile on first use, and ``is_admin`` unlocks the ``/admin`` routes.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from artbattle.config import ArtBattleConfig, load_config
from artbattle.database.engine import create_db_engine
from artbattle.engine.rules import ScoringRules

_WEAK_SECRETS = frozenset({
    "artbattle-dev-secret-change-me",
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


@dataclass(frozen=True, slots=True)
class CurrentUser:
    user_id: uuid.UUID
    username: str | None = None
    is_admin: bool = False


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ArtBattleConfig:
    return load_config()


def get_rules(cfg: Annotated[ArtBattleConfig, Depends(get_config)]) -> ScoringRules:
    return cfg.scoring


def _decode(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Validate the bearer JWT and return the caller.  Raises 401 if invalid."""
    payload = _decode(authorization)
    try:
        user_id = uuid.UUID(str(payload.get("sub", "")))
    except ValueError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid subject")
    return CurrentUser(
        user_id=user_id,
        username=payload.get("username"),
        is_admin=bool(payload.get("is_admin")),
    )


def get_current_admin(
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Like :func:`get_current_user`, but 403 unless ``is_admin`` is set."""
    if not user.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return user
