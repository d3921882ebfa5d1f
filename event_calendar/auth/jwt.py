"""Bearer tokens for the calendar API.

A token names the account (``sub``) and carries the role it had when issued.
The role claim is informational only: every request re-reads the account so
that deactivation and role changes take effect immediately.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from jwt import PyJWTError

from event_calendar.core.config import settings


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        return max(0, int((self.expires_at - datetime.now(timezone.utc)).total_seconds()))


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    role: str | None
    expires_at: datetime


def issue_access_token(
    user_id: uuid.UUID,
    role: str,
    ttl_seconds: int | None = None,
) -> IssuedToken:
    issued_at = datetime.now(timezone.utc).replace(microsecond=0)
    ttl = settings.access_token_ttl_seconds if ttl_seconds is None else ttl_seconds
    expires_at = issued_at + timedelta(seconds=ttl)
    token = jwt.encode(
        {
            "sub": str(user_id),
            "role": role,
            "iat": issued_at,
            "exp": expires_at,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return IssuedToken(token=token, expires_at=expires_at)


def read_access_token(token: str) -> TokenClaims:
    """Decode and check a bearer token; raises ValueError when it cannot be trusted."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except PyJWTError as exc:
        raise ValueError("invalid access token") from exc

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise ValueError("access token subject is not a user id") from None
    return TokenClaims(
        user_id=user_id,
        role=payload.get("role"),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
