from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from event_calendar.auth.jwt import read_access_token
from event_calendar.db import get_db
from event_calendar.models import User
from event_calendar.models.user import UserRole
from event_calendar.services.authorization import Principal

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(request: Request, db: DBSession) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise _unauthorized("Access token required")

    token = auth.removeprefix("Bearer ").strip()
    try:
        claims = read_access_token(token)
    except ValueError:
        raise _unauthorized("Invalid or expired token") from None

    user = db.get(User, claims.user_id)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account is deactivated")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(role: UserRole):
    def _dependency(user: CurrentUser) -> User:
        if user.role != role:
            raise HTTPException(status_code=403, detail=f"{role.value.capitalize()} access required")
        return user

    return _dependency


AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]


def get_principal(user: CurrentUser) -> Principal:
    return Principal(id=user.id, role=user.role)


CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
