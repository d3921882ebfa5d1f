from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from event_calendar.api.errors import envelope
from event_calendar.api.v1.schemas.users import UserOut, UserStatsOut, UserUpdateIn
from event_calendar.auth.deps import AdminUser, require_role
from event_calendar.db import get_db
from event_calendar.models.user import UserRole
from event_calendar.services import users_service

router = APIRouter(
    prefix="/users",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)

DBSession = Annotated[Session, Depends(get_db)]


@router.get("")
def list_users(
    db: DBSession,
    query: str | None = Query(default=None, min_length=1),
    limit: int = Query(default=50, ge=1, le=200),
):
    users = users_service.list_users(db, query=query, limit=limit)
    return envelope(
        True,
        count=len(users),
        data=[UserOut.model_validate(u).to_json() for u in users],
    )


@router.get("/stats")
def user_stats(db: DBSession):
    return envelope(True, data=UserStatsOut(**users_service.user_stats(db)).to_json())


@router.get("/{user_id}")
def get_user(user_id: str, db: DBSession):
    user = users_service.get_user(db, user_id)
    return envelope(True, data=UserOut.model_validate(user).to_json())


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdateIn, db: DBSession, admin: AdminUser):
    user = users_service.update_user(
        db,
        admin,
        user_id,
        name=payload.name,
        email=payload.email,
        role=payload.role,
    )
    return envelope(True, "User updated successfully", data=UserOut.model_validate(user).to_json())


@router.delete("/{user_id}")
def delete_user(user_id: str, db: DBSession, admin: AdminUser):
    users_service.delete_user(db, admin, user_id)
    return envelope(True, "User deleted successfully")


@router.patch("/{user_id}/toggle-active")
def toggle_user_active(user_id: str, db: DBSession, admin: AdminUser):
    user = users_service.toggle_active(db, admin, user_id)
    state = "activated" if user.is_active else "deactivated"
    return envelope(True, f"User {state} successfully", data=UserOut.model_validate(user).to_json())
