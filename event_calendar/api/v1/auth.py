from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from event_calendar.api.errors import envelope
from event_calendar.api.v1.schemas.users import (
    ChangePasswordIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    UserOut,
)
from event_calendar.auth.deps import CurrentUser
from event_calendar.auth.jwt import issue_access_token
from event_calendar.db import get_db
from event_calendar.models import User
from event_calendar.services import users_service

router = APIRouter(prefix="/auth", tags=["auth"])

DBSession = Annotated[Session, Depends(get_db)]


def _token_payload(user: User) -> dict:
    issued = issue_access_token(user.id, user.role.value)
    return {
        "token": issued.token,
        "tokenType": "bearer",
        "expiresIn": issued.expires_in,
        "expiresAt": issued.expires_at.isoformat(),
        "user": UserOut.model_validate(user).to_json(),
    }


@router.post("/register", status_code=201)
def register(payload: RegisterIn, db: DBSession):
    user = users_service.register_user(db, payload.name, payload.email, payload.password)
    return JSONResponse(
        status_code=201,
        content=envelope(True, "User registered successfully", data=_token_payload(user)),
    )


@router.post("/setup-admin", status_code=201)
def setup_admin(payload: RegisterIn, db: DBSession):
    user = users_service.setup_admin(db, payload.name, payload.email, payload.password)
    return JSONResponse(
        status_code=201,
        content=envelope(True, "Admin account created", data=_token_payload(user)),
    )


@router.post("/login")
def login(payload: LoginIn, db: DBSession):
    user = users_service.authenticate(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return envelope(True, "Login successful", data=_token_payload(user))


@router.get("/profile")
def profile(user: CurrentUser):
    return envelope(True, data=UserOut.model_validate(user).to_json())


@router.put("/profile")
def update_profile(payload: ProfileUpdateIn, user: CurrentUser, db: DBSession):
    user = users_service.update_profile(db, user, name=payload.name, email=payload.email)
    return envelope(True, "Profile updated successfully", data=UserOut.model_validate(user).to_json())


@router.post("/change-password")
def change_password(payload: ChangePasswordIn, user: CurrentUser, db: DBSession):
    users_service.change_password(db, user, payload.current_password, payload.new_password)
    return envelope(True, "Password changed successfully")


@router.post("/logout")
def logout(user: CurrentUser):
    # Tokens are stateless; the client discards its copy.
    return envelope(True, "Logged out successfully")
