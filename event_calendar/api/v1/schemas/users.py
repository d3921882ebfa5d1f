from __future__ import annotations

from datetime import datetime
from uuid import UUID

from event_calendar.api.v1.schemas.events import SchemaBase
from event_calendar.models.user import UserRole


class UserOut(SchemaBase):
    id: UUID
    name: str
    email: str
    role: UserRole
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class UserStatsOut(SchemaBase):
    total: int
    active: int
    inactive: int
    admins: int
    users: int


class RegisterIn(SchemaBase):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class LoginIn(SchemaBase):
    email: str | None = None
    password: str | None = None


class ProfileUpdateIn(SchemaBase):
    name: str | None = None
    email: str | None = None


class ChangePasswordIn(SchemaBase):
    current_password: str | None = None
    new_password: str | None = None


class UserUpdateIn(SchemaBase):
    name: str | None = None
    email: str | None = None
    role: UserRole | None = None
