from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from event_calendar.auth.password import hash_password, needs_rehash, verify_password
from event_calendar.models import Event, EventAttendee, User
from event_calendar.models.user import UserRole
from event_calendar.services.exceptions import (
    ConflictError,
    FieldError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_MIN = 2
NAME_MAX = 50
PASSWORD_MIN = 6


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_name(errors: list[FieldError], name: Any) -> None:
    if not isinstance(name, str) or len(name.strip()) < NAME_MIN:
        errors.append(FieldError("name", "Name must be at least 2 characters long"))
    elif len(name.strip()) > NAME_MAX:
        errors.append(FieldError("name", "Name cannot exceed 50 characters"))


def _check_email(errors: list[FieldError], email: Any) -> None:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        errors.append(FieldError("email", "Please provide a valid email address"))


def _parse_user_id(raw: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFoundError("USER_NOT_FOUND", "User not found") from None


def _email_taken(db: Session, email: str, exclude: uuid.UUID | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude is not None:
        stmt = stmt.where(User.id != exclude)
    return db.scalar(stmt) is not None


def _commit_user(db: Session, user: User) -> User:
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("EMAIL_TAKEN", "User already exists with this email") from exc
    db.refresh(user)
    return user


def register_user(
    db: Session,
    name: Any,
    email: Any,
    password: Any,
    role: UserRole = UserRole.USER,
) -> User:
    errors: list[FieldError] = []
    _check_name(errors, name)
    _check_email(errors, email)
    if not isinstance(password, str) or len(password) < PASSWORD_MIN:
        errors.append(FieldError("password", "Password must be at least 6 characters long"))
    if errors:
        raise ValidationError(errors)

    email = email.strip().lower()
    if _email_taken(db, email):
        raise ConflictError("EMAIL_TAKEN", "User already exists with this email")

    user = _commit_user(
        db,
        User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
        ),
    )
    logger.info("user_registered", user_id=str(user.id), role=user.role.value)
    return user


def authenticate(db: Session, email: Any, password: Any) -> User | None:
    if not isinstance(email, str) or not isinstance(password, str):
        return None
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        raise ForbiddenError("USER_INACTIVE", "Account is deactivated")

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
    user.last_login_at = _now()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def setup_admin(db: Session, name: Any, email: Any, password: Any) -> User:
    existing = db.scalar(select(User.id).where(User.role == UserRole.ADMIN).limit(1))
    if existing is not None:
        raise ConflictError("ADMIN_EXISTS", "An admin account already exists")
    return register_user(db, name, email, password, role=UserRole.ADMIN)


def update_profile(db: Session, user: User, name: Any = None, email: Any = None) -> User:
    errors: list[FieldError] = []
    if name is not None:
        _check_name(errors, name)
    if email is not None:
        _check_email(errors, email)
    if errors:
        raise ValidationError(errors)

    if name is not None:
        user.name = name.strip()
    if email is not None:
        email = email.strip().lower()
        if _email_taken(db, email, exclude=user.id):
            raise ConflictError("EMAIL_TAKEN", "Email is already in use")
        user.email = email
    return _commit_user(db, user)


def change_password(db: Session, user: User, current_password: Any, new_password: Any) -> None:
    errors: list[FieldError] = []
    if not current_password:
        errors.append(FieldError("currentPassword", "Current password is required"))
    if not isinstance(new_password, str) or len(new_password) < PASSWORD_MIN:
        errors.append(
            FieldError("newPassword", "New password must be at least 6 characters long")
        )
    if current_password and new_password and current_password == new_password:
        errors.append(
            FieldError("newPassword", "New password must be different from current password")
        )
    if errors:
        raise ValidationError(errors)

    if not user.password_hash or not verify_password(current_password, user.password_hash):
        raise ValidationError(
            [FieldError("currentPassword", "Current password is incorrect")]
        )

    user.password_hash = hash_password(new_password)
    db.add(user)
    db.commit()
    logger.info("password_changed", user_id=str(user.id))


def list_users(db: Session, query: str | None = None, limit: int = 50) -> list[User]:
    stmt = select(User).order_by(User.created_at.desc()).limit(limit)
    if query:
        like = f"%{query.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.email).like(like),
                func.lower(User.name).like(like),
            )
        )
    return list(db.scalars(stmt).all())


def get_user(db: Session, user_id: Any) -> User:
    user = db.get(User, _parse_user_id(user_id))
    if not user:
        raise NotFoundError("USER_NOT_FOUND", "User not found")
    return user


def update_user(
    db: Session,
    admin: User,
    user_id: Any,
    name: Any = None,
    email: Any = None,
    role: UserRole | None = None,
) -> User:
    user = get_user(db, user_id)
    if role is not None and role != user.role and user.id == admin.id:
        raise ForbiddenError("OWN_ROLE", "Cannot change your own role")

    errors: list[FieldError] = []
    if name is not None:
        _check_name(errors, name)
    if email is not None:
        _check_email(errors, email)
    if errors:
        raise ValidationError(errors)

    if name is not None:
        user.name = name.strip()
    if email is not None:
        email = email.strip().lower()
        if _email_taken(db, email, exclude=user.id):
            raise ConflictError("EMAIL_TAKEN", "Email is already in use")
        user.email = email
    if role is not None:
        user.role = role

    user = _commit_user(db, user)
    logger.info("user_updated", user_id=str(user.id), updated_by=str(admin.id))
    return user


def delete_user(db: Session, admin: User, user_id: Any) -> None:
    user = get_user(db, user_id)
    if user.id == admin.id:
        raise ForbiddenError("DELETE_SELF", "Cannot delete your own account")

    # Events are owned by their creator; remove them with the account.
    for event in db.scalars(select(Event).where(Event.created_by == user.id)).unique().all():
        db.delete(event)
    db.execute(delete(EventAttendee).where(EventAttendee.user_id == user.id))
    db.delete(user)
    db.commit()
    logger.info("user_deleted", user_id=str(user.id), deleted_by=str(admin.id))


def toggle_active(db: Session, admin: User, user_id: Any) -> User:
    user = get_user(db, user_id)
    if user.id == admin.id:
        raise ForbiddenError("DEACTIVATE_SELF", "Cannot deactivate your own account")

    user.is_active = not user.is_active
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_active_toggled", user_id=str(user.id), is_active=user.is_active)
    return user


def user_stats(db: Session) -> dict[str, int]:
    total = int(db.scalar(select(func.count()).select_from(User)) or 0)
    active = int(
        db.scalar(select(func.count()).select_from(User).where(User.is_active.is_(True))) or 0
    )
    admins = int(
        db.scalar(select(func.count()).select_from(User).where(User.role == UserRole.ADMIN)) or 0
    )
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "admins": admins,
        "users": total - admins,
    }
