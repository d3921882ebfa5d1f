"""Who may read and write which events.

Every read and write path goes through ``relation()``; nothing else in the
codebase compares roles or owner ids for events.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum

from event_calendar.models import Event
from event_calendar.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Relation(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    OTHER = "other"


def relation(principal: Principal, event: Event) -> Relation:
    if principal.is_admin:
        return Relation.ADMIN
    if event.created_by == principal.id:
        return Relation.OWNER
    return Relation.OTHER


def can_read(principal: Principal, event: Event) -> bool:
    rel = relation(principal, event)
    if rel in (Relation.ADMIN, Relation.OWNER):
        return True
    if rel == Relation.OTHER:
        return bool(event.is_public)
    raise AssertionError(f"unhandled relation {rel!r}")


def can_write(principal: Principal, event: Event) -> bool:
    rel = relation(principal, event)
    if rel in (Relation.ADMIN, Relation.OWNER):
        return True
    if rel == Relation.OTHER:
        return False
    raise AssertionError(f"unhandled relation {rel!r}")


def can_create(principal: Principal) -> bool:
    return principal.is_admin
