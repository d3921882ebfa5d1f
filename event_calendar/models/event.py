from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_calendar.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from event_calendar.models.user import User


class EventType(str, Enum):
    MEETING = "meeting"
    TASK = "task"
    REMINDER = "reminder"
    OTHER = "other"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def _values(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


def default_recurring() -> dict[str, Any]:
    return {
        "isRecurring": False,
        "frequency": RecurrenceFrequency.WEEKLY.value,
        "endDate": None,
        "interval": 1,
    }


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (sa.Index("ix_events_start_end", "start", "end"),)

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    event_type: Mapped[EventType] = mapped_column(
        "type",
        sa.Enum(EventType, name="event_type", values_callable=_values),
        nullable=False,
        default=EventType.MEETING,
        index=True,
    )
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[EventStatus] = mapped_column(
        sa.Enum(EventStatus, name="event_status", values_callable=_values),
        nullable=False,
        default=EventStatus.SCHEDULED,
    )
    # Stored as-is; occurrences are never expanded.
    recurring: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=default_recurring)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    creator: Mapped[User] = relationship(User, lazy="joined")
    attendees: Mapped[list[User]] = relationship(
        User,
        secondary="event_attendees",
        lazy="selectin",
        order_by=User.email,
    )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def is_past(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.end < now

    def is_today(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return day_start <= self.start < day_start + timedelta(days=1)
