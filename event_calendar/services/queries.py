from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Select, or_, select

from event_calendar.models import Event
from event_calendar.models.event import EventStatus, EventType
from event_calendar.services.authorization import Principal
from event_calendar.services.exceptions import FieldError, ValidationError
from event_calendar.services.validation import EVENT_STATUSES, EVENT_TYPES, parse_instant


@dataclass(frozen=True)
class EventFilters:
    date_start: datetime | None = None
    date_end: datetime | None = None
    event_type: EventType | None = None
    status: EventStatus | None = None
    city: str | None = None

    @classmethod
    def from_params(
        cls,
        start: str | None = None,
        end: str | None = None,
        event_type: str | None = None,
        status: str | None = None,
        city: str | None = None,
    ) -> "EventFilters":
        errors: list[FieldError] = []

        date_start = parse_instant(start) if start else None
        if start and date_start is None:
            errors.append(FieldError("start", "Start date must be a valid date"))
        date_end = parse_instant(end) if end else None
        if end and date_end is None:
            errors.append(FieldError("end", "End date must be a valid date"))

        if event_type and event_type not in EVENT_TYPES:
            errors.append(FieldError("type", "Invalid event type"))
        if status and status not in EVENT_STATUSES:
            errors.append(FieldError("status", "Invalid event status"))

        if errors:
            raise ValidationError(errors, message="Invalid filters")

        return cls(
            date_start=date_start,
            date_end=date_end,
            event_type=EventType(event_type) if event_type else None,
            status=EventStatus(status) if status else None,
            city=city or None,
        )


@dataclass(frozen=True)
class EventQuery:
    """What to fetch, independent of how the store is queried."""

    public_only: bool = False
    visible_to: uuid.UUID | None = None
    start_from: datetime | None = None
    start_to: datetime | None = None
    event_type: EventType | None = None
    status: EventStatus | None = None
    city: str | None = None
    include_attendees: bool = True


def build_event_query(principal: Principal, filters: EventFilters) -> EventQuery:
    # Range filter applies to the start instant only, and only when both bounds are given.
    has_range = filters.date_start is not None and filters.date_end is not None
    return EventQuery(
        visible_to=None if principal.is_admin else principal.id,
        start_from=filters.date_start if has_range else None,
        start_to=filters.date_end if has_range else None,
        event_type=filters.event_type,
        status=filters.status,
        city=filters.city,
    )


def public_event_query(city: str | None = None) -> EventQuery:
    return EventQuery(public_only=True, city=city or None, include_attendees=False)


def compile_event_query(query: EventQuery) -> Select[tuple[Event]]:
    stmt = select(Event)

    if query.public_only:
        stmt = stmt.where(Event.is_public.is_(True))
    elif query.visible_to is not None:
        stmt = stmt.where(or_(Event.is_public.is_(True), Event.created_by == query.visible_to))

    if query.start_from is not None:
        stmt = stmt.where(Event.start >= query.start_from)
    if query.start_to is not None:
        stmt = stmt.where(Event.start <= query.start_to)
    if query.event_type is not None:
        stmt = stmt.where(Event.event_type == query.event_type)
    if query.status is not None:
        stmt = stmt.where(Event.status == query.status)
    if query.city is not None:
        stmt = stmt.where(Event.city == query.city)

    return stmt.order_by(Event.start.asc(), Event.created_at.asc())
