from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from event_calendar.models import Event
from event_calendar.models.event import EventStatus, EventType, RecurrenceFrequency
from event_calendar.services.calendar_grid import MonthGrid
from event_calendar.services.validation import parse_instant


class SchemaBase(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class RecurringOut(SchemaBase):
    is_recurring: bool = False
    frequency: RecurrenceFrequency = RecurrenceFrequency.WEEKLY
    end_date: datetime | None = None
    interval: int = 1


class CreatorOut(SchemaBase):
    id: UUID
    name: str


class EventOut(SchemaBase):
    id: UUID
    title: str
    description: str | None = None
    start: datetime
    end: datetime
    type: EventType
    location: str | None = None
    city: str | None = None
    all_day: bool
    created_by: UUID
    creator: CreatorOut | None = None
    attendees: list[UUID] = Field(default_factory=list)
    is_public: bool
    status: EventStatus
    recurring: RecurringOut
    image_url: str | None = None
    duration_minutes: int
    is_past: bool
    is_today: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_event(cls, event: Event) -> "EventOut":
        recurring = dict(event.recurring or {})
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            start=event.start,
            end=event.end,
            type=event.event_type,
            location=event.location,
            city=event.city,
            all_day=event.all_day,
            created_by=event.created_by,
            creator=CreatorOut(id=event.creator.id, name=event.creator.name) if event.creator else None,
            attendees=[u.id for u in event.attendees],
            is_public=event.is_public,
            status=event.status,
            recurring=RecurringOut(
                is_recurring=bool(recurring.get("isRecurring", False)),
                frequency=recurring.get("frequency") or RecurrenceFrequency.WEEKLY,
                end_date=parse_instant(recurring.get("endDate")),
                interval=recurring.get("interval") or 1,
            ),
            image_url=event.image_url,
            duration_minutes=int(event.duration.total_seconds() // 60),
            is_past=event.is_past(),
            is_today=event.is_today(),
            created_at=event.created_at,
            updated_at=event.updated_at,
        )


def event_json(event: Event, public: bool = False) -> dict[str, Any]:
    # Public listings never reveal who is attending.
    exclude = {"attendees"} if public else None
    return EventOut.from_event(event).to_json(exclude=exclude)


class GridDayOut(SchemaBase):
    day: date = Field(alias="date")
    in_month: bool
    events: list[dict[str, Any]]


class MonthGridOut(SchemaBase):
    year: int
    month: int
    weeks: list[list[GridDayOut]]

    @classmethod
    def from_grid(cls, grid: MonthGrid) -> "MonthGridOut":
        return cls(
            year=grid.year,
            month=grid.month,
            weeks=[
                [
                    GridDayOut(
                        day=day.day,
                        in_month=day.in_month,
                        events=[event_json(e) for e in day.events],
                    )
                    for day in week
                ]
                for week in grid.weeks
            ],
        )
