from event_calendar.services.authorization import Principal, can_create, can_read, can_write
from event_calendar.services.events_service import EventService
from event_calendar.services.queries import EventFilters

__all__ = [
    "EventService",
    "EventFilters",
    "Principal",
    "can_read",
    "can_write",
    "can_create",
]
