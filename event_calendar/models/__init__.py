from event_calendar.models.base import Base
from event_calendar.models.event import Event
from event_calendar.models.event_attendee import EventAttendee
from event_calendar.models.user import User

__all__ = ["Base", "User", "Event", "EventAttendee"]
