from event_calendar.api.v1.schemas.events import (
    EventOut,
    MonthGridOut,
    RecurringOut,
    event_json,
)
from event_calendar.api.v1.schemas.users import (
    ChangePasswordIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    UserOut,
    UserStatsOut,
    UserUpdateIn,
)

__all__ = [
    "EventOut",
    "RecurringOut",
    "MonthGridOut",
    "event_json",
    "UserOut",
    "UserStatsOut",
    "RegisterIn",
    "LoginIn",
    "ProfileUpdateIn",
    "ChangePasswordIn",
    "UserUpdateIn",
]
