"""Field-level checks for event payloads.

``validate_event_fields`` runs every rule and returns all problems at once so a
client can fix a form in a single round trip. It never raises for bad input.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from event_calendar.models.event import (
    EventStatus,
    EventType,
    RecurrenceFrequency,
    default_recurring,
)
from event_calendar.services.exceptions import FieldError

TITLE_MAX = 100
DESCRIPTION_MAX = 500
LOCATION_MAX = 100
CITY_MAX = 50
IMAGE_URL_MAX = 500

EVENT_TYPES = frozenset(t.value for t in EventType)
EVENT_STATUSES = frozenset(s.value for s in EventStatus)
FREQUENCIES = frozenset(f.value for f in RecurrenceFrequency)

# Client-facing field names accepted on create/update.
UPDATABLE_FIELDS = (
    "title",
    "description",
    "start",
    "end",
    "type",
    "location",
    "city",
    "allDay",
    "attendees",
    "isPublic",
    "status",
    "recurring",
    "imageUrl",
)

# Non-nullable columns with a default.
_DEFAULTED_FIELDS = frozenset({"type", "status", "allDay", "isPublic", "recurring"})

_datetime_adapter = TypeAdapter(datetime)

_MISSING = object()


def parse_instant(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None when the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except PydanticValidationError:
        return None
    if parsed.tzinfo is None or parsed.tzinfo.utcoffset(parsed) is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _present(value: Any) -> bool:
    return value is not _MISSING and value is not None and value != ""


def _check_text(
    errors: list[FieldError],
    field: str,
    value: Any,
    limit: int,
    too_long: str,
) -> None:
    if not _present(value):
        return
    if not isinstance(value, str):
        errors.append(FieldError(field, f"{field} must be text"))
    elif len(value.strip()) > limit:
        errors.append(FieldError(field, too_long))


def _check_recurring(errors: list[FieldError], value: Any) -> None:
    if not _present(value):
        return
    if not isinstance(value, Mapping):
        errors.append(FieldError("recurring", "Recurring must be an object"))
        return

    is_recurring = value.get("isRecurring")
    if is_recurring is not None and parse_bool(is_recurring) is None:
        errors.append(FieldError("recurring.isRecurring", "Is recurring must be a boolean value"))

    frequency = value.get("frequency")
    if _present(frequency) and (not isinstance(frequency, str) or frequency not in FREQUENCIES):
        errors.append(FieldError("recurring.frequency", "Invalid recurrence frequency"))

    interval = value.get("interval")
    if interval is not None:
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            errors.append(FieldError("recurring.interval", "Interval must be a positive integer"))

    end_date = value.get("endDate")
    if _present(end_date) and parse_instant(end_date) is None:
        errors.append(FieldError("recurring.endDate", "Recurrence end date must be a valid date"))


def _check_attendees(errors: list[FieldError], value: Any) -> None:
    if value is _MISSING or value is None:
        return
    if not isinstance(value, (list, tuple, set)):
        errors.append(FieldError("attendees", "Attendees must be a list of user ids"))
        return
    for item in value:
        try:
            uuid.UUID(str(item))
        except ValueError:
            errors.append(FieldError("attendees", f"Invalid attendee id: {item}"))


def validate_event_fields(
    candidate: Mapping[str, Any],
    current: Mapping[str, Any] | None = None,
) -> list[FieldError]:
    """Check a create payload, or an update payload merged onto ``current``."""
    effective: dict[str, Any] = dict(current or {})
    effective.update(candidate)
    errors: list[FieldError] = []

    title = effective.get("title", _MISSING)
    if not isinstance(title, str) or not title.strip():
        errors.append(FieldError("title", "Event title is required"))
    elif len(title.strip()) > TITLE_MAX:
        errors.append(FieldError("title", "Title cannot exceed 100 characters"))

    start_raw = effective.get("start", _MISSING)
    start = None
    if not _present(start_raw):
        errors.append(FieldError("start", "Start date is required"))
    else:
        start = parse_instant(start_raw)
        if start is None:
            errors.append(FieldError("start", "Start date must be a valid date"))

    end_raw = effective.get("end", _MISSING)
    if not _present(end_raw):
        errors.append(FieldError("end", "End date is required"))
    else:
        end = parse_instant(end_raw)
        if end is None:
            errors.append(FieldError("end", "End date must be a valid date"))
        elif start is not None and end <= start:
            errors.append(FieldError("end", "End date must be after start date"))

    event_type = effective.get("type", _MISSING)
    if _present(event_type) and (not isinstance(event_type, str) or event_type not in EVENT_TYPES):
        errors.append(FieldError("type", "Invalid event type"))

    status = effective.get("status", _MISSING)
    if _present(status) and (not isinstance(status, str) or status not in EVENT_STATUSES):
        errors.append(FieldError("status", "Invalid event status"))

    _check_text(
        errors,
        "description",
        effective.get("description", _MISSING),
        DESCRIPTION_MAX,
        "Description cannot exceed 500 characters",
    )
    _check_text(
        errors,
        "location",
        effective.get("location", _MISSING),
        LOCATION_MAX,
        "Location cannot exceed 100 characters",
    )
    _check_text(
        errors,
        "city",
        effective.get("city", _MISSING),
        CITY_MAX,
        "City cannot exceed 50 characters",
    )
    _check_text(
        errors,
        "imageUrl",
        effective.get("imageUrl", _MISSING),
        IMAGE_URL_MAX,
        "Image URL cannot exceed 500 characters",
    )

    all_day = effective.get("allDay", _MISSING)
    if all_day is not _MISSING and all_day is not None and parse_bool(all_day) is None:
        errors.append(FieldError("allDay", "All day must be a boolean value"))

    is_public = effective.get("isPublic", _MISSING)
    if is_public is not _MISSING and is_public is not None and parse_bool(is_public) is None:
        errors.append(FieldError("isPublic", "Is public must be a boolean value"))

    _check_recurring(errors, effective.get("recurring", _MISSING))
    _check_attendees(errors, effective.get("attendees", _MISSING))

    return errors


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _normalize_recurring(value: Mapping[str, Any] | None) -> dict[str, Any]:
    recurring = default_recurring()
    if not value:
        return recurring
    if value.get("isRecurring") is not None:
        recurring["isRecurring"] = parse_bool(value["isRecurring"])
    if _present(value.get("frequency")):
        recurring["frequency"] = value["frequency"]
    if value.get("interval") is not None:
        recurring["interval"] = value["interval"]
    end_date = parse_instant(value.get("endDate"))
    recurring["endDate"] = end_date.isoformat() if end_date else None
    return recurring


def normalize_event_fields(candidate: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce already-validated fields into their stored representation.

    Only keys present in ``candidate`` (and listed in UPDATABLE_FIELDS) are returned.
    A null or empty value for a field that has a default is dropped, so updates keep
    the stored value and creates fall back to the column default.
    """
    normalized: dict[str, Any] = {}
    for key in UPDATABLE_FIELDS:
        if key not in candidate:
            continue
        value = candidate[key]
        if key in _DEFAULTED_FIELDS and not _present(value):
            continue
        if key == "title":
            normalized[key] = value.strip()
        elif key in {"description", "location", "city", "imageUrl"}:
            normalized[key] = _clean_text(value)
        elif key in {"start", "end"}:
            normalized[key] = parse_instant(value)
        elif key == "type":
            normalized[key] = EventType(value)
        elif key == "status":
            normalized[key] = EventStatus(value)
        elif key in {"allDay", "isPublic"}:
            normalized[key] = parse_bool(value)
        elif key == "recurring":
            normalized[key] = _normalize_recurring(value)
        elif key == "attendees":
            ids: list[uuid.UUID] = []
            for item in value or []:
                attendee_id = uuid.UUID(str(item))
                if attendee_id not in ids:
                    ids.append(attendee_id)
            normalized[key] = ids
    return normalized
