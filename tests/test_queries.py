from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from event_calendar.models.event import EventStatus, EventType
from event_calendar.models.user import UserRole
from event_calendar.services.authorization import Principal
from event_calendar.services.exceptions import ValidationError
from event_calendar.services.queries import (
    EventFilters,
    build_event_query,
    compile_event_query,
    public_event_query,
)

ADMIN = Principal(id=uuid.uuid4(), role=UserRole.ADMIN)
USER = Principal(id=uuid.uuid4(), role=UserRole.USER)


def test_filters_from_params_parses_everything():
    filters = EventFilters.from_params(
        start="2030-01-01",
        end="2030-01-31T23:59:59Z",
        event_type="reminder",
        status="completed",
        city="Lisbon",
    )
    assert filters.date_start == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert filters.date_end == datetime(2030, 1, 31, 23, 59, 59, tzinfo=timezone.utc)
    assert filters.event_type is EventType.REMINDER
    assert filters.status is EventStatus.COMPLETED
    assert filters.city == "Lisbon"


def test_filters_from_params_rejects_bad_values():
    with pytest.raises(ValidationError) as exc_info:
        EventFilters.from_params(start="soon", event_type="party", status="done")

    assert exc_info.value.message == "Invalid filters"
    assert {e.field for e in exc_info.value.errors} == {"start", "type", "status"}


def test_admin_sees_everything():
    query = build_event_query(ADMIN, EventFilters())
    assert query.visible_to is None
    assert query.public_only is False


def test_user_is_scoped_to_public_or_own():
    query = build_event_query(USER, EventFilters())
    assert query.visible_to == USER.id


def test_range_needs_both_bounds():
    only_start = EventFilters(date_start=datetime(2030, 1, 1, tzinfo=timezone.utc))
    query = build_event_query(USER, only_start)
    assert query.start_from is None
    assert query.start_to is None

    both = EventFilters(
        date_start=datetime(2030, 1, 1, tzinfo=timezone.utc),
        date_end=datetime(2030, 2, 1, tzinfo=timezone.utc),
    )
    query = build_event_query(USER, both)
    assert query.start_from == both.date_start
    assert query.start_to == both.date_end


def test_public_query_drops_attendees():
    query = public_event_query(city="")
    assert query.public_only is True
    assert query.city is None
    assert query.include_attendees is False


def test_compiled_user_query_filters_on_visibility():
    sql = str(compile_event_query(build_event_query(USER, EventFilters(city="Porto"))))
    assert "WHERE" in sql
    assert "events.is_public" in sql
    assert "events.created_by" in sql
    assert "events.city" in sql
    assert "ORDER BY events.start" in sql


def test_compiled_admin_query_has_no_visibility_clause():
    sql = str(compile_event_query(build_event_query(ADMIN, EventFilters())))
    assert "WHERE" not in sql
