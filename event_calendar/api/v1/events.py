from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from event_calendar.api.errors import envelope
from event_calendar.api.v1.payloads import EventPayload, event_payload
from event_calendar.api.v1.schemas.events import MonthGridOut, event_json
from event_calendar.auth.deps import AdminUser, CurrentPrincipal
from event_calendar.db import get_db
from event_calendar.services.authorization import Principal
from event_calendar.services.calendar_grid import build_month_grid, grid_window
from event_calendar.services.events_service import EventService
from event_calendar.services.queries import EventFilters
from event_calendar.storage import ImageStore, get_storage

router = APIRouter(prefix="/events", tags=["events"])

DBSession = Annotated[Session, Depends(get_db)]
Storage = Annotated[ImageStore, Depends(get_storage)]
Payload = Annotated[EventPayload, Depends(event_payload)]


def get_event_service(db: DBSession, storage: Storage) -> EventService:
    return EventService(db, storage)


Events = Annotated[EventService, Depends(get_event_service)]


@router.get("/public")
def list_public_events(events: Events, city: str | None = Query(default=None)):
    items = events.list_public_events(city)
    return envelope(True, count=len(items), data=[event_json(e, public=True) for e in items])


@router.get("")
def list_events(
    events: Events,
    principal: CurrentPrincipal,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    event_type: str | None = Query(default=None, alias="type"),
    status: str | None = Query(default=None),
    city: str | None = Query(default=None),
):
    filters = EventFilters.from_params(
        start=start,
        end=end,
        event_type=event_type,
        status=status,
        city=city,
    )
    items = events.list_events(principal, filters)
    return envelope(True, count=len(items), data=[event_json(e) for e in items])


@router.get("/range/{start}/{end}")
def list_events_by_range(start: str, end: str, events: Events, principal: CurrentPrincipal):
    items = events.list_events_in_range(principal, start, end)
    return envelope(True, count=len(items), data=[event_json(e) for e in items])


@router.get("/calendar/{year}/{month}")
def month_calendar(year: int, month: int, events: Events, principal: CurrentPrincipal):
    window_start, window_end = grid_window(year, month)
    items = events.list_events_between(principal, window_start, window_end)
    grid = build_month_grid(year, month, items)
    return envelope(True, count=len(items), data=MonthGridOut.from_grid(grid).to_json())


@router.get("/{event_id}")
def get_event(event_id: str, events: Events, principal: CurrentPrincipal):
    return envelope(True, data=event_json(events.get_event(principal, event_id)))


def _admin_principal(admin: AdminUser) -> Principal:
    return Principal(id=admin.id, role=admin.role)


@router.post("", status_code=201)
def create_event(
    principal: Annotated[Principal, Depends(_admin_principal)],
    payload: Payload,
    events: Events,
):
    event = events.create_event(principal, payload.fields, payload.image)
    return JSONResponse(
        status_code=201,
        content=envelope(True, "Event created successfully", data=event_json(event)),
    )


@router.put("/{event_id}")
def update_event(event_id: str, principal: CurrentPrincipal, payload: Payload, events: Events):
    event = events.update_event(principal, event_id, payload.fields, payload.image)
    return envelope(True, "Event updated successfully", data=event_json(event))


@router.delete("/{event_id}")
def delete_event(event_id: str, principal: CurrentPrincipal, events: Events):
    events.delete_event(principal, event_id)
    return envelope(True, "Event deleted successfully")
