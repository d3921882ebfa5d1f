from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from event_calendar.models import Event, User
from event_calendar.services.authorization import Principal, can_create, can_read, can_write
from event_calendar.services.exceptions import (
    FieldError,
    ForbiddenError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from event_calendar.services.queries import (
    EventFilters,
    EventQuery,
    build_event_query,
    compile_event_query,
    public_event_query,
)
from event_calendar.services.validation import normalize_event_fields, validate_event_fields
from event_calendar.storage.base import ImageStore
from event_calendar.storage.images import ImageUpload, check_image, image_key

logger = structlog.get_logger()

# Client field name -> Event attribute.
_ATTRIBUTES = {
    "title": "title",
    "description": "description",
    "start": "start",
    "end": "end",
    "type": "event_type",
    "location": "location",
    "city": "city",
    "allDay": "all_day",
    "isPublic": "is_public",
    "status": "status",
    "recurring": "recurring",
    "imageUrl": "image_url",
}


def parse_event_id(raw: Any) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFoundError("EVENT_NOT_FOUND", "Event not found") from None


def event_field_values(event: Event) -> dict[str, Any]:
    """Current stored values keyed by client field name."""
    return {
        "title": event.title,
        "description": event.description,
        "start": event.start,
        "end": event.end,
        "type": event.event_type.value,
        "location": event.location,
        "city": event.city,
        "allDay": event.all_day,
        "isPublic": event.is_public,
        "status": event.status.value,
        "recurring": dict(event.recurring or {}),
        "imageUrl": event.image_url,
        "attendees": [str(u.id) for u in event.attendees],
    }


class EventService:
    """Event CRUD with validation, authorization and visibility-scoped queries.

    The session is the store handle for one request; image storage is injected so
    tests and alternative backends can swap it out.
    """

    def __init__(self, db: Session, storage: ImageStore | None = None) -> None:
        self.db = db
        self.storage = storage

    # reads

    def _fetch(self, query: EventQuery) -> list[Event]:
        return list(self.db.scalars(compile_event_query(query)).unique().all())

    def list_events(self, principal: Principal, filters: EventFilters | None = None) -> list[Event]:
        return self._fetch(build_event_query(principal, filters or EventFilters()))

    def list_public_events(self, city: str | None = None) -> list[Event]:
        return self._fetch(public_event_query(city))

    def list_events_in_range(self, principal: Principal, start: str, end: str) -> list[Event]:
        filters = EventFilters.from_params(start=start, end=end)
        if filters.date_start is None or filters.date_end is None:
            raise ValidationError(
                [FieldError("start", "Start and end dates are required")],
                message="Invalid filters",
            )
        return self.list_events(principal, filters)

    def list_events_between(
        self,
        principal: Principal,
        start: datetime,
        end: datetime,
    ) -> list[Event]:
        return self.list_events(principal, EventFilters(date_start=start, date_end=end))

    def _get_or_404(self, event_id: Any) -> Event:
        event = self.db.get(Event, parse_event_id(event_id))
        if not event:
            raise NotFoundError("EVENT_NOT_FOUND", "Event not found")
        return event

    def get_event(self, principal: Principal, event_id: Any) -> Event:
        event = self._get_or_404(event_id)
        if not can_read(principal, event):
            raise ForbiddenError("EVENT_FORBIDDEN", "Access denied to this event")
        return event

    # writes

    def _check_image(self, image: ImageUpload | None) -> list[FieldError]:
        if image is None:
            return []
        errors = [FieldError("image", message) for message in check_image(image)]
        if not errors and self.storage is None:
            errors.append(FieldError("image", "Image uploads are not configured"))
        return errors

    def _load_users(self, ids: list[uuid.UUID]) -> dict[uuid.UUID, User]:
        if not ids:
            return {}
        users = self.db.scalars(select(User).where(User.id.in_(ids))).all()
        return {u.id: u for u in users}

    def _check_attendees(self, fields: Mapping[str, Any], errors: list[FieldError]) -> None:
        if not fields.get("attendees") or any(e.field == "attendees" for e in errors):
            return
        ids = normalize_event_fields({"attendees": fields["attendees"]})["attendees"]
        known = self._load_users(ids)
        for attendee_id in ids:
            if attendee_id not in known:
                errors.append(FieldError("attendees", f"Unknown attendee: {attendee_id}"))

    def _resolve_attendees(self, ids: list[uuid.UUID]) -> list[User]:
        known = self._load_users(ids)
        return [known[i] for i in ids]

    def _upload(self, image: ImageUpload) -> tuple[str, str]:
        """Save the poster; returns (key, public url)."""
        assert self.storage is not None
        key = image_key(image)
        try:
            return key, self.storage.save(key, image.data)
        except OSError as exc:
            logger.error("image_upload_failed", filename=image.filename, error=str(exc))
            raise StorageUnavailableError(
                "IMAGE_STORE_UNAVAILABLE", "Image storage is unavailable"
            ) from exc

    def _commit(self, saved_key: str | None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            # The poster saved for this write has no row pointing at it.
            if saved_key is not None and self.storage is not None:
                self.storage.delete(saved_key)
            raise

    def _discard(self, url: str | None) -> None:
        """Remove a poster that no committed row points at any more."""
        if self.storage is None:
            return
        key = self.storage.key_for_url(url)
        if key is None:
            return
        try:
            self.storage.delete(key)
        except OSError as exc:
            logger.warning("image_cleanup_failed", key=key, error=str(exc))

    def _apply(self, event: Event, normalized: Mapping[str, Any], attendees: list[User] | None) -> None:
        for key, value in normalized.items():
            attr = _ATTRIBUTES.get(key)
            if attr is None:
                continue
            if getattr(event, attr) != value:
                setattr(event, attr, value)
        if attendees is not None and {u.id for u in attendees} != {u.id for u in event.attendees}:
            event.attendees = attendees

    def create_event(
        self,
        principal: Principal,
        fields: Mapping[str, Any],
        image: ImageUpload | None = None,
    ) -> Event:
        if not can_create(principal):
            raise ForbiddenError("EVENT_CREATE_FORBIDDEN", "Only admins can create events")

        errors = validate_event_fields(fields) + self._check_image(image)
        self._check_attendees(fields, errors)
        if errors:
            raise ValidationError(errors)

        normalized = normalize_event_fields(fields)
        attendees = self._resolve_attendees(normalized.pop("attendees", []))

        event = Event(created_by=principal.id)
        self._apply(event, normalized, attendees)
        saved_key = None
        if image is not None:
            saved_key, event.image_url = self._upload(image)

        self.db.add(event)
        self._commit(saved_key)
        self.db.refresh(event)

        logger.info("event_created", event_id=str(event.id), created_by=str(principal.id))
        return event

    def update_event(
        self,
        principal: Principal,
        event_id: Any,
        fields: Mapping[str, Any],
        image: ImageUpload | None = None,
    ) -> Event:
        event = self._get_or_404(event_id)
        if not can_write(principal, event):
            raise ForbiddenError(
                "EVENT_FORBIDDEN", "Access denied. You can only update your own events"
            )

        # Validate the merged record, not just the fields being changed.
        errors = validate_event_fields(fields, current=event_field_values(event))
        errors += self._check_image(image)
        self._check_attendees(fields, errors)
        if errors:
            raise ValidationError(errors)

        normalized = normalize_event_fields(fields)
        attendees = None
        if "attendees" in normalized:
            attendees = self._resolve_attendees(normalized.pop("attendees"))

        previous_url = event.image_url
        self._apply(event, normalized, attendees)
        saved_key = None
        if image is not None:
            saved_key, event.image_url = self._upload(image)

        changed = self.db.is_modified(event)
        self._commit(saved_key)
        self.db.refresh(event)
        if event.image_url != previous_url:
            self._discard(previous_url)

        if changed:
            logger.info("event_updated", event_id=str(event.id), updated_by=str(principal.id))
        return event

    def delete_event(self, principal: Principal, event_id: Any) -> None:
        event = self._get_or_404(event_id)
        if not can_write(principal, event):
            raise ForbiddenError(
                "EVENT_FORBIDDEN", "Access denied. You can only delete your own events"
            )

        image_url = event.image_url
        self.db.delete(event)
        self.db.commit()
        self._discard(image_url)
        logger.info("event_deleted", event_id=str(event.id), deleted_by=str(principal.id))
