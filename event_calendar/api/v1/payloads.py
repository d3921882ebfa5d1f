"""Decode event create/update bodies sent as JSON or as multipart/urlencoded forms.

Form submissions carry everything as text; booleans, the ``recurring`` object and
repeated ``attendees`` values are turned back into real types here so the
service layer only sees what a JSON client would have sent.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from starlette.datastructures import UploadFile

from event_calendar.core.config import settings
from event_calendar.services.exceptions import FieldError, ValidationError
from event_calendar.storage.images import ImageUpload

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
BOOLEAN_FIELDS = ("allDay", "isPublic")
_NESTED_KEY = re.compile(r"^recurring\[(\w+)\]$|^recurring\.(\w+)$")


@dataclass
class EventPayload:
    fields: dict[str, Any] = field(default_factory=dict)
    image: ImageUpload | None = None


def _form_bool(value: Any) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def _form_int(value: Any) -> Any:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _maybe_json(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return value


async def _read_image(upload: UploadFile) -> ImageUpload | None:
    if not upload.filename:
        return None
    # One byte past the limit is enough to reject an oversized file.
    data = await upload.read(settings.upload_max_bytes + 1)
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )


async def _decode_form(request: Request) -> EventPayload:
    form = await request.form()
    payload = EventPayload()
    recurring_parts: dict[str, Any] = {}

    for key in set(form.keys()):
        values = form.getlist(key)
        if key == "image":
            upload = values[0]
            if isinstance(upload, UploadFile):
                payload.image = await _read_image(upload)
            continue

        texts = [v for v in values if isinstance(v, str)]
        if not texts:
            continue

        if key in ("attendees", "attendees[]"):
            if len(texts) == 1 and texts[0].strip().startswith("["):
                payload.fields["attendees"] = _maybe_json(texts[0])
            else:
                payload.fields["attendees"] = [t for t in texts if t.strip()]
            continue

        nested = _NESTED_KEY.match(key)
        if nested:
            recurring_parts[nested.group(1) or nested.group(2)] = texts[-1]
            continue

        value = texts[-1]
        if key == "recurring":
            value = _maybe_json(value)
        elif key in BOOLEAN_FIELDS:
            value = _form_bool(value)
        payload.fields[key] = value

    if recurring_parts and "recurring" not in payload.fields:
        payload.fields["recurring"] = recurring_parts

    recurring = payload.fields.get("recurring")
    if isinstance(recurring, dict):
        recurring = dict(recurring)
        if "isRecurring" in recurring:
            recurring["isRecurring"] = _form_bool(recurring["isRecurring"])
        if "interval" in recurring:
            recurring["interval"] = _form_int(recurring["interval"])
        for k in ("frequency", "endDate"):
            if recurring.get(k) == "":
                recurring[k] = None
        payload.fields["recurring"] = recurring

    return payload


async def event_payload(request: Request) -> EventPayload:
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        return await _decode_form(request)

    body = await request.body()
    if not body.strip():
        return EventPayload()
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationError([FieldError("body", "Request body must be valid JSON")]) from None
    if not isinstance(data, dict):
        raise ValidationError([FieldError("body", "Request body must be a JSON object")])
    return EventPayload(fields=data)
