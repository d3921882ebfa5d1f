from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from event_calendar.db import get_db
from event_calendar.main import app
from event_calendar.models import User
from event_calendar.models.user import UserRole
from event_calendar.storage import LocalImageStore, create_storage, get_storage
from tests.test_auth_rbac import auth_headers

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _event_body(**overrides):
    body = {
        "title": "Launch party",
        "start": "2030-07-04T18:00:00Z",
        "end": "2030-07-04T22:00:00Z",
        "type": "other",
        "city": "Porto",
    }
    body.update(overrides)
    return body


def _create_event(client: TestClient, token: str, **overrides):
    return client.post(
        "/api/v1/events",
        json=_event_body(**overrides),
        headers=auth_headers(token),
    )


def test_admin_creates_and_reads_event(client: TestClient, admin):
    token, admin_id = admin

    resp = _create_event(client, token, description="Rooftop")
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Event created successfully"

    event = body["data"]
    assert event["title"] == "Launch party"
    assert event["type"] == "other"
    assert event["status"] == "scheduled"
    assert event["isPublic"] is True
    assert event["allDay"] is False
    assert event["createdBy"] == admin_id
    assert event["creator"] == {"id": admin_id, "name": "Admin"}
    assert event["attendees"] == []
    assert event["recurring"]["isRecurring"] is False
    assert event["durationMinutes"] == 240
    assert event["isPast"] is False
    assert event["isToday"] is False

    fetched = client.get(f"/api/v1/events/{event['id']}", headers=auth_headers(token))
    assert fetched.status_code == 200
    assert fetched.json()["data"]["description"] == "Rooftop"


def test_regular_user_cannot_create(client: TestClient, make_user):
    token, _ = make_user("user@example.com")
    resp = _create_event(client, token)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "Admin access required"}


def test_listing_requires_authentication(client: TestClient):
    resp = client.get("/api/v1/events")
    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_invalid_event_reports_field_errors(client: TestClient, admin):
    token, _ = admin
    resp = _create_event(
        client,
        token,
        title="",
        end="2030-07-04T17:00:00Z",
        type="party",
        allDay="sometimes",
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert {(e["field"], e["message"]) for e in body["errors"]} == {
        ("title", "Event title is required"),
        ("end", "End date must be after start date"),
        ("type", "Invalid event type"),
        ("allDay", "All day must be a boolean value"),
    }

    listed = client.get("/api/v1/events", headers=auth_headers(token))
    assert listed.json()["count"] == 0


def test_non_text_type_and_status_are_field_errors(client: TestClient, admin):
    token, _ = admin
    resp = _create_event(
        client,
        token,
        type=["meeting"],
        status={"value": "scheduled"},
        recurring={"frequency": ["daily"]},
    )
    assert resp.status_code == 400
    assert {(e["field"], e["message"]) for e in resp.json()["errors"]} == {
        ("type", "Invalid event type"),
        ("status", "Invalid event status"),
        ("recurring.frequency", "Invalid recurrence frequency"),
    }


def test_non_object_body_is_rejected(client: TestClient, admin):
    token, _ = admin
    resp = client.post("/api/v1/events", json=["title"], headers=auth_headers(token))
    assert resp.status_code == 400


def test_visibility_across_users(client: TestClient, admin, make_user):
    admin_token, _ = admin
    user_token, _ = make_user("viewer@example.com")

    _create_event(client, admin_token, title="Open house")
    private_id = _create_event(client, admin_token, title="Board meeting", isPublic=False).json()[
        "data"
    ]["id"]

    admin_list = client.get("/api/v1/events", headers=auth_headers(admin_token)).json()
    user_list = client.get("/api/v1/events", headers=auth_headers(user_token)).json()
    assert admin_list["count"] == 2
    assert [e["title"] for e in user_list["data"]] == ["Open house"]

    resp = client.get(f"/api/v1/events/{private_id}", headers=auth_headers(user_token))
    assert resp.status_code == 403


def test_public_listing_needs_no_token_and_hides_attendees(client: TestClient, admin, make_user):
    admin_token, _ = admin
    _, guest_id = make_user("guest@example.com")

    _create_event(client, admin_token, title="Street fair", attendees=[guest_id])
    _create_event(client, admin_token, title="Lisbon fair", city="Lisbon")
    _create_event(client, admin_token, title="Staff only", isPublic=False)

    resp = client.get("/api/v1/events/public")
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert all("attendees" not in e for e in body["data"])

    porto = client.get("/api/v1/events/public", params={"city": "Porto"}).json()
    assert [e["title"] for e in porto["data"]] == ["Street fair"]


def test_list_filters(client: TestClient, admin):
    token, _ = admin
    _create_event(client, token, title="Write report", type="task", status="in-progress")
    _create_event(client, token, title="Kickoff", type="meeting")

    resp = client.get(
        "/api/v1/events",
        params={"type": "task", "status": "in-progress"},
        headers=auth_headers(token),
    )
    assert [e["title"] for e in resp.json()["data"]] == ["Write report"]


def test_invalid_filters_are_rejected(client: TestClient, admin):
    token, _ = admin
    resp = client.get(
        "/api/v1/events",
        params={"type": "party", "start": "whenever"},
        headers=auth_headers(token),
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid filters"
    assert {e["field"] for e in body["errors"]} == {"type", "start"}


def test_range_endpoint(client: TestClient, admin):
    token, _ = admin
    _create_event(client, token, title="June", start="2030-06-15T10:00:00Z", end="2030-06-15T11:00:00Z")
    _create_event(client, token, title="July", start="2030-07-15T10:00:00Z", end="2030-07-15T11:00:00Z")

    resp = client.get("/api/v1/events/range/2030-06-01/2030-06-30", headers=auth_headers(token))
    assert resp.status_code == 200
    assert [e["title"] for e in resp.json()["data"]] == ["June"]

    bad = client.get("/api/v1/events/range/soon/later", headers=auth_headers(token))
    assert bad.status_code == 400


def test_month_calendar(client: TestClient, admin):
    token, _ = admin
    _create_event(client, token, title="Fireworks")
    _create_event(client, token, title="Spill-over", start="2030-06-24T10:00:00Z", end="2030-06-24T11:00:00Z")

    resp = client.get("/api/v1/events/calendar/2030/7", headers=auth_headers(token))
    assert resp.status_code == 200
    body = resp.json()
    grid = body["data"]
    assert grid["year"] == 2030
    assert grid["month"] == 7
    assert len(grid["weeks"]) == 6
    assert all(len(week) == 7 for week in grid["weeks"])

    days = {d["date"]: d for week in grid["weeks"] for d in week}
    # 1 July 2030 is a Monday.
    assert grid["weeks"][0][0]["date"] == "2030-07-01"
    assert [e["title"] for e in days["2030-07-04"]["events"]] == ["Fireworks"]
    assert days["2030-08-01"]["inMonth"] is False
    assert body["count"] == 1

    bad = client.get("/api/v1/events/calendar/2030/13", headers=auth_headers(token))
    assert bad.status_code == 400


def test_update_and_delete_lifecycle(client: TestClient, admin):
    token, _ = admin
    event_id = _create_event(client, token).json()["data"]["id"]

    resp = client.put(
        f"/api/v1/events/{event_id}",
        json={"status": "cancelled", "location": "Warehouse 9"},
        headers=auth_headers(token),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "cancelled"
    assert data["location"] == "Warehouse 9"
    assert data["title"] == "Launch party"

    deleted = client.delete(f"/api/v1/events/{event_id}", headers=auth_headers(token))
    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Event deleted successfully"

    gone = client.get(f"/api/v1/events/{event_id}", headers=auth_headers(token))
    assert gone.status_code == 404
    assert gone.json() == {"success": False, "message": "Event not found"}


def test_null_update_keeps_private_event_private(client: TestClient, admin, make_user):
    token, _ = admin
    user_token, _ = make_user("viewer@example.com")
    created = _create_event(client, token, isPublic=False, type="task", status="completed")
    event_id = created.json()["data"]["id"]

    resp = client.put(
        f"/api/v1/events/{event_id}",
        json={"isPublic": None, "type": None, "status": None},
        headers=auth_headers(token),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["isPublic"] is False
    assert data["type"] == "task"
    assert data["status"] == "completed"

    hidden = client.get(f"/api/v1/events/{event_id}", headers=auth_headers(user_token))
    assert hidden.status_code == 403


def test_non_owner_cannot_update_or_delete(client: TestClient, admin, make_user):
    admin_token, _ = admin
    user_token, _ = make_user("intruder@example.com")
    event_id = _create_event(client, admin_token).json()["data"]["id"]

    resp = client.put(
        f"/api/v1/events/{event_id}",
        json={"title": "Mine now"},
        headers=auth_headers(user_token),
    )
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied. You can only update your own events"

    resp = client.delete(f"/api/v1/events/{event_id}", headers=auth_headers(user_token))
    assert resp.status_code == 403


def test_demoted_admin_still_edits_own_event(client: TestClient, admin, db_session):
    token, admin_id = admin
    event_id = _create_event(client, token).json()["data"]["id"]

    db_session.execute(
        update(User).where(User.id == uuid.UUID(admin_id)).values(role=UserRole.USER)
    )
    db_session.commit()

    resp = client.put(
        f"/api/v1/events/{event_id}",
        json={"title": "Still editable"},
        headers=auth_headers(token),
    )
    assert resp.status_code == 200

    # Creating is admin-only even for past admins.
    assert _create_event(client, token).status_code == 403


def test_unknown_and_malformed_ids_are_not_found(client: TestClient, admin):
    token, _ = admin
    for event_id in (str(uuid.uuid4()), "definitely-not-an-id"):
        resp = client.get(f"/api/v1/events/{event_id}", headers=auth_headers(token))
        assert resp.status_code == 404
        put = client.put(
            f"/api/v1/events/{event_id}",
            json={"title": "x"},
            headers=auth_headers(token),
        )
        assert put.status_code == 404


def test_multipart_create_with_image_and_form_booleans(client: TestClient, admin, make_user, storage):
    token, _ = admin
    _, guest_id = make_user("friend@example.com")

    resp = client.post(
        "/api/v1/events",
        data={
            "title": "Gallery opening",
            "start": "2030-09-01T19:00:00Z",
            "end": "2030-09-01T21:00:00Z",
            "allDay": "false",
            "isPublic": "true",
            "recurring[isRecurring]": "true",
            "recurring[frequency]": "monthly",
            "recurring[interval]": "2",
            "attendees": [guest_id],
        },
        files={"image": ("poster.png", PNG, "image/png")},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, resp.text
    event = resp.json()["data"]
    assert event["allDay"] is False
    assert event["isPublic"] is True
    assert event["recurring"]["isRecurring"] is True
    assert event["recurring"]["frequency"] == "monthly"
    assert event["recurring"]["interval"] == 2
    assert event["attendees"] == [guest_id]
    assert event["imageUrl"].startswith("http://testserver/uploads/event-posters/")
    assert event["imageUrl"].endswith(".png")

    key = event["imageUrl"].removeprefix("http://testserver/uploads/")
    assert storage.exists(key)


def test_multipart_update_replaces_image(client: TestClient, admin):
    token, _ = admin
    event_id = _create_event(client, token).json()["data"]["id"]

    resp = client.put(
        f"/api/v1/events/{event_id}",
        data={"title": "With poster"},
        files={"image": ("poster.jpg", PNG, "image/jpeg")},
        headers=auth_headers(token),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "With poster"
    assert data["imageUrl"].endswith(".jpg")


def test_non_image_upload_is_rejected(client: TestClient, admin):
    token, _ = admin
    resp = client.post(
        "/api/v1/events",
        data={"title": "Bad file", "start": "2030-09-01T19:00:00Z", "end": "2030-09-01T21:00:00Z"},
        files={"image": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers(token),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"] == [{"field": "image", "message": "Only image files are allowed!"}]


def test_oversized_upload_is_rejected(client: TestClient, admin):
    token, _ = admin
    big = PNG + b"\x00" * (5 * 1024 * 1024)
    resp = client.post(
        "/api/v1/events",
        data={"title": "Huge", "start": "2030-09-01T19:00:00Z", "end": "2030-09-01T21:00:00Z"},
        files={"image": ("huge.png", big, "image/png")},
        headers=auth_headers(token),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["message"] == "File too large. Maximum size is 5MB."


class _BrokenStorage(LocalImageStore):
    def save(self, key, data):
        raise OSError("disk unavailable")


def test_image_store_outage_is_503(client: TestClient, admin, tmp_path):
    token, _ = admin
    app.dependency_overrides[get_storage] = lambda: _BrokenStorage(tmp_path, "http://testserver/uploads")

    resp = client.post(
        "/api/v1/events",
        data={"title": "No disk", "start": "2030-09-01T19:00:00Z", "end": "2030-09-01T21:00:00Z"},
        files={"image": ("poster.png", PNG, "image/png")},
        headers=auth_headers(token),
    )
    assert resp.status_code == 503
    assert resp.json()["success"] is False

    listed = client.get("/api/v1/events", headers=auth_headers(token))
    assert listed.json()["count"] == 0


def test_database_outage_is_503(client: TestClient):
    broken = create_engine("sqlite:////nonexistent-dir/events.db")
    BrokenSession = sessionmaker(bind=broken)

    def _broken_db():
        db = BrokenSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _broken_db
    resp = client.get("/api/v1/events/public")
    assert resp.status_code == 503
    assert resp.json() == {
        "success": False,
        "message": "Database connection not available. Please try again later.",
    }


def test_uploaded_files_are_served(client: TestClient):
    create_storage().save("event-posters/served.png", PNG)

    resp = client.get("/uploads/event-posters/served.png")
    assert resp.status_code == 200
    assert resp.content == PNG
    assert resp.headers["Cross-Origin-Resource-Policy"] == "cross-origin"


def test_health_and_request_id(client: TestClient):
    resp = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["database"] == "connected"
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
