"""Rooms, lesson periods, subjects and classes."""

from datetime import time

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.lesson_periods.service import duration_minutes
from app.auth.models import User
from app.core.models import TimetableSlot
from tests.factories import (
    auth_headers,
    make_class,
    make_period,
    make_room,
    make_subject,
    make_term,
)


@pytest.mark.asyncio
async def test_room_names_unique_regardless_of_case(client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    response = await client.post("/api/v1/rooms", json={"name": "Lab A", "room_type": "lab"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["room_type"] == "lab"

    response = await client.post("/api/v1/rooms", json={"name": "lab a"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "A room with this name already exists"


@pytest.mark.asyncio
async def test_list_rooms_filters_by_type(client: AsyncClient, admin: User, trainer: User) -> None:
    headers = auth_headers(admin)
    await client.post("/api/v1/rooms", json={"name": "Lab A", "room_type": "lab"}, headers=headers)
    await client.post("/api/v1/rooms", json={"name": "Hall 1", "room_type": "lecture_hall"}, headers=headers)

    response = await client.get("/api/v1/rooms?room_type=lab", headers=auth_headers(trainer))
    assert [r["name"] for r in response.json()] == ["Lab A"]


@pytest.mark.asyncio
async def test_room_used_by_slots_is_deactivated_on_delete(
    client: AsyncClient, db_session: AsyncSession, admin: User, trainer: User
) -> None:
    room = await make_room(db_session, "Room 1")
    unused = await make_room(db_session, "Room 2")
    term = await make_term(db_session)
    cls = await make_class(db_session, "CS101")
    subject = await make_subject(db_session, "ALG")
    period = await make_period(db_session, "P1", time(9, 0), time(9, 45))
    db_session.add(
        TimetableSlot(
            term_id=term.id,
            class_id=cls.id,
            subject_id=subject.id,
            employee_id=trainer.id,
            room_id=room.id,
            lesson_period_id=period.id,
            day_of_week=1,
        )
    )
    await db_session.commit()
    headers = auth_headers(admin)

    response = await client.delete(f"/api/v1/rooms/{room.id}", headers=headers)
    assert response.json()["deactivated"] is True
    assert response.json()["references"] == 1

    response = await client.delete(f"/api/v1/rooms/{unused.id}", headers=headers)
    assert response.json()["deactivated"] is False
    response = await client.get(f"/api/v1/rooms/{unused.id}", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_lesson_periods_may_touch_but_not_overlap(client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    response = await client.post(
        "/api/v1/lesson-periods", json={"name": "P1", "start_time": "09:00", "end_time": "09:45"}, headers=headers
    )
    assert response.status_code == 201
    assert response.json()["start_time"] == "09:00"
    assert response.json()["duration_minutes"] == 45

    response = await client.post(
        "/api/v1/lesson-periods", json={"name": "P2", "start_time": "09:45", "end_time": "10:30"}, headers=headers
    )
    assert response.status_code == 201

    response = await client.post(
        "/api/v1/lesson-periods", json={"name": "Clash", "start_time": "09:30", "end_time": "10:00"}, headers=headers
    )
    assert response.status_code == 409
    assert "P1" in response.json()["detail"]


@pytest.mark.asyncio
async def test_lesson_period_start_must_precede_end(client: AsyncClient, admin: User) -> None:
    response = await client.post(
        "/api/v1/lesson-periods",
        json={"name": "Backwards", "start_time": "10:00", "end_time": "09:00"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Start time must be before end time"


def test_duration_minutes() -> None:
    assert duration_minutes(time(9, 0), time(9, 45)) == 45
    assert duration_minutes(time(13, 30), time(15, 0)) == 90


@pytest.mark.asyncio
async def test_subject_codes_upper_cased_and_unique(client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    payload = {"name": "Algorithms", "code": "alg-1", "department": "Engineering"}
    response = await client.post("/api/v1/subjects", json=payload, headers=headers)
    assert response.status_code == 201
    assert response.json()["code"] == "ALG-1"

    response = await client.post("/api/v1/subjects", json={**payload, "name": "Other"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["context"]["code"] == "ALG-1"


@pytest.mark.asyncio
async def test_class_codes_unique_and_toggle(client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    payload = {"name": "Intro", "code": "cs101", "department": "Engineering"}
    response = await client.post("/api/v1/classes", json=payload, headers=headers)
    assert response.status_code == 201
    class_id = response.json()["id"]
    assert response.json()["code"] == "CS101"

    response = await client.post("/api/v1/classes", json=payload, headers=headers)
    assert response.status_code == 409

    response = await client.post(f"/api/v1/classes/{class_id}/toggle-status", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False


@pytest.mark.asyncio
async def test_catalog_writes_require_privilege(client: AsyncClient, trainer: User) -> None:
    headers = auth_headers(trainer)
    response = await client.post("/api/v1/rooms", json={"name": "Mine"}, headers=headers)
    assert response.status_code == 403
    response = await client.post(
        "/api/v1/subjects", json={"name": "X", "code": "X", "department": "Y"}, headers=headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/rooms")
    assert response.status_code == 401
