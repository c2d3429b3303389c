from datetime import date, time

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetables import service as timetable_service
from app.auth.models import User
from app.core.models import ClassAttendance, TimetableSlot, TrainerSubjectAssignment
from tests.factories import (
    add_class_to_term,
    auth_headers,
    make_class,
    make_offering,
    make_period,
    make_room,
    make_subject,
    make_term,
)

MONDAY = 1


@pytest.fixture()
async def catalog(db_session: AsyncSession):
    term = await make_term(db_session, "Spring")
    cls = await make_class(db_session, "CS101", "Intro Cohort")
    other_cls = await make_class(db_session, "CS102", "Evening Cohort")
    await add_class_to_term(db_session, term, cls)
    await add_class_to_term(db_session, term, other_cls)
    subject = await make_subject(db_session, "ALG", "Algorithms")
    offline_subject = await make_subject(db_session, "LAB", "Lab Practice", can_be_online=False)
    offering = await make_offering(db_session, cls, subject, term)
    await make_offering(db_session, other_cls, subject, term)
    await make_offering(db_session, cls, offline_subject, term)
    room = await make_room(db_session, "Room 1")
    other_room = await make_room(db_session, "Room 2")
    first = await make_period(db_session, "P1", time(9, 0), time(9, 45))
    second = await make_period(db_session, "P2", time(9, 45), time(10, 30))
    return {
        "term": term,
        "class": cls,
        "other_class": other_cls,
        "subject": subject,
        "offering": offering,
        "offline_subject": offline_subject,
        "room": room,
        "other_room": other_room,
        "first": first,
        "second": second,
    }


def _slot(catalog, trainer: User, **overrides):
    payload = {
        "term_id": catalog["term"].id,
        "class_id": catalog["class"].id,
        "subject_id": catalog["subject"].id,
        "employee_id": trainer.id,
        "room_id": catalog["room"].id,
        "lesson_period_id": catalog["first"].id,
        "day_of_week": MONDAY,
    }
    payload.update(overrides)
    return payload


def _availability_url(trainer: User, catalog, period_key: str = "first", day: int = MONDAY) -> str:
    return (
        f"/api/v1/trainers/{trainer.id}/availability"
        f"?term_id={catalog['term'].id}&day_of_week={day}&lesson_period_id={catalog[period_key].id}"
    )


@pytest.mark.asyncio
async def test_trainer_availability_reflects_scheduled_slots(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    url = _availability_url(trainer, catalog)
    response = await client.get(url, headers=auth_headers(trainer))
    assert response.status_code == 200
    data = response.json()
    assert data["is_available"] is True
    assert data["conflict"] is None
    assert data["slot_details"]["day_name"] == "Monday"
    assert data["slot_details"]["lesson_period"]["start_time"] == "09:00"
    assert data["slot_details"]["lesson_period"]["duration_minutes"] == 45

    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=auth_headers(admin))
    assert response.status_code == 201
    slot_id = response.json()["id"]

    response = await client.get(url, headers=auth_headers(trainer))
    data = response.json()
    assert data["is_available"] is False
    assert data["conflict"]["timetable_slot_id"] == slot_id
    assert data["conflict"]["class"]["code"] == "CS101"
    assert data["conflict"]["subject"]["code"] == "ALG"
    assert data["conflict"]["room"]["name"] == "Room 1"

    response = await client.get(f"{url}&exclude_slot_id={slot_id}", headers=auth_headers(trainer))
    assert response.json()["is_available"] is True

    response = await client.get(_availability_url(trainer, catalog, "second"), headers=auth_headers(trainer))
    assert response.json()["is_available"] is True


@pytest.mark.asyncio
async def test_availability_rejects_day_outside_week(
    client: AsyncClient, catalog, trainer: User
) -> None:
    response = await client.get(_availability_url(trainer, catalog, day=7), headers=auth_headers(trainer))
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_availability_of_another_trainer_requires_privilege(
    client: AsyncClient, catalog, trainer: User, other_trainer: User
) -> None:
    response = await client.get(_availability_url(other_trainer, catalog), headers=auth_headers(trainer))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_trainer_double_booking_is_a_conflict(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    headers = auth_headers(admin)
    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    assert response.status_code == 201

    response = await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, trainer, class_id=catalog["other_class"].id, room_id=catalog["other_room"].id),
        headers=headers,
    )
    assert response.status_code == 409
    body = response.json()
    assert body["context"]["resource"] == "trainer"
    assert body["detail"].startswith("Scheduling conflict: Trainer Tom Trainer is already scheduled")


@pytest.mark.asyncio
async def test_room_double_booking_is_a_conflict(
    client: AsyncClient, catalog, admin: User, trainer: User, other_trainer: User
) -> None:
    headers = auth_headers(admin)
    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    assert response.status_code == 201

    response = await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, other_trainer, class_id=catalog["other_class"].id),
        headers=headers,
    )
    assert response.status_code == 409
    assert response.json()["context"]["resource"] == "room"
    assert "Room 1 is already booked" in response.json()["detail"]

    url = (
        f"/api/v1/rooms/{catalog['room'].id}/availability"
        f"?term_id={catalog['term'].id}&day_of_week={MONDAY}&lesson_period_id={catalog['first'].id}"
    )
    response = await client.get(url, headers=auth_headers(other_trainer))
    assert response.status_code == 200
    assert response.json()["is_available"] is False


@pytest.mark.asyncio
async def test_cancelled_slot_frees_trainer_and_room(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    headers = auth_headers(admin)
    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    slot_id = response.json()["id"]

    response = await client.post(f"/api/v1/timetable/{slot_id}/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = await client.get(_availability_url(trainer, catalog), headers=auth_headers(trainer))
    assert response.json()["is_available"] is True

    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_slot_requires_class_in_term_and_offering(
    client: AsyncClient, db_session: AsyncSession, catalog, admin: User, trainer: User
) -> None:
    headers = auth_headers(admin)
    stray = await make_class(db_session, "CS999")
    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer, class_id=stray.id), headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Class not assigned to term"

    response = await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, trainer, class_id=catalog["other_class"].id, subject_id=catalog["offline_subject"].id),
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Subject is not offered to this class for this term"


@pytest.mark.asyncio
async def test_online_session_needs_online_capable_subject(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    response = await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, trainer, subject_id=catalog["offline_subject"].id, is_online_session=True),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reschedule_checks_occupancy_excluding_itself(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    headers = auth_headers(admin)
    first = (await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)).json()
    second = (
        await client.post(
            "/api/v1/timetable",
            json=_slot(catalog, trainer, lesson_period_id=catalog["second"].id),
            headers=headers,
        )
    ).json()

    response = await client.put(
        f"/api/v1/timetable/{first['id']}", json={"room_id": catalog["other_room"].id}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["room_name"] == "Room 2"

    response = await client.put(
        f"/api/v1/timetable/{second['id']}", json={"lesson_period_id": catalog["first"].id}, headers=headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_trainer_sees_and_edits_only_own_slots(
    client: AsyncClient, catalog, admin: User, trainer: User, other_trainer: User
) -> None:
    headers = auth_headers(admin)
    mine = (await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)).json()
    theirs = (
        await client.post(
            "/api/v1/timetable",
            json=_slot(catalog, other_trainer, class_id=catalog["other_class"].id, room_id=catalog["other_room"].id),
            headers=headers,
        )
    ).json()

    response = await client.get("/api/v1/timetable", headers=auth_headers(trainer))
    assert [s["id"] for s in response.json()] == [mine["id"]]

    response = await client.get(f"/api/v1/timetable/{theirs['id']}", headers=auth_headers(trainer))
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/timetable/{mine['id']}", json={"employee_id": other_trainer.id}, headers=auth_headers(trainer)
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/timetable/{mine['id']}", json={"day_of_week": 2}, headers=auth_headers(trainer)
    )
    assert response.status_code == 200
    assert response.json()["day_name"] == "Tuesday"


@pytest.mark.asyncio
async def test_delete_slot_with_attendance_cancels_instead(
    client: AsyncClient, db_session: AsyncSession, catalog, admin: User, trainer: User
) -> None:
    headers = auth_headers(admin)
    kept = (await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)).json()
    dropped = (
        await client.post(
            "/api/v1/timetable",
            json=_slot(catalog, trainer, lesson_period_id=catalog["second"].id),
            headers=headers,
        )
    ).json()
    db_session.add(ClassAttendance(trainer_id=trainer.id, class_id=catalog["class"].id, timetable_slot_id=kept["id"]))
    await db_session.commit()

    response = await client.delete(f"/api/v1/timetable/{kept['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["deactivated"] is True

    response = await client.delete(f"/api/v1/timetable/{dropped['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["deactivated"] is False

    db_session.expire_all()
    rows = (await db_session.execute(select(TimetableSlot))).scalars().all()
    assert [(s.id, s.status) for s in rows] == [(kept["id"], "cancelled")]


async def _no_occupant(*args, **kwargs):
    return None


@pytest.mark.asyncio
async def test_availability_with_missing_or_malformed_params_is_a_validation_error(
    client: AsyncClient, catalog, trainer: User
) -> None:
    response = await client.get(
        f"/api/v1/trainers/{trainer.id}/availability"
        f"?term_id={catalog['term'].id}&lesson_period_id={catalog['first'].id}",
        headers=auth_headers(trainer),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["context"]["errors"][0]["loc"] == ["query", "day_of_week"]

    response = await client.get("/api/v1/timetable/abc", headers=auth_headers(trainer))
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_storage_rejects_double_booking_the_pre_check_missed(
    client: AsyncClient, db_session: AsyncSession, catalog, admin: User, trainer: User, monkeypatch
) -> None:
    headers = auth_headers(admin)
    response = await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    assert response.status_code == 201

    # Two requests racing past the occupancy check: only the partial unique indexes stand in the way.
    monkeypatch.setattr(timetable_service, "find_occupying_slot", _no_occupant)
    response = await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, trainer, class_id=catalog["other_class"].id, room_id=catalog["other_room"].id),
        headers=headers,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"
    assert response.json()["detail"] == timetable_service.RACE_CONFLICT_MESSAGE

    rows = (await db_session.execute(select(TimetableSlot))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_storage_rejects_reschedule_into_occupied_slot(
    client: AsyncClient, catalog, admin: User, trainer: User, monkeypatch
) -> None:
    headers = auth_headers(admin)
    await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=headers)
    second = (
        await client.post(
            "/api/v1/timetable",
            json=_slot(catalog, trainer, lesson_period_id=catalog["second"].id),
            headers=headers,
        )
    ).json()

    monkeypatch.setattr(timetable_service, "find_occupying_slot", _no_occupant)
    response = await client.put(
        f"/api/v1/timetable/{second['id']}", json={"lesson_period_id": catalog["first"].id}, headers=headers
    )
    assert response.status_code == 409
    assert response.json()["detail"] == timetable_service.RACE_CONFLICT_MESSAGE
    assert response.json()["context"] == {"timetable_slot_id": second["id"]}

    response = await client.get(f"/api/v1/timetable/{second['id']}", headers=headers)
    assert response.json()["lesson_period_id"] == catalog["second"].id


@pytest.mark.asyncio
async def test_preflight_reports_missing_trainers_and_regeneration_window(
    client: AsyncClient, db_session: AsyncSession, catalog, admin: User, trainer: User
) -> None:
    db_session.add(
        TrainerSubjectAssignment(
            trainer_id=trainer.id,
            subject_id=catalog["subject"].id,
            term_id=catalog["term"].id,
            class_subject_id=catalog["offering"].id,
        )
    )
    await db_session.commit()
    url = f"/api/v1/timetable/pre-flight?term_id={catalog['term'].id}"

    response = await client.get(url, headers=auth_headers(admin))
    assert response.status_code == 200
    report = response.json()
    assert report["passed"] is False
    assert [c["code"] for c in report["classes"]] == ["CS102", "CS101"]
    assert [o["class_subject_id"] for o in report["offerings_with_trainer"]] == [catalog["offering"].id]
    assert report["offerings_with_trainer"][0]["trainer"] == {"id": trainer.id, "name": "Tom Trainer"}
    assert len(report["offerings_without_trainer"]) == 2
    [holder] = report["trainers"]
    assert holder["id"] == trainer.id
    assert holder["subjects_count"] == 1
    assert holder["subject_codes"] == ["ALG (CS101)"]
    assert report["errors"] == ["2 subject(s) have no trainer assigned"]
    assert report["warnings"] == ["Only 2 lesson period(s) configured"]
    # The default term started 30 days ago.
    assert report["existing_timetable"] == {
        "exists": False,
        "slots_count": 0,
        "can_regenerate": False,
        "days_since_term_start": 30,
    }

    await client.post("/api/v1/timetable", json=_slot(catalog, trainer), headers=auth_headers(admin))
    report = (await client.get(url, headers=auth_headers(admin))).json()
    assert report["existing_timetable"]["slots_count"] == 1
    assert "Cannot regenerate: term started 30 days ago (limit is 14 days)" in report["errors"]


@pytest.mark.asyncio
async def test_preflight_requires_privilege_and_known_term(
    client: AsyncClient, catalog, admin: User, trainer: User
) -> None:
    response = await client.get(
        f"/api/v1/timetable/pre-flight?term_id={catalog['term'].id}", headers=auth_headers(trainer)
    )
    assert response.status_code == 403

    response = await client.get("/api/v1/timetable/pre-flight?term_id=9999", headers=auth_headers(admin))
    assert response.status_code == 404

    response = await client.get("/api/v1/timetable/pre-flight", headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_trainer_today_and_week_views(
    client: AsyncClient, catalog, admin: User, trainer: User, other_trainer: User
) -> None:
    today = (date.today().weekday() + 1) % 7
    tomorrow = (today + 1) % 7
    headers = auth_headers(admin)
    todays = (
        await client.post("/api/v1/timetable", json=_slot(catalog, trainer, day_of_week=today), headers=headers)
    ).json()
    await client.post(
        "/api/v1/timetable",
        json=_slot(catalog, trainer, day_of_week=tomorrow, lesson_period_id=catalog["second"].id),
        headers=headers,
    )
    cancelled = (
        await client.post(
            "/api/v1/timetable",
            json=_slot(catalog, trainer, day_of_week=today, lesson_period_id=catalog["second"].id),
            headers=headers,
        )
    ).json()
    await client.post(f"/api/v1/timetable/{cancelled['id']}/cancel", headers=headers)

    response = await client.get(f"/api/v1/timetable/trainers/{trainer.id}/today", headers=auth_headers(trainer))
    assert response.status_code == 200
    data = response.json()
    assert data["day_of_week"] == today
    assert data["calendar_date"] == date.today().isoformat()
    assert data["term"]["id"] == catalog["term"].id
    assert [s["id"] for s in data["slots"]] == [todays["id"]]

    response = await client.get(f"/api/v1/timetable/trainers/{trainer.id}/week", headers=auth_headers(trainer))
    assert response.status_code == 200
    week = response.json()
    assert week["total_slots"] == 2
    assert [d["day_name"] for d in week["days"]][0] == "Sunday"
    assert [s["id"] for s in week["days"][today]["slots"]] == [todays["id"]]
    assert len(week["days"][tomorrow]["slots"]) == 1
    assert week["days"][today]["calendar_date"] == date.today().isoformat()

    response = await client.get(
        f"/api/v1/timetable/trainers/{trainer.id}/today", headers=auth_headers(other_trainer)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_schedule_views_need_a_current_term(client: AsyncClient, trainer: User) -> None:
    response = await client.get(f"/api/v1/timetable/trainers/{trainer.id}/week", headers=auth_headers(trainer))
    assert response.status_code == 404
    assert response.json()["detail"] == "No active term found for current date"
