from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetable_settings.service import DEADLINE_PASSED_MESSAGE, ensure_selection_open
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.exceptions import PermissionDeniedError
from app.core.models import TimetableSettings
from tests.factories import auth_headers, make_user


@pytest.mark.asyncio
async def test_defaults_when_nothing_saved(client: AsyncClient, admin: User) -> None:
    response = await client.get("/api/v1/timetable-settings", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json() == {"allow_admin_assignment": False, "block_all_subject_selection": False}


@pytest.mark.asyncio
async def test_settings_are_privileged(client: AsyncClient, trainer: User) -> None:
    response = await client.get("/api/v1/timetable-settings", headers=auth_headers(trainer))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(client: AsyncClient, admin: User) -> None:
    headers = auth_headers(admin)
    response = await client.put(
        "/api/v1/timetable-settings", json={"block_all_subject_selection": True}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["block_all_subject_selection"] is True

    response = await client.put("/api/v1/timetable-settings", json={"allow_admin_assignment": True}, headers=headers)
    data = response.json()
    assert data["allow_admin_assignment"] is True
    assert data["block_all_subject_selection"] is True
    assert data["generation_deadline_enabled"] is False


@pytest.mark.asyncio
async def test_enabling_deadline_requires_a_value(client: AsyncClient, admin: User) -> None:
    response = await client.put(
        "/api/v1/timetable-settings", json={"generation_deadline_enabled": True}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_selection_window_reports_deadline(
    client: AsyncClient, db_session: AsyncSession, trainer: User, admin: User
) -> None:
    db_session.add(
        TimetableSettings(
            id=1,
            generation_deadline_enabled=True,
            timetable_generation_deadline=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
    )
    await db_session.commit()

    response = await client.get("/api/v1/timetable-settings/window", headers=auth_headers(trainer))
    assert response.status_code == 200
    assert response.json()["is_open"] is False
    assert response.json()["reason"] == DEADLINE_PASSED_MESSAGE

    response = await client.get("/api/v1/timetable-settings/window", headers=auth_headers(admin))
    assert response.json()["is_open"] is True


@pytest.mark.asyncio
async def test_gate_checks_deadline_boundary(db_session: AsyncSession, trainer: User) -> None:
    deadline = datetime(2031, 3, 1, 12, 0, tzinfo=timezone.utc)
    db_session.add(TimetableSettings(id=1, generation_deadline_enabled=True, timetable_generation_deadline=deadline))
    await db_session.commit()
    caller = CurrentUser.model_validate(trainer)

    await ensure_selection_open(db_session, caller, now=deadline - timedelta(seconds=1))
    with pytest.raises(PermissionDeniedError):
        await ensure_selection_open(db_session, caller, now=deadline)


@pytest.mark.asyncio
async def test_global_block_is_reported_before_individual_block(db_session: AsyncSession) -> None:
    blocked = await make_user(db_session, "Bea Blocked", is_blocked=True)
    db_session.add(TimetableSettings(id=1, block_all_subject_selection=True))
    await db_session.commit()

    with pytest.raises(PermissionDeniedError) as exc_info:
        await ensure_selection_open(db_session, CurrentUser.model_validate(blocked), "classes")
    assert exc_info.value.message == "Class selection is currently disabled by administrator."


@pytest.mark.asyncio
async def test_block_and_unblock_trainer(client: AsyncClient, admin: User, trainer: User) -> None:
    headers = auth_headers(admin)
    response = await client.post(
        f"/api/v1/trainers/{trainer.id}/block", json={"reason": "Missed deadline"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["is_blocked"] is True
    assert response.json()["blocked_reason"] == "Missed deadline"

    response = await client.post(f"/api/v1/trainers/{trainer.id}/block", json={}, headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "User is already blocked"

    response = await client.get("/api/v1/timetable-settings/window", headers=auth_headers(trainer))
    assert response.json()["is_open"] is False

    response = await client.post(f"/api/v1/trainers/{trainer.id}/unblock", headers=headers)
    assert response.json()["is_blocked"] is False


@pytest.mark.asyncio
async def test_admins_cannot_be_blocked(client: AsyncClient, db_session: AsyncSession, admin: User) -> None:
    other_admin = await make_user(db_session, "Alan Admin", role="admin")
    response = await client.post(f"/api/v1/trainers/{other_admin.id}/block", json={}, headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_grant_and_revoke_timetable_admin(client: AsyncClient, admin: User, trainer: User) -> None:
    url = f"/api/v1/users/{trainer.id}/timetable-admin"

    response = await client.put(url, json={"has_timetable_admin": True}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["has_timetable_admin"] is True
    assert response.json()["message"] == "Timetable admin privileges granted successfully"

    # Capability flags are re-read on every request
    response = await client.get("/api/v1/timetable-settings", headers=auth_headers(trainer))
    assert response.status_code == 200

    response = await client.put(url, json={"has_timetable_admin": False}, headers=auth_headers(admin))
    assert response.json()["has_timetable_admin"] is False
    response = await client.get("/api/v1/timetable-settings", headers=auth_headers(trainer))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_timetable_admin_cannot_grant_the_capability(
    client: AsyncClient, db_session: AsyncSession, trainer: User
) -> None:
    coordinator = await make_user(db_session, "Cora Coordinator", has_timetable_admin=True)

    response = await client.put(
        f"/api/v1/users/{trainer.id}/timetable-admin",
        json={"has_timetable_admin": True},
        headers=auth_headers(coordinator),
    )
    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"


@pytest.mark.asyncio
async def test_grant_timetable_admin_validates_input(client: AsyncClient, admin: User) -> None:
    response = await client.put(
        "/api/v1/users/9999/timetable-admin", json={"has_timetable_admin": True}, headers=auth_headers(admin)
    )
    assert response.status_code == 404

    response = await client.put(
        f"/api/v1/users/{admin.id}/timetable-admin", json={}, headers=auth_headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
