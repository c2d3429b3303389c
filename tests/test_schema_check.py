import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.schema_check import ensure_tables


@pytest.mark.asyncio
async def test_ensure_tables_is_idempotent() -> None:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    try:
        created = await ensure_tables(engine)
        assert "timetable_slots" in created
        assert "trainer_subject_assignments" in created
        assert created.index("users") < created.index("timetable_slots")

        assert await ensure_tables(engine) == []
    finally:
        await engine.dispose()
