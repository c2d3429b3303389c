"""Create any scheduling tables missing from the connected database.

Run once per environment (idempotent):
  python -m app.db.schema_check
"""

import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  registers every table on Base.metadata
from app.db.session import Base, engine


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create missing tables in dependency order; returns the names that were created."""
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]
        if missing:
            await conn.run_sync(Base.metadata.create_all, tables=missing)
    return [t.name for t in missing]


async def main() -> None:
    created = await ensure_tables(engine)
    if created:
        print("Created missing tables: " + ", ".join(created))
    else:
        print("All scheduling tables already exist in the database.")


if __name__ == "__main__":
    asyncio.run(main())
