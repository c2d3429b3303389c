from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # Local runs and tests; a single in-process connection.
        return {"connect_args": {"check_same_thread": False}}
    # pool_pre_ping: check connection is alive before use (the server closes idle connections).
    # pool_recycle: discard connections after this many seconds to avoid stale connections.
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    future=True,
    **_engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services commit, anything uncommitted is rolled back on close."""
    async with AsyncSessionLocal() as session:
        yield session
