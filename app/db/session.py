# app/db/session.py
import os
from collections.abc import AsyncGenerator

from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings
from app.db.base import Base

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ or settings.APP_ENV == "test"

# ---------------------------------------------------------------------------
# Main application engine + session
# ---------------------------------------------------------------------------
_engine_kwargs = {"echo": settings.DB_ECHO, "future": True}
if IS_TEST:
    # TestClient and pytest-asyncio run on different event loops,
    # so connections must never be reused across them.
    _engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(settings.DB_URL, **_engine_kwargs)


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless enabled per connection.
    if engine.dialect.name != "sqlite":
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


# ---------------------------------------------------------------------------
# PRODUCTION / DEV: DB init for app startup
# ---------------------------------------------------------------------------
async def init_db_for_startup() -> None:
    """
    Initialize DB schema for application startup.

    Creates missing tables only; existing data is left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# TESTS ONLY: reset schema using a SYNC engine
# ---------------------------------------------------------------------------

def _build_sync_db_url(async_url: str) -> str:
    """
    Convert an async driver URL into its synchronous counterpart:

    - 'postgresql+asyncpg://...' -> 'postgresql://...'
    - 'sqlite+aiosqlite://...'   -> 'sqlite://...'
    """
    for async_driver in ("+asyncpg", "+aiosqlite"):
        if async_driver in async_url:
            return async_url.replace(async_driver, "")
    return async_url


def reset_schema_sync() -> None:
    """
    Run drop_all + create_all using a synchronous SQLAlchemy engine.

    This completely bypasses async drivers and event-loop issues, so it can
    be called from plain (non-async) pytest fixtures.
    """
    sync_url = _build_sync_db_url(settings.DB_URL)
    sync_engine = create_sync_engine(sync_url, future=True)

    with sync_engine.begin() as conn:
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)

    sync_engine.dispose()
