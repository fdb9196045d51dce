import os
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from .config import settings

# Prefer public DB URL when set (so a local shell can reach a hosted Postgres)
_database_url = os.environ.get("DATABASE_PUBLIC_URL") or settings.DATABASE_URL


def async_database_url(url: str) -> str:
    """Map a sync driver URL onto its async driver (asyncpg / aiosqlite)."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


_async_url = async_database_url(_database_url)
_async_engine_kw: dict = {}
if is_sqlite_url(_async_url):
    # aiosqlite connections are bound to the loop that opened them; never pool them.
    # Timeout avoids "database is locked" when the sweep and requests share the file.
    _async_engine_kw = {"poolclass": NullPool, "connect_args": {"timeout": 30}}
else:
    _async_engine_kw = {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}

async_engine = create_async_engine(_async_url, **_async_engine_kw)

if is_sqlite_url(_async_url):

    @event.listens_for(async_engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

async_session_maker = async_sessionmaker(
    async_engine, expire_on_commit=False, class_=AsyncSession
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    async with async_session_maker() as session:
        yield session


class Base(DeclarativeBase):
    pass


async def create_all_tables() -> None:
    """Create missing tables (local SQLite convenience; production runs alembic)."""
    from .. import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def database_size(engine: AsyncEngine = async_engine) -> int:
    """On-disk size of the database in bytes; 0 when the backend cannot say."""
    dialect = engine.dialect.name
    async with engine.connect() as conn:
        if dialect == "sqlite":
            page_count = (await conn.exec_driver_sql("PRAGMA page_count")).scalar() or 0
            page_size = (await conn.exec_driver_sql("PRAGMA page_size")).scalar() or 0
            return int(page_count) * int(page_size)
        if dialect == "postgresql":
            size = (await conn.execute(text("SELECT pg_database_size(current_database())"))).scalar()
            return int(size or 0)
    return 0


async def compact_database(engine: AsyncEngine = async_engine) -> bool:
    """Reclaim free pages. Returns False when the backend has no compaction step."""
    if engine.dialect.name != "sqlite":
        return False
    async with engine.connect() as conn:
        # VACUUM cannot run inside a transaction.
        conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
        await conn.exec_driver_sql("VACUUM")
    return True
