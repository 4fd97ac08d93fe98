"""Database engine and session utilities.

Attributes:
    engine (AsyncEngine): Primary SQLModel async engine connected to SQLite.
    SessionLocal (async_sessionmaker): Factory for yielding AsyncSession objects.

Functions:
    configure_sqlite_engine(engine): Enable transactional DDL on a SQLite async engine.
    init_db(): Create the tables backing the persisted pipeline entities.
    get_session(): Dependency that yields an AsyncSession for request handlers.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.core.config import get_settings


_settings = get_settings()


def configure_sqlite_engine(target: AsyncEngine) -> AsyncEngine:
    """Let SQLAlchemy own transaction boundaries so CREATE TABLE can roll back.

    The sqlite3 driver otherwise runs DDL outside of any transaction, which would
    leave a dynamic table behind when the surrounding registration fails.
    """

    if not str(target.url).startswith("sqlite"):
        return target

    @event.listens_for(target.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    # Transactions hold the write lock from their first statement; other writers
    # queue on the driver busy timeout.
    @event.listens_for(target.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


if _settings.database_url.startswith("sqlite+aiosqlite:///"):
    _db_path = Path(_settings.database_url.replace("sqlite+aiosqlite:///", "")).resolve()
    if _db_path.parent.name:
        _db_path.parent.mkdir(parents=True, exist_ok=True)


engine: AsyncEngine = configure_sqlite_engine(
    create_async_engine(
        _settings.database_url,
        echo=False,
        connect_args=(
            {"check_same_thread": False}
            if _settings.database_url.startswith("sqlite")
            else {}
        ),
    )
)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(target: AsyncEngine | None = None) -> None:
    # Registers the table models on SQLModel.metadata.
    from domain_evolution import models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
