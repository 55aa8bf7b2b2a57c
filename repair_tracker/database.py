from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator

from .config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False, **engine_kwargs):
    """
    Buat async engine dengan pool yang dibatasi.

    SQLite (dipakai untuk development dan test) tidak punya pool size,
    jadi cuma dikasih check_same_thread=False, plus foreign key
    diaktifkan supaya ON DELETE CASCADE jalan.
    """
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo,
            **engine_kwargs
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    # Kalau pool habis, caller nunggu sampai pool_timeout, tidak buka koneksi baru
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
        echo=echo,
        **engine_kwargs
    )


def make_session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False
    )


async_engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
AsyncSessionLocal = make_session_factory(async_engine)

# Base class untuk semua model ORM
Base = declarative_base()

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency untuk menyediakan database session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
