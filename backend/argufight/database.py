"""Database engine, sessions and schema creation."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from argufight.config import settings

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite+aiosqlite:///"
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=30000",
)


def _is_file_sqlite(url: str) -> bool:
    return url.startswith(SQLITE_PREFIX) and ":memory:" not in url


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not _is_file_sqlite(url):
        return
    parent = Path(url.removeprefix(SQLITE_PREFIX)).parent
    if parent.exists():
        return
    try:
        parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created database directory: {parent}")
    except PermissionError:
        logger.debug(f"No permission to create database directory {parent}")


_ensure_sqlite_dir(settings.database_url)

engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level.upper() == "DEBUG",
    connect_args={"check_same_thread": False, "timeout": 30.0} if "sqlite" in settings.database_url else {},
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for the admin_settings table and the domain tables."""


@asynccontextmanager
async def db_session() -> AsyncGenerator[AsyncSession]:
    """Open a session outside a request, e.g. from the maintenance CLI."""
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Create missing tables. Existing rows are left alone."""
    import argufight.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # journal_mode can't change inside the create_all transaction
    if _is_file_sqlite(settings.database_url):
        async with engine.connect() as conn:
            for pragma in SQLITE_PRAGMAS:
                await conn.execute(text(pragma))
            await conn.commit()

    logger.info("Database initialized")


async def get_db() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""
    async with db_session() as session:
        yield session
